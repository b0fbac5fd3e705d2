from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List


MANIFEST_NAMES = ("fxmanifest.lua", "__resource.lua")
UNKNOWN_UNIT = "unknown_resource"


def _matches(relative: str, pattern: str) -> bool:
    if fnmatch(relative, pattern):
        return True
    # "**/x" should also match "x" at the top level
    return pattern.startswith("**/") and fnmatch(relative, pattern[3:])


def is_excluded_path(path: Path, input_dir: Path, exclude_patterns: Iterable[str] = ()) -> bool:
    """Return True if ``path`` is hidden or matches any exclude pattern.

    Patterns are matched against the posix path relative to ``input_dir``.
    """
    try:
        relative = path.relative_to(input_dir)
    except ValueError:
        return True

    for part in relative.parts:
        if part.startswith(".") and part not in {".", ".."}:
            return True
    rel = relative.as_posix()
    return any(_matches(rel, pattern) for pattern in exclude_patterns)


def discover_lua_files(input_dir: Path, exclude_patterns: Iterable[str] = ()) -> List[Path]:
    """Return Lua files under ``input_dir`` in sorted order."""
    patterns = list(exclude_patterns)
    files: List[Path] = []
    for path in sorted(input_dir.rglob("*.lua")):
        if is_excluded_path(path, input_dir, patterns):
            continue
        if path.is_file():
            files.append(path)
    return files


def detect_unit_name(path: Path, input_dir: Path) -> str:
    """Name of the resource that owns ``path``.

    The nearest directory holding a manifest wins. Otherwise the first
    directory below ``input_dir`` that is not a ``[category]`` folder.
    """
    root = input_dir.resolve()
    current = path.resolve().parent
    while current == root or root in current.parents:
        if any((current / name).is_file() for name in MANIFEST_NAMES):
            return current.name
        if current == root:
            break
        current = current.parent

    try:
        relative = path.resolve().relative_to(root)
    except ValueError:
        return UNKNOWN_UNIT
    for part in relative.parts[:-1]:
        if part and not part.startswith("["):
            return part
    return UNKNOWN_UNIT
