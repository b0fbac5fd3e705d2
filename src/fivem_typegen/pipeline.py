from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .aggregator import Aggregator
from .errors import SourceReadError
from .scanner import DEFAULT_OPTIONS, ScanOptions, scan_source

logger = logging.getLogger(__name__)


UnitResolver = Callable[[Path], str]


@dataclass
class ExtractionRun:
    aggregator: Aggregator = field(default_factory=Aggregator)
    files_scanned: int = 0
    files_skipped: int = 0
    errors: List[SourceReadError] = field(default_factory=list)


def display_path(path: Path, root: Optional[Path]) -> str:
    """Path of ``path`` below ``root`` in posix form, or the path unchanged."""
    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return str(path)


def read_source(path: Path) -> str:
    """Read a Lua file as text, raising SourceReadError on I/O or decoding errors."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SourceReadError(path, f"not valid UTF-8 ({exc.reason})") from exc
    except OSError as exc:
        raise SourceReadError(path, exc.strerror or str(exc)) from exc


def run_extraction(
    files: Iterable[Path],
    unit_for: UnitResolver,
    options: ScanOptions = DEFAULT_OPTIONS,
    relative_to: Optional[Path] = None,
) -> ExtractionRun:
    """Scan every file and feed the results into a fresh Aggregator.

    Unreadable files are recorded in ``errors`` and skipped; the run goes on.
    With ``relative_to`` the side of a file is classified from its path
    below that directory, so the location of the tree itself does not count.
    """
    run = ExtractionRun()
    for path in files:
        run.files_scanned += 1
        try:
            text = read_source(path)
        except SourceReadError as exc:
            logger.warning(str(exc))
            run.files_skipped += 1
            run.errors.append(exc)
            continue

        result = scan_source(text, display_path(path, relative_to), options)
        if result.is_empty:
            logger.debug(f"Nothing found in {path}")
            continue

        unit = unit_for(path)
        logger.debug(
            f"{path} ({unit}, {result.side}): {len(result.exports)} exports, "
            f"{len(result.global_states)} GlobalState, "
            f"{len(result.server_entity_states) + len(result.client_entity_states)} player state"
        )
        run.aggregator.add_scan(result, unit)
    return run
