from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping

from .models import AggregateSnapshot
from .renderer import render_state_files, render_unit

logger = logging.getLogger(__name__)


INTERNAL_DIR = "_internal"


class DefinitionWriter:
    """Writes rendered declaration files below one output directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.written: List[Path] = []

    def write_files(self, subdir: str, files: Mapping[str, str]) -> List[Path]:
        target = self.output_dir / subdir
        target.mkdir(parents=True, exist_ok=True)
        paths: List[Path] = []
        for filename, content in files.items():
            path = target / filename
            path.write_text(content, encoding="utf-8")
            logger.info(f"Generated {path}")
            paths.append(path)
        self.written.extend(paths)
        return paths

    def write_snapshot(self, snapshot: AggregateSnapshot, annotate_units: bool = False) -> List[Path]:
        paths: List[Path] = []
        for unit, exports_by_side in snapshot.exports.items():
            paths.extend(self.write_files(unit, render_unit(unit, exports_by_side)))
        state_files: Dict[str, str] = render_state_files(snapshot, annotate_units)
        if state_files:
            paths.extend(self.write_files(INTERNAL_DIR, state_files))
        return paths
