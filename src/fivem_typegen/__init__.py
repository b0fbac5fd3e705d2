"""Lua declaration file generator for FiveM resources.

Exposes the extraction API:
    scan_source(text, path) -> ScanResult
    run_extraction(files, unit_for) -> ExtractionRun
and the Aggregator that merges results across files.
"""

from .aggregator import Aggregator  # noqa: F401
from .comments import extract_comment_block, parse_tags  # noqa: F401
from .inference import infer_type  # noqa: F401
from .pipeline import run_extraction  # noqa: F401
from .scanner import ScanOptions, detect_side, scan_source  # noqa: F401

__all__ = [
    "Aggregator",
    "ScanOptions",
    "detect_side",
    "extract_comment_block",
    "infer_type",
    "parse_tags",
    "run_extraction",
    "scan_source",
]
