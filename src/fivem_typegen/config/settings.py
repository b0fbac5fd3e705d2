from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ConfigError
from ..models import CommentPolicy
from ..scanner import ScanOptions


ENV_PREFIX = "FIVEM_TYPEGEN_"
CONFIG_FILE = "config.json"
COMMENT_POLICIES = ("strict", "lenient")


def _load_env() -> None:
    # Try CWD first
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    # Walk up from this file looking for .env as fallback
    current = Path(__file__).resolve()
    for parent in [current.parent, *current.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            load_dotenv(dotenv_path=candidate, override=False)
            break


_load_env()


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_list(name: str) -> List[str]:
    raw = _env(name, "")
    return [p.strip() for p in raw.split(",") if p.strip()]


def _env_flag(name: str) -> bool:
    return _env(name, "0") in {"1", "true", "True"}


@dataclass
class Settings:
    INPUT_DIR: str = field(default_factory=lambda: _env("INPUT_DIR", "resources"))
    OUTPUT_DIR: str = field(default_factory=lambda: _env("OUTPUT_DIR", "types"))
    EXCLUDE_PATTERNS: List[str] = field(default_factory=lambda: _env_list("EXCLUDE"))
    VERBOSE: bool = field(default_factory=lambda: _env_flag("VERBOSE"))
    COMMENT_POLICY: str = field(default_factory=lambda: _env("COMMENT_POLICY", "strict"))
    REFERENCE_WINDOW: int = field(default_factory=lambda: int(_env("REFERENCE_WINDOW", "500")))
    INLINE_LOOKAHEAD: int = field(default_factory=lambda: int(_env("INLINE_LOOKAHEAD", "3")))
    SIGNATURE_LOOKAHEAD: int = field(default_factory=lambda: int(_env("SIGNATURE_LOOKAHEAD", "5")))
    ANNOTATE_UNITS: bool = field(default_factory=lambda: _env_flag("ANNOTATE_UNITS"))

    def comment_policy(self) -> CommentPolicy:
        if self.COMMENT_POLICY not in COMMENT_POLICIES:
            raise ConfigError(
                f"Unknown comment policy {self.COMMENT_POLICY!r}, expected one of {', '.join(COMMENT_POLICIES)}"
            )
        return self.COMMENT_POLICY  # type: ignore[return-value]

    def scan_options(self) -> ScanOptions:
        return ScanOptions(
            reference_window=self.REFERENCE_WINDOW,
            inline_lookahead=self.INLINE_LOOKAHEAD,
            signature_lookahead=self.SIGNATURE_LOOKAHEAD,
            comment_policy=self.comment_policy(),
        )


class ConfigFile(BaseModel):
    """Shape of ``config.json``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    input_dir: Optional[str] = Field(None, alias="inputDir")
    output_dir: Optional[str] = Field(None, alias="outputDir")
    exclude_patterns: Optional[List[str]] = Field(None, alias="excludePatterns")
    verbose: Optional[bool] = None
    comment_policy: Optional[CommentPolicy] = Field(None, alias="commentPolicy")


def load_config_file(path: Path, base: Optional[Settings] = None) -> Settings:
    """Apply the values found in a ``config.json`` over ``base`` settings."""
    base = base if base is not None else Settings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Could not read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    try:
        parsed = ConfigFile.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

    overrides = {}
    if parsed.input_dir is not None:
        overrides["INPUT_DIR"] = parsed.input_dir
    if parsed.output_dir is not None:
        overrides["OUTPUT_DIR"] = parsed.output_dir
    if parsed.exclude_patterns is not None:
        overrides["EXCLUDE_PATTERNS"] = list(parsed.exclude_patterns)
    if parsed.verbose is not None:
        overrides["VERBOSE"] = parsed.verbose
    if parsed.comment_policy is not None:
        overrides["COMMENT_POLICY"] = parsed.comment_policy
    return replace(base, **overrides)


settings = Settings()
