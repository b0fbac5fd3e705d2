from __future__ import annotations

from pathlib import Path
from typing import Union


class TypegenError(Exception):
    """Base class for errors raised by fivem_typegen."""


class SourceReadError(TypegenError):
    """A Lua source file could not be read or decoded.

    Raised per file; the extraction loop records it and moves on.
    """

    def __init__(self, path: Union[str, Path], reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Could not read {self.path}: {reason}")


class ConfigError(TypegenError):
    """Configuration file is missing, unreadable or invalid."""
