"""Description of a synchronised file: its path, type and version."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


@dataclass
class FileEntry:
    """A file known to the sync tree, keyed by its relative path."""

    path: str = ""
    type: str = ""
    version: int = 0

    def to_json(self) -> dict[str, Any]:
        """Return the entry as a JSON-ready mapping."""
        return {"path": self.path, "type": self.type, "version": self.version}

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "FileEntry":
        """Build an entry from a mapping; missing or mistyped fields fall back to defaults."""
        return cls(
            path=_as_str(obj.get("path")),
            type=_as_str(obj.get("type")),
            version=_as_int(obj.get("version")),
        )