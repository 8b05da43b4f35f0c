"""Data models for stack environment variables."""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

# Sentinel meaning "secret unchanged" in both read responses and write requests
MASK_PLACEHOLDER = "***"

KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Variable:
    """A single environment variable in one (stack, environment) scope."""

    key: str
    value: str
    is_secret: bool = False

    @property
    def is_masked(self) -> bool:
        """True for a secret carrying the mask placeholder instead of a value."""
        return self.is_secret and self.value == MASK_PLACEHOLDER

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value, "isSecret": self.is_secret}

    @classmethod
    def from_dict(cls, data: dict) -> "Variable":
        return cls(
            key=data["key"],
            value=data["value"],
            is_secret=bool(data.get("isSecret", False)),
        )


class ViewSource(Enum):
    """Where a reconciled view entry takes its value from."""

    SECRET = "secret"
    STORE = "store"
    FILE = "file"


@dataclass
class WriteResult:
    """Outcome of a write to the store and the stack's .env file."""

    count: int
    file_written: bool = False
    file_path: Path | None = None

    def to_dict(self) -> dict:
        return {"success": True, "count": self.count, "fileWritten": self.file_written}
