"""Base exception shared by every shipwright error."""

from __future__ import annotations


class ShipwrightError(Exception):
    """Base class; carries a machine-readable ``kind`` for structured reporting."""

    kind: str = "error"

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ConfigError(ShipwrightError):
    kind = "config"
