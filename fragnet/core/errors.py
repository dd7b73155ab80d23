from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class FragnetError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<fragnet>"
        return f"{loc}: {self.code}: {self.message}"


class FragnetLoadError(FragnetError):
    pass


LinkErrorCode = Literal["E_SELF_LOOP", "E_UNKNOWN_NODE", "E_DUPLICATE_LINK", "E_UNKNOWN_LINK"]


class LinkError(FragnetError):
    """Structural rejection of a link edit. Returned by the store, never raised by it."""


class FragnetInvariantError(FragnetError):
    """The store's link list and predecessor/successor index disagree (a defect)."""
