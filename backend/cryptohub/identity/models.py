"""Verified caller identity."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Identity:
    """Claims of a verified identity-provider token."""

    subject: str
    email: str = ""
    name: str = ""
    picture: str | None = None

    @property
    def display_name(self) -> str:
        """Name shown in join/leave notices."""
        return self.name or self._email_local_part() or "Anonymous"

    @property
    def username(self) -> str:
        """Username given to the internal user record on first sight."""
        return self.name or self._email_local_part() or "User"

    def _email_local_part(self) -> str:
        return self.email.split("@")[0] if self.email else ""
