"""
Redirect engine error kinds.

None of these escape the resolver: InvalidURL and HostNotAllowed are turned
into "no match", Conflict is reported back to whoever called the store's put.
"""

from __future__ import annotations


class RedirectError(Exception):
    """Base class for redirect engine errors."""


class InvalidURL(RedirectError):
    """Raised when a value cannot be parsed into a usable path/query."""

    def __init__(self, url: object, reason: str = "The URL does not validate") -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url!r}")


class Conflict(RedirectError):
    """Raised when another active rule already owns the fingerprint."""

    def __init__(self, fingerprint: str, existing_id: object | None = None) -> None:
        self.fingerprint = fingerprint
        self.existing_id = existing_id
        super().__init__("A redirect rule for this URL already exists.")


class HostNotAllowed(RedirectError):
    """Raised when a destination is not a safe redirect target."""

    def __init__(self, destination: str, reason: str) -> None:
        self.destination = destination
        self.reason = reason
        super().__init__(f"Redirect to {destination!r} not allowed: {reason}")
