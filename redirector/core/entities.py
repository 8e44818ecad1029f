"""
Domain entities for the redirect engine.

- RedirectRule: the only persisted entity, keyed by fingerprint
- RedirectDecision: what the resolver hands back to the HTTP front end
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

__all__ = [
    "DEFAULT_STATUS_CODE",
    "LOCATION_STATUS_CODES",
    "STATUS_CODE_LABELS",
    "RedirectDecision",
    "RedirectRule",
    "is_location_status",
]


# --- Status codes ---

STATUS_CODE_LABELS: dict[int, str] = {
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    307: "Temporary Redirect",
    403: "Forbidden",
    404: "Not Found",
}

DEFAULT_STATUS_CODE = 302

# 403/404 mark a removed or forbidden URL; they carry no Location header.
LOCATION_STATUS_CODES = frozenset({301, 302, 303, 307})


def is_location_status(status_code: int) -> bool:
    """True when the status code forwards the client somewhere else."""
    return status_code in LOCATION_STATUS_CODES


def _utcnow() -> datetime:
    return datetime.now(UTC)


# --- RedirectRule ---


class RedirectRule(BaseModel):
    """
    Stored mapping from a canonical "from" URL to a destination.

    Invariants:
    - fingerprint == fingerprint(from_canonical)
    - from_canonical never carries a scheme or host
    - at most one active rule per fingerprint (enforced by the store)
    - inactive rules are never matched
    """

    id: UUID = Field(default_factory=uuid4)
    from_canonical: str
    fingerprint: str
    to_target: str
    status_code: int = DEFAULT_STATUS_CODE
    preserve_query_params: bool = False
    active: bool = True
    validation_error: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# --- RedirectDecision ---


@dataclass(frozen=True)
class RedirectDecision:
    """Result of a successful resolution."""

    destination: str
    status_code: int
    rule_id: UUID | None = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def has_location(self) -> bool:
        return is_location_status(self.status_code)
