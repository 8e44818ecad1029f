"""
Redirects component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from redirector.core.entities import RedirectDecision, RedirectRule

# --- Validation Error ---


@dataclass(frozen=True)
class RedirectValidationError:
    """Redirect validation error."""

    code: str
    message: str
    field: str | None = None


# --- Input Models ---


@dataclass(frozen=True)
class CreateRedirectInput:
    """Input for creating a new redirect."""

    from_url: str
    to_url: str
    status_code: int | None = None
    preserve_query_params: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class UpdateRedirectInput:
    """Input for updating an existing redirect in place."""

    rule_id: UUID
    from_url: str
    to_url: str
    status_code: int | None = None
    preserve_query_params: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class DeleteRedirectInput:
    """Input for deleting a redirect."""

    rule_id: UUID


@dataclass(frozen=True)
class GetRedirectInput:
    """Input for getting a redirect by id or by from URL."""

    rule_id: UUID | None = None
    from_url: str | None = None


@dataclass(frozen=True)
class ListRedirectsInput:
    """Input for listing all redirects."""

    pass


@dataclass(frozen=True)
class ResolveRedirectInput:
    """Input for resolving a request path."""

    path: str


# --- Output Models ---


@dataclass(frozen=True)
class RedirectOutput:
    """Output containing a single redirect."""

    redirect: RedirectRule | None
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class RedirectListOutput:
    """Output containing a list of redirects."""

    redirects: tuple[RedirectRule, ...]
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class RedirectOperationOutput:
    """Output for redirect operations (create, update, delete)."""

    redirect: RedirectRule | None = None
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class ResolveOutput:
    """Output for resolve operation; decision is None on no match."""

    decision: RedirectDecision | None
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True
