"""
Redirects component port definitions.

The rule store is an external collaborator; the engine only needs the
contract below.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from redirector.core.entities import RedirectRule


class RedirectRuleStorePort(Protocol):
    """
    Rule store keyed by fingerprint.

    Invariants:
    - get() only ever returns active rules
    - put() decides uniqueness atomically: at most one active rule per
      fingerprint; writing the same rule id again updates in place
    """

    def get(self, fingerprint: str) -> RedirectRule | None:
        """Get the active rule for a fingerprint."""
        ...

    def put(self, rule: RedirectRule) -> UUID:
        """Insert or update a rule. Raises Conflict on a uniqueness violation."""
        ...

    def get_by_id(self, rule_id: UUID) -> RedirectRule | None:
        """Get a rule (active or not) by id."""
        ...

    def delete(self, rule_id: UUID) -> None:
        """Delete a rule."""
        ...

    def list_all(self) -> list[RedirectRule]:
        """List all rules, active and inactive."""
        ...


class RulesPort(Protocol):
    """Port for redirect configuration."""

    def get_site_url(self) -> str:
        """Root URL of the serving site."""
        ...

    def get_default_status_code(self) -> int:
        """Status code used when a rule has none."""
        ...

    def get_allowed_status_codes(self) -> list[int]:
        """Status codes an author may pick."""
        ...

    def get_allowed_hosts(self) -> list[str]:
        """External hosts trusted for every resolution."""
        ...

    def get_marker_header(self) -> tuple[str, str]:
        """Name and value of the header flagging engine-produced redirects."""
        ...

    def get_fallback_to_path_match(self) -> bool:
        """Whether a query-carrying request may match its bare path."""
        ...
