"""In-memory rule store adapter.

Implements RedirectRuleStorePort for tests and single-process deployments.
A lock makes the uniqueness check and the write one atomic step.
"""

from threading import Lock
from uuid import UUID

from redirector.core.entities import RedirectRule
from redirector.core.errors import Conflict


class InMemoryRedirectRuleStore:
    """In-memory rule storage keyed by id, indexed by active fingerprint."""

    def __init__(self) -> None:
        self._rules: dict[UUID, RedirectRule] = {}
        self._active: dict[str, UUID] = {}
        self._lock = Lock()

    def get(self, fingerprint: str) -> RedirectRule | None:
        """Get the active rule for a fingerprint."""
        rule_id = self._active.get(fingerprint)
        if rule_id is None:
            return None
        rule = self._rules.get(rule_id)
        return rule if rule is not None and rule.active else None

    def get_by_id(self, rule_id: UUID) -> RedirectRule | None:
        return self._rules.get(rule_id)

    def put(self, rule: RedirectRule) -> UUID:
        """Insert or update; raises Conflict if another active rule owns the fingerprint."""
        with self._lock:
            owner = self._active.get(rule.fingerprint)
            if rule.active and owner is not None and owner != rule.id:
                raise Conflict(rule.fingerprint, owner)

            previous = self._rules.get(rule.id)
            if previous is not None and self._active.get(previous.fingerprint) == rule.id:
                del self._active[previous.fingerprint]

            self._rules[rule.id] = rule
            if rule.active:
                self._active[rule.fingerprint] = rule.id
            return rule.id

    def delete(self, rule_id: UUID) -> None:
        with self._lock:
            rule = self._rules.pop(rule_id, None)
            if rule is not None and self._active.get(rule.fingerprint) == rule_id:
                del self._active[rule.fingerprint]

    def list_all(self) -> list[RedirectRule]:
        return list(self._rules.values())

    def clear(self) -> None:
        """Clear all rules - useful for testing."""
        with self._lock:
            self._rules.clear()
            self._active.clear()
