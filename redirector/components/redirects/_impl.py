"""
Redirect resolution and rule authoring.

RedirectResolver turns an incoming request into a RedirectDecision:
canonicalize -> fingerprint -> store lookup -> target -> query merge ->
decision transforms -> host validation. It never raises, even when a
transform or callback does; anything it cannot handle is "no match" and
the request falls through to normal 404 handling.

RedirectService is the authoring side: it runs the same canonicalize and
fingerprint functions before writing, and soft-disables rules that fail
validation instead of rejecting the input outright.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urlsplit, urlunsplit
from uuid import UUID

from redirector.core.entities import (
    DEFAULT_STATUS_CODE,
    STATUS_CODE_LABELS,
    RedirectDecision,
    RedirectRule,
)
from redirector.core.errors import Conflict, HostNotAllowed, InvalidURL
from redirector.core.services.canonical import (
    add_leading_slash,
    canonicalize,
    canonicalize_from,
    fingerprint,
    normalise_target,
    query_key,
    split_query,
)
from redirector.core.services.host_validator import (
    derive_allowed_hosts,
    validate_redirect,
)

from .models import RedirectValidationError
from .ports import RedirectRuleStorePort, RulesPort

logger = logging.getLogger(__name__)

PathTransform = Callable[[str], str]
DecisionTransform = Callable[[RedirectDecision], RedirectDecision]


# --- Configuration ---


@dataclass(frozen=True)
class RedirectConfig:
    """Redirect engine configuration."""

    site_url: str = "http://localhost:8000"
    default_status_code: int = DEFAULT_STATUS_CODE
    allowed_status_codes: tuple[int, ...] = tuple(STATUS_CODE_LABELS)
    allowed_hosts: frozenset[str] = frozenset()
    marker_header: str = "X-Redirect-By"
    marker_value: str = "redirector"
    fallback_to_path_match: bool = True

    @property
    def site_root(self) -> str:
        return self.site_url.rstrip("/")

    @property
    def site_host(self) -> str:
        return (urlsplit(self.site_url).hostname or "").lower()

    @property
    def base_path(self) -> str:
        return urlsplit(self.site_url).path.rstrip("/")


DEFAULT_CONFIG = RedirectConfig()


def config_from_rules(rules: RulesPort | None) -> RedirectConfig:
    """Build redirect config from a rules port."""
    if rules is None:
        return DEFAULT_CONFIG

    header, value = rules.get_marker_header()
    return RedirectConfig(
        site_url=rules.get_site_url(),
        default_status_code=rules.get_default_status_code(),
        allowed_status_codes=tuple(rules.get_allowed_status_codes()),
        allowed_hosts=frozenset(h.lower() for h in rules.get_allowed_hosts()),
        marker_header=header,
        marker_value=value,
        fallback_to_path_match=rules.get_fallback_to_path_match(),
    )


# --- Query merging ---


def merge_query_params(
    target: str,
    incoming_query: str,
    exclude_keys: Iterable[str] = (),
) -> str:
    """
    Merge an incoming query string into a target URL.

    Parameters already on the target win on key collision; incoming
    parameters not on the target are appended in request order. Segments
    are copied verbatim, never re-encoded.
    """
    parts = urlsplit(target)
    target_segments = split_query(parts.query)
    skip = {query_key(s) for s in target_segments} | set(exclude_keys)

    extra = [s for s in split_query(incoming_query) if query_key(s) not in skip]
    if not extra:
        return target

    return urlunsplit(parts._replace(query="&".join([*target_segments, *extra])))


# --- Resolver ---


class RedirectResolver:
    """
    Stateless request -> RedirectDecision engine.

    Extension points, applied in list order:
    - path_transforms: rewrite the canonical request path before lookup
    - decision_transforms: rewrite the decision before host validation
    - on_redirect: observe each returned decision; failures are only logged
    """

    def __init__(
        self,
        store: RedirectRuleStorePort,
        config: RedirectConfig | None = None,
        path_transforms: Sequence[PathTransform] = (),
        decision_transforms: Sequence[DecisionTransform] = (),
        on_redirect: Callable[[RedirectDecision], None] | None = None,
    ) -> None:
        self._store = store
        self._config = config or DEFAULT_CONFIG
        self._path_transforms = tuple(path_transforms)
        self._decision_transforms = tuple(decision_transforms)
        self._on_redirect = on_redirect

    @property
    def config(self) -> RedirectConfig:
        return self._config

    def resolve(self, path_and_query: str) -> RedirectDecision | None:
        """
        Resolve a request path (with optional query) to a redirect.

        Returns:
            RedirectDecision, or None when nothing should redirect.
        """
        request = self._strip_base_path(path_and_query)

        try:
            canonical = canonicalize(request)
        except InvalidURL as e:
            logger.debug("No redirect for unparseable request %r: %s", path_and_query, e.reason)
            return None

        try:
            for transform in self._path_transforms:
                canonical = transform(canonical)
        except Exception:
            logger.exception("Path transform failed for %r", path_and_query)
            return None

        rule = self._lookup(canonical)
        if rule is None:
            return None

        target = self._absolute_target(rule.to_target)

        if rule.preserve_query_params:
            # Params that selected the rule are not forwarded.
            matched_keys = [query_key(s) for s in split_query(urlsplit(rule.from_canonical).query)]
            incoming_query = urlsplit(request).query
            destination = merge_query_params(target, incoming_query, exclude_keys=matched_keys)
        else:
            destination = target

        decision = RedirectDecision(
            destination=destination,
            status_code=rule.status_code or self._config.default_status_code,
            rule_id=rule.id,
            headers={self._config.marker_header: self._config.marker_value},
        )
        try:
            for decision_transform in self._decision_transforms:
                decision = decision_transform(decision)
        except Exception:
            logger.exception("Decision transform failed for rule %s", rule.id)
            return None

        # Transforms may rewrite the destination, so validate the final one.
        allowed = derive_allowed_hosts(rule.to_target, self._config.site_host)
        try:
            validate_redirect(
                decision.destination,
                site_host=self._config.site_host,
                allowed_hosts=allowed | self._config.allowed_hosts,
            )
        except HostNotAllowed as e:
            logger.warning(
                "Rejected redirect %s -> %s: %s",
                rule.from_canonical,
                decision.destination,
                e.reason,
            )
            return None

        if self._on_redirect is not None:
            try:
                self._on_redirect(decision)
            except Exception:
                logger.exception("on_redirect callback failed for rule %s", rule.id)

        return decision

    def _strip_base_path(self, request: str) -> str:
        base = self._config.base_path
        if base and (request == base or request.startswith((base + "/", base + "?"))):
            request = request[len(base) :]
            return request if request.startswith("/") else "/" + request
        return request

    def _lookup(self, canonical: str) -> RedirectRule | None:
        rule = self._store.get(fingerprint(canonical))
        if rule is not None:
            return rule

        path, has_query, _ = canonical.partition("?")
        if has_query and path and self._config.fallback_to_path_match:
            return self._store.get(fingerprint(path))
        return None

    def _absolute_target(self, to_target: str) -> str:
        if urlsplit(to_target).scheme:
            return to_target
        return self._config.site_root + add_leading_slash(to_target)


# --- Authoring validation ---


def validate_rule_input(
    from_url: str,
    to_url: str,
    status_code: int | None,
    config: RedirectConfig = DEFAULT_CONFIG,
) -> tuple[str | None, str | None, list[RedirectValidationError]]:
    """
    Validate and normalise author input.

    Returns:
        (from_canonical, to_target, errors). Either value is None when that
        field did not validate.
    """
    errors: list[RedirectValidationError] = []

    if not from_url or not from_url.strip() or not to_url or not to_url.strip():
        errors.append(
            RedirectValidationError(code="fields_required", message="Fields are required")
        )
        return None, None, errors

    from_canonical: str | None = None
    try:
        from_canonical = canonicalize_from(from_url)
    except InvalidURL:
        errors.append(
            RedirectValidationError(
                code="invalid_from",
                message="Invalid FROM value",
                field="from_url",
            )
        )

    to_target: str | None = None
    try:
        to_target = normalise_target(to_url)
    except InvalidURL as e:
        errors.append(
            RedirectValidationError(
                code="invalid_to",
                message=e.reason,
                field="to_url",
            )
        )

    if status_code is not None and status_code not in config.allowed_status_codes:
        errors.append(
            RedirectValidationError(
                code="invalid_status_code",
                message=f"Status code {status_code} is not allowed",
                field="status_code",
            )
        )

    return from_canonical, to_target, errors


# --- Redirect Service ---


class RedirectService:
    """
    Authoring service for redirect rules.

    Create/update run the same normalisation as the resolver and hand the
    uniqueness decision to the store's put().
    """

    def __init__(
        self,
        store: RedirectRuleStorePort,
        config: RedirectConfig | None = None,
    ) -> None:
        self._store = store
        self._config = config or DEFAULT_CONFIG

    @staticmethod
    def _now() -> datetime:
        return datetime.now(UTC)

    def get(self, rule_id: UUID) -> RedirectRule | None:
        return self._store.get_by_id(rule_id)

    def get_by_from_url(self, from_url: str) -> RedirectRule | None:
        """Get the active rule matching an author-supplied from URL."""
        try:
            return self._store.get(fingerprint(canonicalize_from(from_url)))
        except InvalidURL:
            return None

    def list_all(self) -> list[RedirectRule]:
        return self._store.list_all()

    def delete(self, rule_id: UUID) -> bool:
        if self._store.get_by_id(rule_id) is None:
            return False
        self._store.delete(rule_id)
        return True

    def save(
        self,
        from_url: str,
        to_url: str,
        status_code: int | None = None,
        preserve_query_params: bool = False,
        notes: str | None = None,
        rule_id: UUID | None = None,
    ) -> tuple[RedirectRule | None, list[RedirectValidationError]]:
        """
        Create or update a rule.

        A rule that fails validation is still stored, but inactive, with the
        original input kept for correction. Returns (rule, errors); rule is
        None only when there is nothing worth storing (empty fields).
        """
        from_canonical, to_target, errors = validate_rule_input(
            from_url, to_url, status_code, self._config
        )
        if not (from_url or "").strip() or not (to_url or "").strip():
            return None, errors

        existing = self._store.get_by_id(rule_id) if rule_id is not None else None
        now = self._now()

        stored_from = from_canonical if from_canonical is not None else from_url.strip()
        stored_status = (
            status_code
            if status_code in self._config.allowed_status_codes
            else self._config.default_status_code
        )
        rule = RedirectRule(
            from_canonical=stored_from,
            fingerprint=fingerprint(stored_from),
            to_target=to_target if to_target is not None else to_url.strip(),
            status_code=stored_status,
            preserve_query_params=preserve_query_params,
            active=not errors,
            validation_error="; ".join(e.message for e in errors) or None,
            notes=notes,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        if existing is not None:
            rule = rule.model_copy(update={"id": existing.id})

        try:
            self._store.put(rule)
        except Conflict:
            errors.append(
                RedirectValidationError(
                    code="source_exists",
                    message="A redirect rule for this URL already exists.",
                    field="from_url",
                )
            )
            rule = rule.model_copy(
                update={"active": False, "validation_error": errors[-1].message}
            )
            self._store.put(rule)

        if errors:
            logger.info("Redirect %s saved inactive: %s", stored_from, rule.validation_error)
        return rule, errors

    def find_domains(self) -> list[str]:
        """Unique external hosts that rules redirect to, in first-seen order."""
        domains: dict[str, None] = {}
        for rule in self._store.list_all():
            host = urlsplit(rule.to_target).hostname
            if host:
                domains.setdefault(host.lower(), None)
        return list(domains)


# --- Factories ---


def create_redirect_resolver(
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
    path_transforms: Sequence[PathTransform] = (),
    decision_transforms: Sequence[DecisionTransform] = (),
    on_redirect: Callable[[RedirectDecision], None] | None = None,
) -> RedirectResolver:
    """Create a RedirectResolver."""
    return RedirectResolver(
        store=store,
        config=config_from_rules(rules),
        path_transforms=path_transforms,
        decision_transforms=decision_transforms,
        on_redirect=on_redirect,
    )


def create_redirect_service(
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
) -> RedirectService:
    """Create a RedirectService."""
    return RedirectService(store=store, config=config_from_rules(rules))


__all__ = [
    "DEFAULT_CONFIG",
    "DecisionTransform",
    "PathTransform",
    "RedirectConfig",
    "RedirectResolver",
    "RedirectService",
    "config_from_rules",
    "create_redirect_resolver",
    "create_redirect_service",
    "merge_query_params",
    "validate_rule_input",
]
