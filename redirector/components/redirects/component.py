"""
Redirects component - canonical URL redirect rules.

Invariants:
- At most one active rule per fingerprint
- Rules match host-agnostically and case-insensitively
- Status code is one of 301, 302, 303, 307, 403, 404
- Destinations on foreign hosts must come from a stored rule
- Inactive rules never match
"""

from __future__ import annotations

from ._impl import RedirectResolver, create_redirect_resolver, create_redirect_service
from .models import (
    CreateRedirectInput,
    DeleteRedirectInput,
    GetRedirectInput,
    ListRedirectsInput,
    RedirectListOutput,
    RedirectOperationOutput,
    RedirectOutput,
    RedirectValidationError,
    ResolveOutput,
    ResolveRedirectInput,
    UpdateRedirectInput,
)
from .ports import RedirectRuleStorePort, RulesPort

# --- Component Entry Points ---


def run_create(
    inp: CreateRedirectInput,
    *,
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
) -> RedirectOperationOutput:
    """
    Create a new redirect.

    A rule that fails validation is stored inactive; the output still
    carries it so the author can correct the input.

    Args:
        inp: Input containing from/to URLs and options.
        store: Rule store port.
        rules: Optional rules port for configuration.

    Returns:
        RedirectOperationOutput with the stored rule and any errors.
    """
    service = create_redirect_service(store, rules)

    rule, errors = service.save(
        from_url=inp.from_url,
        to_url=inp.to_url,
        status_code=inp.status_code,
        preserve_query_params=inp.preserve_query_params,
        notes=inp.notes,
    )

    return RedirectOperationOutput(redirect=rule, errors=errors, success=not errors)


def run_update(
    inp: UpdateRedirectInput,
    *,
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
) -> RedirectOperationOutput:
    """
    Update an existing redirect in place.

    Args:
        inp: Input containing rule_id and the new field values.
        store: Rule store port.
        rules: Optional rules port for configuration.

    Returns:
        RedirectOperationOutput with the updated rule or errors.
    """
    service = create_redirect_service(store, rules)

    if service.get(inp.rule_id) is None:
        return RedirectOperationOutput(
            redirect=None,
            errors=[
                RedirectValidationError(
                    code="not_found",
                    message=f"Redirect {inp.rule_id} not found",
                )
            ],
            success=False,
        )

    rule, errors = service.save(
        from_url=inp.from_url,
        to_url=inp.to_url,
        status_code=inp.status_code,
        preserve_query_params=inp.preserve_query_params,
        notes=inp.notes,
        rule_id=inp.rule_id,
    )

    return RedirectOperationOutput(redirect=rule, errors=errors, success=not errors)


def run_delete(
    inp: DeleteRedirectInput,
    *,
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
) -> RedirectOperationOutput:
    """Delete a redirect."""
    service = create_redirect_service(store, rules)

    if not service.delete(inp.rule_id):
        return RedirectOperationOutput(
            redirect=None,
            errors=[
                RedirectValidationError(
                    code="not_found",
                    message=f"Redirect {inp.rule_id} not found",
                )
            ],
            success=False,
        )

    return RedirectOperationOutput(redirect=None, errors=[], success=True)


def run_get(
    inp: GetRedirectInput,
    *,
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
) -> RedirectOutput:
    """Get a redirect by id or by from URL."""
    service = create_redirect_service(store, rules)

    if inp.rule_id is not None:
        rule = service.get(inp.rule_id)
    elif inp.from_url is not None:
        rule = service.get_by_from_url(inp.from_url)
    else:
        return RedirectOutput(
            redirect=None,
            errors=[
                RedirectValidationError(
                    code="invalid_input",
                    message="Either rule_id or from_url must be provided",
                )
            ],
            success=False,
        )

    if rule is None:
        return RedirectOutput(
            redirect=None,
            errors=[RedirectValidationError(code="not_found", message="Redirect not found")],
            success=False,
        )

    return RedirectOutput(redirect=rule, errors=[], success=True)


def run_list(
    inp: ListRedirectsInput,
    *,
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
) -> RedirectListOutput:
    """List all redirects."""
    service = create_redirect_service(store, rules)
    return RedirectListOutput(redirects=tuple(service.list_all()), errors=[], success=True)


def run_resolve(
    inp: ResolveRedirectInput,
    *,
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
    resolver: RedirectResolver | None = None,
) -> ResolveOutput:
    """
    Resolve a request path.

    No match is a successful outcome with ``decision=None``.
    """
    resolver = resolver or create_redirect_resolver(store, rules)
    return ResolveOutput(decision=resolver.resolve(inp.path), errors=[], success=True)


def run(
    inp: (
        CreateRedirectInput
        | UpdateRedirectInput
        | DeleteRedirectInput
        | GetRedirectInput
        | ListRedirectsInput
        | ResolveRedirectInput
    ),
    *,
    store: RedirectRuleStorePort,
    rules: RulesPort | None = None,
) -> RedirectOutput | RedirectListOutput | RedirectOperationOutput | ResolveOutput:
    """
    Main entry point for the redirects component.

    Dispatches to appropriate handler based on input type.
    """
    if isinstance(inp, CreateRedirectInput):
        return run_create(inp, store=store, rules=rules)
    elif isinstance(inp, UpdateRedirectInput):
        return run_update(inp, store=store, rules=rules)
    elif isinstance(inp, DeleteRedirectInput):
        return run_delete(inp, store=store, rules=rules)
    elif isinstance(inp, GetRedirectInput):
        return run_get(inp, store=store, rules=rules)
    elif isinstance(inp, ListRedirectsInput):
        return run_list(inp, store=store, rules=rules)
    elif isinstance(inp, ResolveRedirectInput):
        return run_resolve(inp, store=store, rules=rules)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
