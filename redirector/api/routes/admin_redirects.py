"""
Admin Redirects API Routes.

Authoring surface for redirect rules. Input goes through the same
canonicalize/fingerprint functions the resolver uses; a rule that fails
validation is kept inactive and the errors are returned with HTTP 400
(409 when another active rule already owns the URL).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from redirector.api.deps import get_redirect_resolver, get_redirect_service
from redirector.components.redirects import (
    RedirectResolver,
    RedirectService,
    RedirectValidationError,
)
from redirector.core.entities import RedirectRule

router = APIRouter()


class SaveRedirectRequest(BaseModel):
    """Request to create or update a redirect."""

    from_url: str = Field(..., description="URL to redirect from, relative to the site root")
    to_url: str = Field(..., description="Site-relative path or absolute http(s) URL")
    status_code: int | None = Field(None, description="HTTP status code")
    preserve_query_params: bool = Field(False, description="Forward request query params")
    notes: str | None = Field(None, description="Admin notes")


class RedirectRuleResponse(BaseModel):
    """Redirect rule response."""

    id: str
    from_canonical: str
    fingerprint: str
    to_target: str
    status_code: int
    preserve_query_params: bool
    active: bool
    validation_error: str | None = None
    notes: str | None = None
    created_at: str
    updated_at: str


class RedirectListResponse(BaseModel):
    """List of redirects response."""

    redirects: list[RedirectRuleResponse]
    count: int


class ResolvePreviewResponse(BaseModel):
    """Outcome of resolving a request path."""

    destination: str
    status_code: int
    rule_id: str | None = None


class ValidationErrorResponse(BaseModel):
    """Validation error response."""

    errors: list[dict[str, Any]]
    redirect: RedirectRuleResponse | None = None


# --- Helper Functions ---


def _rule_to_response(rule: RedirectRule) -> RedirectRuleResponse:
    return RedirectRuleResponse(
        id=str(rule.id),
        from_canonical=rule.from_canonical,
        fingerprint=rule.fingerprint,
        to_target=rule.to_target,
        status_code=rule.status_code,
        preserve_query_params=rule.preserve_query_params,
        active=rule.active,
        validation_error=rule.validation_error,
        notes=rule.notes,
        created_at=rule.created_at.isoformat(),
        updated_at=rule.updated_at.isoformat(),
    )


def _serialize_errors(errors: list[RedirectValidationError]) -> list[dict[str, Any]]:
    return [{"code": e.code, "message": e.message, "field": e.field} for e in errors]


def _raise_for_errors(rule: RedirectRule | None, errors: list[RedirectValidationError]) -> None:
    if not errors:
        return

    conflict = any(e.code == "source_exists" for e in errors)
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT if conflict else status.HTTP_400_BAD_REQUEST,
        detail={
            "errors": _serialize_errors(errors),
            "redirect": _rule_to_response(rule).model_dump() if rule else None,
        },
    )


# --- Routes ---


@router.post(
    "/redirects",
    response_model=RedirectRuleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ValidationErrorResponse}, 409: {"model": ValidationErrorResponse}},
)
def create_redirect(
    request: SaveRedirectRequest,
    service: RedirectService = Depends(get_redirect_service),
) -> RedirectRuleResponse:
    """Create a new redirect."""
    rule, errors = service.save(
        from_url=request.from_url,
        to_url=request.to_url,
        status_code=request.status_code,
        preserve_query_params=request.preserve_query_params,
        notes=request.notes,
    )
    _raise_for_errors(rule, errors)

    assert rule is not None
    return _rule_to_response(rule)


@router.get("/redirects", response_model=RedirectListResponse)
def list_redirects(
    service: RedirectService = Depends(get_redirect_service),
) -> RedirectListResponse:
    """List all redirects, including inactive ones."""
    rules = service.list_all()
    return RedirectListResponse(
        redirects=[_rule_to_response(r) for r in rules],
        count=len(rules),
    )


@router.get("/redirects/domains", response_model=list[str])
def list_redirect_domains(
    service: RedirectService = Depends(get_redirect_service),
) -> list[str]:
    """External hosts that rules redirect to."""
    return service.find_domains()


@router.get(
    "/redirects/{rule_id}",
    response_model=RedirectRuleResponse,
    responses={404: {"description": "Redirect not found"}},
)
def get_redirect(
    rule_id: UUID,
    service: RedirectService = Depends(get_redirect_service),
) -> RedirectRuleResponse:
    """Get a redirect by ID."""
    rule = service.get(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Redirect not found")
    return _rule_to_response(rule)


@router.put(
    "/redirects/{rule_id}",
    response_model=RedirectRuleResponse,
    responses={
        400: {"model": ValidationErrorResponse},
        404: {"description": "Redirect not found"},
        409: {"model": ValidationErrorResponse},
    },
)
def update_redirect(
    rule_id: UUID,
    request: SaveRedirectRequest,
    service: RedirectService = Depends(get_redirect_service),
) -> RedirectRuleResponse:
    """Update a redirect in place."""
    if service.get(rule_id) is None:
        raise HTTPException(status_code=404, detail="Redirect not found")

    rule, errors = service.save(
        from_url=request.from_url,
        to_url=request.to_url,
        status_code=request.status_code,
        preserve_query_params=request.preserve_query_params,
        notes=request.notes,
        rule_id=rule_id,
    )
    _raise_for_errors(rule, errors)

    assert rule is not None
    return _rule_to_response(rule)


@router.delete(
    "/redirects/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Redirect not found"}},
)
def delete_redirect(
    rule_id: UUID,
    service: RedirectService = Depends(get_redirect_service),
) -> Response:
    """Delete a redirect."""
    if not service.delete(rule_id):
        raise HTTPException(status_code=404, detail="Redirect not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/resolve",
    response_model=ResolvePreviewResponse,
    responses={404: {"description": "No redirect for this path"}},
)
def preview_resolve(
    path: str = Query(..., description="Request path, optionally with a query string"),
    resolver: RedirectResolver = Depends(get_redirect_resolver),
) -> ResolvePreviewResponse:
    """Show where a request path would be redirected."""
    decision = resolver.resolve(path)
    if decision is None:
        raise HTTPException(status_code=404, detail="No redirect for this path")

    return ResolvePreviewResponse(
        destination=decision.destination,
        status_code=decision.status_code,
        rule_id=str(decision.rule_id) if decision.rule_id else None,
    )
