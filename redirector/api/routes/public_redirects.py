"""
Public Redirects Middleware.

Applies redirect rules in the front-end request path. Every request that
is not under a skipped prefix is handed to the resolver; a decision turns
into a redirect response, anything else falls through to normal routing.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from urllib.parse import quote

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse

from redirector.components.redirects import RedirectResolver
from redirector.core.entities import RedirectDecision

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[], RedirectResolver]

DEFAULT_SKIP_PREFIXES = ("/api/admin", "/health", "/docs", "/redoc", "/openapi.json")


# --- Helper Functions ---


def request_target(request: Request) -> str:
    """Path plus query string as received on the wire, still percent-encoded."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1").split("?", 1)[0]
    else:
        path = quote(request.url.path, safe="/:@!$&'()*+,;=-._~%")

    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def build_response(decision: RedirectDecision) -> Response:
    """Turn a decision into an HTTP response; 403/404 carry no Location."""
    if decision.has_location:
        response: Response = RedirectResponse(
            url=decision.destination, status_code=decision.status_code
        )
    else:
        response = Response(status_code=decision.status_code)

    for name, value in decision.headers.items():
        response.headers[name] = value
    return response


def is_skipped(path: str, prefixes: Sequence[str]) -> bool:
    """Whole-segment prefix match: "/health" skips "/health/x" but not "/healthz"."""
    return any(path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in prefixes)


# --- Middleware ---


def install_redirect_middleware(
    app: FastAPI,
    resolver_factory: ResolverFactory,
    skip_prefixes: Sequence[str] = DEFAULT_SKIP_PREFIXES,
) -> None:
    """Register the redirect middleware on an app."""
    prefixes = tuple(skip_prefixes)

    @app.middleware("http")
    async def redirect_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if is_skipped(request.url.path, prefixes):
            return await call_next(request)

        target = request_target(request)
        resolver = resolver_factory()
        decision = await run_in_threadpool(resolver.resolve, target)
        if decision is None:
            return await call_next(request)

        logger.info("Redirecting %s -> %s (%d)", target, decision.destination, decision.status_code)
        return build_response(decision)
