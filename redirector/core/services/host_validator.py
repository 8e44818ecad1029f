"""
Redirect-host validation (open-redirect guard).

A destination is only accepted when its host is the serving site's own host
or appears in an allow-list handed in for that single resolution. The
allow-list is built from the matched rule's stored target, never from the
incoming request, so a crafted request cannot pick an external host.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urlsplit

from redirector.core.errors import HostNotAllowed
from redirector.core.services.canonical import ALLOWED_SCHEMES, is_valid_host

_UNSAFE_CHARS = re.compile(r"[\x00-\x20\x7f-\x9f\\]")
_WWW_PREFIX = re.compile(r"^www\.", re.IGNORECASE)


def host_variants(host: str) -> frozenset[str]:
    """Bare host and its ``www.`` twin, lower-cased."""
    bare = _WWW_PREFIX.sub("", host.lower())
    return frozenset({bare, f"www.{bare}"})


def derive_allowed_hosts(target: str, site_host: str | None = None) -> frozenset[str]:
    """
    Hosts a rule target may redirect to.

    Returns an empty set when the target is relative or already points at
    the site's own host.
    """
    try:
        host = urlsplit(target).hostname
    except ValueError:
        return frozenset()

    if not host or (site_host and host == site_host.lower()):
        return frozenset()
    return host_variants(host)


def validate_redirect(
    destination: str,
    *,
    site_host: str,
    allowed_hosts: Iterable[str] = (),
) -> str:
    """
    Check a fully-qualified destination is safe to redirect to.

    Returns:
        The destination, unchanged.

    Raises:
        HostNotAllowed: scheme is not http(s), the URL is malformed, or the
            host is neither the site host nor in ``allowed_hosts``.
    """
    if not destination:
        raise HostNotAllowed(destination, "empty destination")

    if _UNSAFE_CHARS.search(destination):
        raise HostNotAllowed(destination, "illegal characters")

    try:
        parts = urlsplit(destination)
        parts.port
    except ValueError as e:
        raise HostNotAllowed(destination, "unparseable URL") from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise HostNotAllowed(destination, f"scheme '{parts.scheme}' not allowed")

    if not parts.netloc or not is_valid_host(parts.hostname):
        raise HostNotAllowed(destination, "missing or invalid host")

    if "@" in parts.netloc:
        raise HostNotAllowed(destination, "credentials in URL")

    host = (parts.hostname or "").lower()
    allowed = {site_host.lower(), *(h.lower() for h in allowed_hosts)}
    if host not in allowed:
        raise HostNotAllowed(destination, f"host '{host}' not allowed")

    return destination
