"""
URL canonicalization and fingerprinting for redirect matching.

Matching is host-agnostic and case-insensitive:
- scheme, host and fragment are dropped
- trailing slashes are stripped from the path (root stays "/")
- percent-encoding is normalised (decoded once, re-encoded uppercase)
- query segments are stably sorted by key, at write time and match time
- the lookup key is an MD5 digest of the lower-cased canonical string

Every function here is pure; invalid input raises InvalidURL.
"""

from __future__ import annotations

import hashlib
import ipaddress
import re
from urllib.parse import SplitResult, quote, unquote, urlsplit, urlunsplit

from redirector.core.errors import InvalidURL

__all__ = [
    "ALLOWED_SCHEMES",
    "add_leading_slash",
    "canonicalize",
    "canonicalize_from",
    "fingerprint",
    "is_valid_host",
    "normalise_target",
    "query_key",
    "sanitise",
    "split_query",
]

ALLOWED_SCHEMES = frozenset({"http", "https"})

_PATH_SAFE = "/:@!$&'()*+,;=-._~"
_QUERY_SAFE = "/:@!$'()*+,;=-._~?[]"

# ASCII controls, space and the characters RFC 3986 never allows unescaped.
# Square brackets are tolerated because PHP-style array params use them.
_ILLEGAL_CHARS = re.compile(r'[\x00-\x20\x7f-\x9f"<>\\^`{|}]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_BAD_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")
# Left escaped after decoding: would break the reference or start a query.
_UNSAFE_DECODED = re.compile(r'[ "<>\\^`{|}?#]|%(?![0-9A-Fa-f]{2})')
_HOST_LABEL = re.compile(r"^[^\W_](?:[\w-]*[^\W_])?$")


# --- Helpers ---


def add_leading_slash(path: str) -> str:
    """Collapse any run of leading slashes to exactly one."""
    return "/" + path.lstrip("/")


def split_query(query: str) -> list[str]:
    """Split a raw query string into its non-empty ``key=value`` segments."""
    return [segment for segment in query.split("&") if segment]


def query_key(segment: str) -> str:
    """Decoded key of a query segment."""
    return unquote(segment.partition("=")[0])


def is_valid_host(host: str | None) -> bool:
    """Check a hostname (or IP literal) is syntactically usable."""
    if not host:
        return False

    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass

    labels = host.rstrip(".").split(".")
    return all(_HOST_LABEL.match(label) for label in labels)


def _require_string(raw: object) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidURL(raw, "URL needs to be a non empty string")
    return raw.strip()


def _check_characters(raw: str, value: str) -> None:
    if _ILLEGAL_CHARS.search(value):
        raise InvalidURL(raw, "The URL contains invalid characters")
    if _BAD_PERCENT.search(value):
        raise InvalidURL(raw, "The URL contains a malformed percent-encoding")


def _decode_once(raw: str, value: str) -> str:
    try:
        decoded = unquote(value, errors="strict")
    except UnicodeDecodeError as e:
        raise InvalidURL(raw, "The URL contains undecodable percent-encoding") from e

    if _CONTROL_CHARS.search(decoded):
        raise InvalidURL(raw, "The URL contains control characters")
    return decoded


def _split(raw: str, value: str) -> SplitResult:
    try:
        parts = urlsplit(value)
    except ValueError as e:
        raise InvalidURL(raw, "The URL could not be parsed") from e

    if parts.scheme and parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidURL(raw, f"Unsupported URL scheme '{parts.scheme}'")
    if parts.scheme and not parts.netloc:
        raise InvalidURL(raw, "The URL has a scheme but no host")
    if parts.netloc:
        if not is_valid_host(parts.hostname):
            raise InvalidURL(raw, "The URL host is invalid")
        try:
            parts.port
        except ValueError as e:
            raise InvalidURL(raw, "The URL port is invalid") from e
    return parts


def _normalise_path(raw: str, path: str) -> str:
    return quote(_decode_once(raw, path), safe=_PATH_SAFE)


def _readable_path(raw: str, path: str) -> str:
    decoded = _decode_once(raw, path)
    return _UNSAFE_DECODED.sub(lambda m: quote(m.group(0), safe=""), decoded)


def _normalise_query(raw: str, query: str) -> str:
    segments = [quote(_decode_once(raw, s), safe=_QUERY_SAFE) for s in split_query(query)]
    # sorted() is stable, so repeated keys keep their relative order
    return "&".join(sorted(segments, key=query_key))


def _strip_trailing_slash(path: str) -> str:
    if len(path) > 1:
        return path.rstrip("/") or "/"
    return path


# --- Normalizer ---


def sanitise(raw: str) -> str:
    """
    Clean a path or absolute URL, dropping its query and fragment.

    Percent-encoded octets are decoded exactly once, so non-ASCII paths come
    back readable (``%E3%81%AE`` -> ``の``). Only characters that cannot
    appear bare in a URL reference are escaped again, spaces as ``%20``.
    Relative values get exactly one leading slash. A trailing slash is
    stripped.

    Nothing in the resolver calls this; it is public API for authoring
    tools that display or compare human-readable paths. Stored targets go
    through normalise_target, which keeps them ASCII for Location headers.
    """
    value = _require_string(raw)
    _check_characters(raw, value)

    base = value.partition("#")[0].partition("?")[0]
    parts = _split(raw, base)

    if parts.scheme:
        path = _strip_trailing_slash(_readable_path(raw, parts.path))
        if path == "/":
            path = ""
        return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))

    path = add_leading_slash(_readable_path(raw, base))
    return _strip_trailing_slash(path)


def canonicalize(raw: str) -> str:
    """
    Canonical ``path[?query]`` form of a URL, used as the match key.

    Raises:
        InvalidURL: input is not URL-ish, or has neither path nor query.
    """
    value = _require_string(raw)
    _check_characters(raw, value)
    parts = _split(raw, value)

    if not parts.path and not parts.query:
        raise InvalidURL(raw, "The URL contains neither a path nor query string")

    path = _strip_trailing_slash(_normalise_path(raw, parts.path))
    query = _normalise_query(raw, parts.query)

    if not path and not query:
        raise InvalidURL(raw, "The URL contains neither a path nor query string")

    return f"{path}?{query}" if query else path


def canonicalize_from(raw: str) -> str:
    """Canonical form of a rule's "from" URL as typed by an author."""
    value = _require_string(raw)
    if not urlsplit(value).scheme:
        value = add_leading_slash(value)
    return canonicalize(value)


def normalise_target(raw: str) -> str:
    """
    Normalise a rule destination before it is stored.

    Absolute http(s) URLs keep scheme and host; anything else becomes a
    site-relative path with one leading slash. Host-looking values without a
    scheme (``www.example.com``) are rejected rather than guessed.
    """
    value = _require_string(raw)
    _check_characters(raw, value)
    parts = _split(raw, value)

    if parts.scheme:
        path = _normalise_path(raw, parts.path)
        query = _normalise_query(raw, parts.query)
        return urlunsplit(
            (parts.scheme.lower(), parts.netloc.lower(), path, query, parts.fragment)
        )

    first_segment, slash, _ = value.partition("/")
    if not value.startswith("/") and "." in first_segment:
        if first_segment.lower().startswith("www.") or (slash and is_valid_host(first_segment)):
            raise InvalidURL(raw, "Please provide URL scheme (http/https)")

    base, hash_sign, fragment = value.partition("#")
    path, _, query = base.partition("?")
    path = _strip_trailing_slash(add_leading_slash(_normalise_path(raw, path)))
    query = _normalise_query(raw, query)

    target = f"{path}?{query}" if query else path
    return f"{target}#{fragment}" if hash_sign else target


# --- Fingerprint ---


def fingerprint(canonical: str) -> str:
    """32-char hex lookup key for a canonical URL; case-insensitive."""
    return hashlib.md5(canonical.lower().encode("utf-8"), usedforsecurity=False).hexdigest()
