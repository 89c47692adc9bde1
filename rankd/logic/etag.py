"""ETag helpers for ordered collection lists.

A collection's list ETag encodes its version: ``W/"<collection>-v<version>"``.
Clients echo it back in ``If-Match`` on reorder to opt into optimistic
concurrency; the parsed version becomes the store's ``expected_version``.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

_VERSION_TAG_RE = re.compile(r"^(?P<collection>[a-z][a-z0-9_-]{0,63})-v(?P<version>\d+)$")


def collection_etag(collection: str, version: int) -> str:
    """Return the weak list ETag for a collection version."""
    return f'W/"{collection}-v{int(version)}"'


def _normalize_etag_token(value: str | None) -> str:
    """Return the first opaque tag from an If-Match/ETag header value.

    - Split on commas only when not inside quotes.
    - Strip the weak validator prefix ``W/``; weak and strong compare equal.
    - Raise ValueError on unbalanced quotes.
    - Skip empty tokens; return "" when none is found.
    - Preserve wildcard '*'.
    """
    if value is None:
        return ""
    s = value.strip()
    if not s:
        return ""
    if s == "*":
        return s

    in_quote = False
    buf: list[str] = []
    parts: list[str] = []
    for ch in s:
        if ch == '"':
            in_quote = not in_quote
            buf.append(ch)
        elif ch == "," and not in_quote:
            parts.append("".join(buf).strip())
            buf.clear()
        else:
            buf.append(ch)
    if in_quote:
        raise ValueError("unterminated quoted string in If-Match header")
    parts.append("".join(buf).strip())

    for raw in parts:
        t = raw.strip()
        if len(t) >= 2 and t[:2].upper() == "W/":
            t = t[2:].lstrip()
        if len(t) >= 2 and t.startswith('"') and t.endswith('"'):
            t = t[1:-1].strip()
        if t:
            return t
    return ""


def expected_version_from_if_match(collection: str, if_match: str | None) -> Optional[int]:
    """Translate an If-Match header into the store's expected version.

    Returns None when the header is absent, blank, or ``*`` (no version
    precondition). Raises ValueError when the header is malformed or names a
    different collection.
    """
    token = _normalize_etag_token(if_match)
    if not token or token == "*":
        return None
    m = _VERSION_TAG_RE.fullmatch(token)
    if not m:
        raise ValueError(f"If-Match is not a collection tag: {token!r}")
    if m.group("collection") != collection:
        raise ValueError(f"If-Match names collection {m.group('collection')!r}, not {collection!r}")
    return int(m.group("version"))


__all__ = [
    "collection_etag",
    "expected_version_from_if_match",
]
