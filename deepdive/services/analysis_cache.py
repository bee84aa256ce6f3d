from __future__ import annotations

import base64
import binascii
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from deepdive.models.schemas import AnalysisResult
from deepdive.services.locks import KeyedLocks


def canonical_url(url: str) -> str:
    parsed = urlsplit(url.strip())
    scheme = (parsed.scheme or "https").lower()
    netloc = parsed.netloc.lower()
    path = parsed.path or "/"
    query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def cache_key(url: str) -> str:
    """Reversible key for ``url``: urlsafe base64 of the canonical form."""
    return base64.urlsafe_b64encode(canonical_url(url).encode("utf-8")).decode("ascii")


def decode_cache_key(key: str) -> str:
    """Recover the URL behind a key.

    Accepts the urlsafe form produced by ``cache_key`` as well as plain
    base64 (``btoa(url)`` on the extension side), with or without padding.
    Raises ``ValueError`` for anything else.
    """
    cleaned = key.strip().replace("+", "-").replace("/", "_")
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        url = base64.urlsafe_b64decode(cleaned.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError(f"Not a valid URL key: {key!r}") from exc
    if "://" not in url:
        raise ValueError(f"Not a valid URL key: {key!r}")
    return url


def normalize_key(key: str) -> str:
    """Map any accepted key spelling onto the canonical ``cache_key`` form."""
    return cache_key(decode_cache_key(key))


class AnalysisCache(Protocol):
    async def get(self, key: str) -> AnalysisResult | None: ...
    async def set(self, key: str, result: AnalysisResult) -> None: ...
    async def size(self) -> int: ...


class InMemoryAnalysisCache:
    """Process-local cache of analysis results, no eviction."""

    def __init__(self):
        self._entries: dict[str, AnalysisResult] = {}
        self._locks = KeyedLocks()

    async def get(self, key: str) -> AnalysisResult | None:
        return self._entries.get(key)

    async def set(self, key: str, result: AnalysisResult) -> None:
        async with self._locks.hold(key):
            self._entries[key] = result

    async def size(self) -> int:
        return len(self._entries)
