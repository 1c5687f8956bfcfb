"""Fetching and caching of the public reference documents tools read."""

import time
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

import httpx
import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class TTLCache(Generic[T]):
    """A keyed cache whose entries expire ``ttl`` seconds after being stored."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        self._entries.clear()


def doc_export_url(doc_id: str) -> str:
    return f"https://docs.google.com/document/d/{doc_id}/export?format=txt"


def sheet_csv_url(sheet_id: str, sheet_name: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq?tqx=out:csv&sheet={sheet_name}"


class DocumentSource:
    """Fetches a public document as text, caching the body for ``cache.ttl`` seconds.

    Parsed representations can be stored alongside the raw text through
    :meth:`get_parsed`, so parsing only reruns when the text is refetched.
    """

    def __init__(
        self,
        name: str,
        url: str,
        cache: TTLCache[Any],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ) -> None:
        self.name = name
        self.url = url
        self.cache = cache
        self._client = client
        self._timeout = timeout

    async def _download(self) -> str:
        if self._client is not None:
            response = await self._client.get(self.url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self.url, follow_redirects=True)
        response.raise_for_status()
        return response.text

    async def get_text(self) -> str:
        cached = self.cache.get(self.url)
        if cached is not None:
            logger.debug("document_cache_hit", document=self.name)
            return cached
        logger.info("document_fetch", document=self.name)
        text = await self._download()
        self.cache.set(self.url, text)
        logger.info("document_fetched", document=self.name, length=len(text))
        return text

    async def get_parsed(self, parser: Callable[[str], T]) -> T:
        key = f"{self.url}#parsed"
        parsed = self.cache.get(key)
        if parsed is not None:
            return parsed
        parsed = parser(await self.get_text())
        self.cache.set(key, parsed)
        return parsed
