"""Player headlines from the Google News RSS search."""

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import feedparser
import requests

from src.api.responses import json_endpoint
from src.data_pipeline.config import (
    HTTP_TIMEOUT_SECONDS,
    NEWS_CACHE_SECONDS,
    NEWS_MAX_ITEMS,
    NEWS_RSS_URL,
    USER_AGENT,
)
from src.draft_manager.draft_rules import require

logger = logging.getLogger(__name__)


class NewsCache:
    """In-process headline cache with max-age expiry."""

    def __init__(
        self,
        max_age_seconds: Optional[float] = NEWS_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[Dict[str, str]]]] = {}

    def load(self, key: str) -> Optional[List[Dict[str, str]]]:
        """Cached items if present and still fresh."""
        entry = self._entries.get(key.lower())
        if entry is None:
            return None
        saved_at, items = entry
        if self.max_age_seconds is not None and self._clock() - saved_at > self.max_age_seconds:
            del self._entries[key.lower()]
            return None
        return list(items)

    def save(self, key: str, items: List[Dict[str, str]]) -> None:
        self._entries[key.lower()] = (self._clock(), list(items))


def parse_headlines(rss_text: str, limit: int = NEWS_MAX_ITEMS) -> List[Dict[str, str]]:
    """``[{title, url, publishedAt}]`` for the first *limit* linked items."""
    feed = feedparser.parse(rss_text or "")
    items = []
    for entry in feed.entries:
        title = (entry.get("title") or "").strip()
        url = (entry.get("link") or "").strip()
        if not title or not url:
            continue
        items.append({"title": title, "url": url, "publishedAt": entry.get("published", "")})
        if len(items) >= limit:
            break
    return items


class NewsClient:
    """Fetches headlines for a player; any failure is an empty list."""

    def __init__(self, session: Optional[requests.Session] = None, cache: Optional[NewsCache] = None):
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else NewsCache()

    def headlines(self, name: str) -> List[Dict[str, str]]:
        cached = self.cache.load(name)
        if cached is not None:
            return cached
        try:
            response = self.session.get(
                NEWS_RSS_URL,
                params={"q": f"{name} NFL"},
                headers={"User-Agent": USER_AGENT},
                timeout=HTTP_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("News lookup for %s failed: %s", name, e)
            return []
        items = parse_headlines(response.text)
        self.cache.save(name, items)
        return items


_default_client: Optional[NewsClient] = None


def default_client() -> NewsClient:
    global _default_client
    if _default_client is None:
        _default_client = NewsClient()
    return _default_client


@json_endpoint
def player_news(params: Optional[Mapping[str, Any]], client: Optional[NewsClient] = None):
    name = require((params or {}).get("name"), "name")
    items = (client or default_client()).headlines(name)
    return {"ok": True, "name": name, "items": items}
