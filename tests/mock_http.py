"""Minimal stand-ins for requests.Session / requests.Response."""

import json
import threading
from typing import Any, Dict, List, Optional

import requests


class MockResponse:
    """Minimal mock of requests.Response."""

    def __init__(self, payload: Any = None, status_code: int = 200, text: Optional[str] = None) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)
        self.headers: Dict[str, str] = {}

    def json(self) -> Any:
        if self._payload is None and self.text:
            return json.loads(self.text)
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class MockSession:
    """Queue-based mock for requests.Session."""

    def __init__(self, get_responses: Optional[List[Any]] = None) -> None:
        self.get_calls: List[Dict[str, Any]] = []
        self._get_responses = list(get_responses or [])

    def get(self, url: str, **kwargs: Any) -> MockResponse:
        self.get_calls.append({"url": url, "kwargs": kwargs})
        if not self._get_responses:
            raise AssertionError("Unexpected GET call.")
        response = self._get_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class RoutingSession:
    """Answers by URL substring so concurrent fetches can arrive in any order.

    A route maps to a MockResponse, an exception to raise, or a list of
    either, consumed in order (the last one repeats).
    """

    def __init__(self, routes: Dict[str, Any]) -> None:
        self.routes = {k: (list(v) if isinstance(v, list) else [v]) for k, v in routes.items()}
        self.get_calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def get(self, url: str, **kwargs: Any) -> MockResponse:
        with self._lock:
            self.get_calls.append({"url": url, "kwargs": kwargs})
            # Longest match first so ".../teams/1?..." beats ".../teams"
            for pattern in sorted(self.routes, key=len, reverse=True):
                if pattern in url:
                    queue = self.routes[pattern]
                    response = queue.pop(0) if len(queue) > 1 else queue[0]
                    break
            else:
                raise AssertionError(f"Unexpected GET call: {url}")
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, pattern: str) -> int:
        return sum(1 for c in self.get_calls if pattern in c["url"])
