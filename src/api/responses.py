"""JSON response helpers shared by every request handler.

Handlers return ``(status_code, body)``. Wrapped in ``json_endpoint`` they
never raise: errors become ``{"ok": False, "error": <message>}`` with the
error's status code (500 when it has none).
"""

import functools
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from src.data_pipeline.ingestion import UpstreamUnavailable
from src.draft_manager.draft_rules import ValidationError

logger = logging.getLogger(__name__)

ApiResponse = Tuple[int, Dict[str, Any]]


class Unauthorized(Exception):
    status_code = 401


class MethodNotAllowed(Exception):
    status_code = 405


def error_response(error: Exception, default_status: int = 500) -> ApiResponse:
    status = getattr(error, "status_code", None)
    if status is None and isinstance(error, UpstreamUnavailable):
        status = 502
    return status or default_status, {"ok": False, "error": str(error) or type(error).__name__}


def json_endpoint(fn: Callable[..., Any]) -> Callable[..., ApiResponse]:
    """Normalise a handler's result to ``(status, body)`` and catch everything."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> ApiResponse:
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            response = error_response(e)
            if response[0] >= 500:
                logger.exception("%s failed", fn.__name__)
            else:
                logger.warning("%s rejected: %s", fn.__name__, e)
            return response
        if isinstance(result, tuple):
            return result
        return 200, result

    return wrapper


def require_method(method: Optional[str], *allowed: str) -> None:
    if method is not None and method.upper() not in allowed:
        raise MethodNotAllowed("Method not allowed")


def header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    for key, value in (headers or {}).items():
        if key.lower() == name.lower():
            return value
    return None


def int_param(params: Optional[Mapping[str, Any]], name: str) -> Optional[int]:
    """Optional integer query/body parameter; junk is a ValidationError."""
    raw = (params or {}).get(name)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer, got {raw!r}") from None


def bool_param(params: Optional[Mapping[str, Any]], name: str) -> bool:
    raw = (params or {}).get(name)
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in ("1", "true", "yes", "on")
