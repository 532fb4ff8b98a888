"""JSON responses and response middleware."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Optional

from werkzeug.wrappers import Response

logger = logging.getLogger(__name__)


def _jsonable(payload: Any) -> Any:
    if hasattr(payload, "to_dict"):
        return payload.to_dict()
    if isinstance(payload, (list, tuple)):
        return [_jsonable(item) for item in payload]
    if isinstance(payload, dict):
        return {key: _jsonable(value) for key, value in payload.items()}
    return payload


def json_response(code: int, payload: Any) -> Response:
    """Return a JSON response; a payload that cannot be encoded gives a bare 500."""
    try:
        body = json.dumps(
            _jsonable(payload), separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        logger.error("Error marshalling JSON: %s", exc)
        return Response(b"", status=500, content_type="application/json")
    return Response(body, status=code, content_type="application/json")


def error_response(code: int, msg: str, err: Optional[BaseException]) -> Response:
    """Log the error and return a JSON body of the form {"error": msg}."""
    if err is not None:
        logger.error("%s", err)
    if code > 499:
        logger.error("Responding with 5XX error: %s", msg)
    return json_response(code, {"error": msg})


def no_cache(app: Callable) -> Callable:
    """Wrap a WSGI application so every response carries Cache-Control: no-store."""

    def middleware(environ: dict, start_response: Callable) -> Iterable[bytes]:
        def start(status: str, headers: list, exc_info: Any = None) -> Callable:
            kept = [(name, value) for name, value in headers if name.lower() != "cache-control"]
            kept.append(("Cache-Control", "no-store"))
            return start_response(status, kept, exc_info)

        return app(environ, start)

    return middleware