"""JSON HTTP responses and the standard error replies."""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any

from aiohttp import web

MAX_BODY_BYTES = 1_048_578

_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


class _DefaultMessageError(Exception):
    default_message = ""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class RenderingTemplateError(_DefaultMessageError):
    default_message = "error rendering template"


class UserIdRequiredError(_DefaultMessageError):
    default_message = "user-name required"


class UserNameRequiredError(_DefaultMessageError):
    default_message = "user-uuid required"


class UserAlreadyConnectedError(_DefaultMessageError):
    default_message = "user already connected, more than one connection is not allowed"


class BodyTooLargeError(ValueError):
    """Raised when a request body exceeds :data:`MAX_BODY_BYTES`."""

    def __init__(self) -> None:
        super().__init__("http: request body too large")


def _default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"unsupported type: {type(obj).__name__}")


def _encode(data: Any) -> bytes:
    text = json.dumps(data, ensure_ascii=False, separators=(",", ":"), allow_nan=False, default=_default)
    for char, escape in _ESCAPES:
        text = text.replace(char, escape)
    return (text + "\n").encode("utf-8")


def write_json(status: int, data: Any) -> web.Response:
    """Build a JSON response; raises ``TypeError``/``ValueError`` if ``data`` cannot be encoded."""
    return web.Response(status=status, body=_encode(data), content_type="application/json")


async def read_json(request: web.Request) -> Any:
    """Decode the first JSON value of the request body, limited to :data:`MAX_BODY_BYTES`."""
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.content.iter_chunked(64 * 1024):
        size += len(chunk)
        if size > MAX_BODY_BYTES:
            raise BodyTooLargeError()
        chunks.append(chunk)
    text = b"".join(chunks).decode("utf-8").lstrip()
    value, _ = json.JSONDecoder().raw_decode(text)
    return value


def write_json_error(status: int, message: str) -> web.Response:
    return write_json(status, {"error": message})


def json_response(status: int, data: Any) -> web.Response:
    return write_json(status, {"data": data})


class ErrorHandler:
    """Logs request failures and produces the matching JSON error responses."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.log = logger or logging.getLogger(__name__)

    def _error_response(self, status: int, message: str) -> web.Response:
        try:
            return write_json_error(status, message)
        except (TypeError, ValueError) as exc:
            self.log.error("failed to write JSON error response: %s", exc)
            response = web.Response(status=500, text="Internal Server Error\n")
            response.headers["X-Content-Type-Options"] = "nosniff"
            return response

    def internal_server_error(self, request: web.Request, error: BaseException) -> web.Response:
        self.log.error("internal error method=%s path=%s error=%s", request.method, request.path, error)
        return self._error_response(500, "the server encountered a problem")

    def forbidden_response(self, request: web.Request) -> web.Response:
        self.log.warning("forbidden method=%s path=%s", request.method, request.path)
        return self._error_response(403, "forbidden")

    def bad_request_response(self, request: web.Request, error: BaseException) -> web.Response:
        self.log.warning("bad request method=%s path=%s error=%s", request.method, request.path, error)
        return self._error_response(400, str(error))

    def conflict_response(self, request: web.Request, error: BaseException) -> web.Response:
        self.log.error("conflict response method=%s path=%s error=%s", request.method, request.path, error)
        return self._error_response(409, str(error))

    def not_found_response(self, request: web.Request, error: BaseException) -> web.Response:
        self.log.warning("not found error method=%s path=%s error=%s", request.method, request.path, error)
        return self._error_response(404, "not found")

    def unauthorized_error_response(self, request: web.Request, error: BaseException) -> web.Response:
        self.log.warning("unauthorized error method=%s path=%s error=%s", request.method, request.path, error)
        return self._error_response(401, "unauthorized")

    def unauthorized_basic_error_response(self, request: web.Request, error: BaseException) -> web.Response:
        self.log.warning(
            "unauthorized basic error method=%s path=%s error=%s", request.method, request.path, error
        )
        response = self._error_response(401, "unauthorized")
        response.headers["WWW-Authenticate"] = 'Basic realm="restricted", charset="UTF-8"'
        return response