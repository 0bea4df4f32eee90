"""HTTP application: configuration, middleware, routes and the server entry point."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import itertools
import logging
import os
import socket
import time
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

from aiohttp import web

from .env import get_string
from .responses import ErrorHandler, json_response
from .services import QuizService, UserService
from .ws_handlers import WsHandlers

VERSION = "0.0.1"
REQUEST_TIMEOUT = 60.0

_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@dataclass
class Config:
    """Server settings."""

    addr: str = ":8080"
    env: str = ""
    rdb_addr: str = "localhost:6379"

    @classmethod
    def from_env(cls) -> Config:
        """Build the configuration from ``APP_ADDR`` and ``REDIS_ADDR``."""
        return cls(
            addr=get_string("APP_ADDR", ":8080"),
            rdb_addr=get_string("REDIS_ADDR", "localhost:6379"),
        )


def _split_addr(addr: str) -> tuple[str | None, int]:
    host, _, port = addr.rpartition(":")
    host = host.strip("[]")
    return (host or None), (int(port) if port else 80)


class Application:
    """Wires the services and handlers together and serves them over HTTP."""

    def __init__(
        self,
        config: Config | None = None,
        logger: logging.Logger | None = None,
        static_dir: str | os.PathLike[str] = "static",
    ) -> None:
        self.config = config or Config()
        self.log = logger or logging.getLogger(__name__)
        self.static_dir = Path(static_dir)
        self.request_timeout = REQUEST_TIMEOUT
        self.error_handler = ErrorHandler(self.log)
        self.user_service = UserService(self.log)
        self.quiz_service = QuizService(self.log)
        self.ws_handlers = WsHandlers(
            self.log, self.error_handler, self.user_service, self.quiz_service
        )
        self._request_ids = itertools.count(1)
        self._request_prefix = f"{socket.gethostname()}/{os.urandom(5).hex()}"

    async def health_check_handler(self, request: web.Request) -> web.Response:
        data = {"status": "ok", "Env": self.config.env, "version": VERSION}
        try:
            return json_response(200, data)
        except (TypeError, ValueError) as exc:
            return self.error_handler.internal_server_error(request, exc)

    @web.middleware
    async def _request_id(self, request: web.Request, handler: _Handler) -> web.StreamResponse:
        request_id = request.headers.get("X-Request-Id") or (
            f"{self._request_prefix}-{next(self._request_ids):06d}"
        )
        request["request_id"] = request_id
        return await handler(request)

    @web.middleware
    async def _real_ip(self, request: web.Request, handler: _Handler) -> web.StreamResponse:
        real_ip = request.headers.get("True-Client-IP") or request.headers.get("X-Real-IP")
        if not real_ip and "X-Forwarded-For" in request.headers:
            real_ip = request.headers["X-Forwarded-For"].split(",")[0].strip()
        request["real_ip"] = real_ip or request.remote
        return await handler(request)

    @web.middleware
    async def _access_log(self, request: web.Request, handler: _Handler) -> web.StreamResponse:
        started = time.perf_counter()
        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as exc:
            status = exc.status
            raise
        finally:
            self.log.info(
                '"%s %s" from %s - %d in %.3fms',
                request.method,
                request.path_qs,
                request.get("real_ip", request.remote),
                status,
                (time.perf_counter() - started) * 1000,
            )

    @web.middleware
    async def _recoverer(self, request: web.Request, handler: _Handler) -> web.StreamResponse:
        try:
            return await handler(request)
        except (web.HTTPException, asyncio.CancelledError):
            raise
        except Exception:
            self.log.exception("panic while serving %s %s", request.method, request.path)
            return web.Response(status=500)

    @web.middleware
    async def _timeout(self, request: web.Request, handler: _Handler) -> web.StreamResponse:
        try:
            return await asyncio.wait_for(handler(request), self.request_timeout)
        except asyncio.TimeoutError:
            return web.Response(status=504, text="Gateway Timeout")

    def mount(self) -> web.Application:
        """The versioned API with request middleware."""
        app = web.Application(
            middlewares=[
                self._request_id,
                self._real_ip,
                self._access_log,
                self._recoverer,
                self._timeout,
            ]
        )
        app.router.add_get("/v1/health", self.health_check_handler)
        return app

    async def _ws_listener(self, _app: web.Application) -> AsyncIterator[None]:
        self.log.info("Starting websocket channel listener")
        task = asyncio.create_task(self.ws_handlers.listen_to_ws_channel())
        yield
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _missing_static(self, request: web.Request) -> web.Response:
        raise web.HTTPNotFound()

    def routes(self) -> web.Application:
        """The websocket endpoint and static files, with the message loop running."""
        app = web.Application()
        app.router.add_get("/ws", self.ws_handlers.ws_endpoint)
        if self.static_dir.is_dir():
            app.router.add_static("/static/", self.static_dir)
        else:
            app.router.add_get("/static/{path:.*}", self._missing_static)
        app.cleanup_ctx.append(self._ws_listener)
        return app

    def run(self) -> None:
        """Serve :meth:`routes` on the configured address until interrupted."""
        host, port = _split_addr(self.config.addr)
        self.log.info("Starting http server at %s", self.config.addr)
        web.run_app(self.routes(), host=host, port=port, print=None)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="wsquiz",
        description="Run the quiz server (configured by APP_ADDR and REDIS_ADDR).",
    )
    parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    app = Application(Config.from_env())
    try:
        app.run()
    except OSError as exc:
        raise SystemExit(f"Error starting Application: {exc}") from exc


if __name__ == "__main__":
    main()