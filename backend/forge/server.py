"""Serving interface: the FastAPI application run by uvicorn on a background thread."""

from __future__ import annotations

import asyncio
import threading
import time

import uvicorn
from loguru import logger

from .db import DatabaseHandle, resolve_main_database
from .errors import ForgeError

_STARTUP_TIMEOUT_SECONDS = 10.0


class HttpServer:
    def __init__(self, host: str = "127.0.0.1", port: int = 0, log_level: str = "warning") -> None:
        from .main import create_app

        config = uvicorn.Config(create_app(), host=host, port=port, log_level=log_level)
        self._server = uvicorn.Server(config)
        self._thread: threading.Thread | None = None
        self.host = host

    @property
    def started(self) -> bool:
        return self._server.started

    @property
    def port(self) -> int:
        if not self._server.started or not self._server.servers:
            raise ForgeError("HTTP server is not running")
        return self._server.servers[0].sockets[0].getsockname()[1]

    def start(self) -> HttpServer:
        self._thread = threading.Thread(target=self._server.run, name="forge-http", daemon=True)
        self._thread.start()
        deadline = time.monotonic() + _STARTUP_TIMEOUT_SECONDS
        while not self._server.started:
            if not self._thread.is_alive():
                raise ForgeError(f"HTTP server failed to bind {self.host}")
            if time.monotonic() > deadline:
                self.stop()
                raise ForgeError("HTTP server did not start in time")
            time.sleep(0.05)
        logger.info("HTTP server listening on http://{}:{}", self.host, self.port)
        return self

    def wait(self) -> None:
        if self._thread is not None:
            self._thread.join()

    def stop(self) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=_STARTUP_TIMEOUT_SECONDS)
            self._thread = None


async def init_http_server(db: DatabaseHandle, port: int) -> HttpServer:
    """Serve the API for ``db`` on ``port`` and return once it accepts requests."""

    resolve_main_database(db)
    server = HttpServer(port=port)
    return await asyncio.to_thread(server.start)


__all__ = ["HttpServer", "init_http_server"]
