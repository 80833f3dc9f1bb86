"""Asyncio loop on a background thread for the note core; Qt stays on the main thread."""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

_LOGGER = logging.getLogger("SiteNotes.Loop")


class EventLoopThread:
    """Owns one event loop; every core object lives and runs on it."""

    def __init__(self, name: str = "SiteNotes-Core") -> None:
        self._name = name
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready = threading.Event()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._thread_main, name=self._name, daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)

    def stop(self, timeout: float = 5.0) -> None:
        loop = self._loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(loop.stop)
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                _LOGGER.warning("Thread %s did not exit cleanly within %.1fs", self._name, timeout)
        self._thread = None

    def submit(self, coro: Awaitable[Any], *, label: str = "task") -> Optional[concurrent.futures.Future]:
        """Schedule ``coro`` on the loop; failures are logged, never raised into the caller."""
        loop = self._loop
        if loop is None or not loop.is_running():
            _LOGGER.debug("Dropping %s; core loop is not running", label)
            if asyncio.iscoroutine(coro):
                coro.close()
            return None
        future = asyncio.run_coroutine_threadsafe(coro, loop)  # type: ignore[arg-type]
        future.add_done_callback(lambda done: self._log_failure(done, label))
        return future

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        loop = self._loop
        if loop is None or not loop.is_running():
            _LOGGER.debug("Dropping callback %s; core loop is not running", getattr(callback, "__name__", callback))
            return
        loop.call_soon_threadsafe(callback, *args)

    def run_sync(self, coro: Awaitable[Any], timeout: Optional[float] = 5.0) -> Any:
        """Run ``coro`` on the loop and wait for its result (startup/shutdown only)."""
        loop = self._loop
        if loop is None or not loop.is_running():
            raise RuntimeError("core loop is not running")
        return asyncio.run_coroutine_threadsafe(coro, loop).result(timeout)  # type: ignore[arg-type]

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            self._loop = None

    @staticmethod
    def _log_failure(future: concurrent.futures.Future, label: str) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            _LOGGER.warning("Core %s failed: %s", label, exc, exc_info=exc)
