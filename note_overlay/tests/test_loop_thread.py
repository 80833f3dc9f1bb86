from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from note_overlay.loop_thread import EventLoopThread


@pytest.fixture
def loop_thread():
    thread = EventLoopThread("SiteNotes-Test")
    thread.start()
    yield thread
    thread.stop()


def test_run_sync_executes_on_background_thread(loop_thread):
    async def _where() -> str:
        await asyncio.sleep(0)
        return threading.current_thread().name

    assert loop_thread.run_sync(_where()) == "SiteNotes-Test"


def test_call_soon_runs_callback_on_loop(loop_thread):
    done = threading.Event()
    seen = []

    def _callback(value):
        seen.append((value, threading.current_thread().name))
        done.set()

    loop_thread.call_soon(_callback, 7)
    assert done.wait(2.0)
    assert seen == [(7, "SiteNotes-Test")]


def test_submit_logs_failures(loop_thread, caplog):
    async def _boom() -> None:
        raise ValueError("boom")

    with caplog.at_level(logging.WARNING, logger="SiteNotes.Loop"):
        future = loop_thread.submit(_boom(), label="explode")
        assert future is not None
        with pytest.raises(ValueError):
            future.result(2.0)
        # The done callback runs right after the result is set.
        loop_thread.run_sync(asyncio.sleep(0))
    assert any("explode" in record.getMessage() for record in caplog.records)


def test_submit_after_stop_drops_coroutine():
    thread = EventLoopThread("SiteNotes-Stopped")
    thread.start()
    thread.stop()
    assert thread.loop is None

    async def _never() -> None:
        raise AssertionError("should not run")

    assert thread.submit(_never()) is None
    pending = asyncio.sleep(0)
    with pytest.raises(RuntimeError):
        thread.run_sync(pending)
    pending.close()
