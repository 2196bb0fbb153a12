"""Folder sync session state and timers.

A :class:`SyncSession` exists only while a folder is connected. It owns
the directory handle, the cache of file contents last written or read,
the in-flight write and poll flags and both timers. Closing it cancels
the timers and drops the cache; reads or writes already running finish
on their own.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from todomirror.sync.ports import DirectoryHandle

log = structlog.get_logger()

AsyncCallback = Callable[[], Awaitable[object]]


class Debouncer:
    """Run a coroutine once, ``delay`` seconds after the last trigger."""

    def __init__(self, delay: float, callback: AsyncCallback):
        self.delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._running: set[asyncio.Task[object]] = set()

    @property
    def pending(self) -> bool:
        """True while a trigger is waiting to fire."""
        return self._handle is not None

    def trigger(self) -> None:
        """(Re)start the delay."""
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Drop a pending trigger. A callback already running is left alone."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._callback())
        self._running.add(task)
        task.add_done_callback(self._running.discard)


class PeriodicTimer:
    """Await a coroutine every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, callback: AsyncCallback, name: str = "timer"):
        self.interval = interval
        self.name = name
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._in_callback = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Stop ticking. A tick in progress completes, then the loop exits."""
        self._stopped = True
        if self._task is not None and not self._in_callback:
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                break
            self._in_callback = True
            try:
                await self._callback()
            except Exception:
                log.exception("timer_callback_failed", timer=self.name)
            finally:
                self._in_callback = False


@dataclass
class SyncSession:
    """Everything tied to one connected folder."""

    handle: DirectoryHandle
    # File name -> text last written to or read from that file.
    last_written: dict[str, str] = field(default_factory=dict)
    writing: bool = False
    polling: bool = False
    write_timer: Debouncer | None = None
    poll_timer: PeriodicTimer | None = None
    unsubscribes: list[Callable[[], None]] = field(default_factory=list)
    closed: bool = False

    def close(self) -> None:
        """Cancel timers, drop subscriptions and forget cached contents."""
        if self.poll_timer is not None:
            self.poll_timer.stop()
            self.poll_timer = None
        if self.write_timer is not None:
            self.write_timer.cancel()
            self.write_timer = None
        for unsubscribe in self.unsubscribes:
            unsubscribe()
        self.unsubscribes.clear()
        self.last_written.clear()
        self.writing = False
        self.polling = False
        self.closed = True
