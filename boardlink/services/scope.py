"""Ownership of every timer and background task of a session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger("boardlink.scope")


class ScopeReleased(RuntimeError):
    """Raised when scheduling work on a scope that was already released."""


class CancellationScope:
    """Tracks timer handles and tasks so one call can cancel all of them.

    Release is idempotent and cascades to child scopes. Timer callbacks are
    wrapped so a callback can never run once its scope is released, even if
    the handle already left the loop's ready queue.
    """

    def __init__(self, name: str, *, parent: CancellationScope | None = None) -> None:
        self.name = name
        self._parent = parent
        self._handles: set[asyncio.TimerHandle] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._children: set[CancellationScope] = set()
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def pending(self) -> int:
        """Number of live handles and tasks, children included."""
        own = len(self._handles) + sum(1 for task in self._tasks if not task.done())
        return own + sum(child.pending for child in self._children)

    def _ensure_open(self) -> None:
        if self._released:
            raise ScopeReleased(f"scope {self.name!r} already released")

    def child(self, name: str) -> CancellationScope:
        self._ensure_open()
        scope = CancellationScope(f"{self.name}/{name}", parent=self)
        self._children.add(scope)
        return scope

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        self._ensure_open()
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle

        def _fire() -> None:
            self._handles.discard(handle)
            if self._released:
                return
            callback()

        handle = loop.call_later(delay, _fire)
        self._handles.add(handle)
        return handle

    def cancel(self, handle: asyncio.TimerHandle | None) -> None:
        if handle is None:
            return
        handle.cancel()
        self._handles.discard(handle)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        if self._released:
            coro.close()
            self._ensure_open()
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def release(self) -> int:
        """Cancel everything owned by this scope. Returns the cancel count."""
        if self._released:
            return 0
        self._released = True
        cancelled = 0
        for child in list(self._children):
            cancelled += child.release()
        self._children.clear()
        for handle in list(self._handles):
            handle.cancel()
            cancelled += 1
        self._handles.clear()
        current = asyncio.current_task() if _loop_running() else None
        for task in list(self._tasks):
            if task is current or task.done():
                continue
            task.cancel()
            cancelled += 1
        self._tasks.clear()
        if self._parent is not None:
            self._parent._children.discard(self)
        if cancelled:
            logger.debug("Released scope %s (%d cancelled)", self.name, cancelled)
        return cancelled


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


__all__ = ["CancellationScope", "ScopeReleased"]
