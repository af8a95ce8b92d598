"""
Supervised fire-and-forget work for Greenlight.

TaskSupervisor runs units of work off the request path. A caller hands over
a callable and returns immediately; it never observes completion or result.

Sync callables run on a dedicated thread pool so slow I/O (SMTP) never
blocks the event loop. Coroutine functions run as event-loop tasks that
are not children of the request, so cancelling the request does not
cancel them.

Invariants:
    - A fault raised by a unit is logged and never re-raised
    - The scheduling caller is unaffected by a unit's outcome
    - shutdown() does not wait for detached units

How to change safely:
    - Keep every execution path wrapped by _supervise()/_supervise_async()
    - Never return the underlying future to callers
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Executor that isolates background units from their initiator.

    Attributes:
        name: Label used in thread names and log records

    Example:
        >>> supervisor = TaskSupervisor(max_workers=4)
        >>> supervisor.run(mailer.send, "alice@example.com", "user_welcome.tmpl", data)
        >>> supervisor.shutdown()
    """

    def __init__(self, max_workers: int = 4, name: str = "background") -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"greenlight-{name}",
        )
        self._lock = threading.Lock()
        self._pending: set[Future | asyncio.Task] = set()
        self._closed = False
        self._failed_count = 0
        self._completed_count = 0

    @property
    def in_flight(self) -> int:
        """Number of units scheduled but not finished."""
        with self._lock:
            return len(self._pending)

    @property
    def failed_count(self) -> int:
        """Number of units that raised."""
        return self._failed_count

    @property
    def completed_count(self) -> int:
        """Number of units that finished, successfully or not."""
        return self._completed_count

    def run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Schedule fn(*args, **kwargs) and return immediately.

        Coroutine functions are scheduled on the running event loop; plain
        callables go to the thread pool.

        Raises:
            RuntimeError: If the supervisor has been shut down, or fn is a
                coroutine function and no event loop is running.
        """
        label = getattr(fn, "__qualname__", repr(fn))

        with self._lock:
            if self._closed:
                raise RuntimeError(f"TaskSupervisor {self.name!r} is shut down")

            if inspect.iscoroutinefunction(fn):
                loop = asyncio.get_running_loop()
                handle: Future | asyncio.Task = loop.create_task(
                    self._supervise_async(label, fn, args, kwargs)
                )
            else:
                handle = self._executor.submit(self._supervise, label, fn, args, kwargs)
            self._pending.add(handle)

        handle.add_done_callback(self._discard)

    def _discard(self, handle: Future | asyncio.Task) -> None:
        with self._lock:
            self._pending.discard(handle)

    def _supervise(
        self,
        label: str,
        fn: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        try:
            fn(*args, **kwargs)
        except Exception as e:
            self._record_failure(label, e)
        finally:
            with self._lock:
                self._completed_count += 1

    async def _supervise_async(
        self,
        label: str,
        fn: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        try:
            await fn(*args, **kwargs)
        except Exception as e:
            self._record_failure(label, e)
        finally:
            with self._lock:
                self._completed_count += 1

    def _record_failure(self, label: str, error: Exception) -> None:
        with self._lock:
            self._failed_count += 1
        logger.error(
            f"Background task failed: {error}",
            exc_info=error,
            extra={"supervisor": self.name, "task": label},
        )

    def shutdown(self) -> None:
        """Stop accepting work without waiting for in-flight units.

        Queued thread-pool units that have not started are cancelled.
        Running units are abandoned and finish (or not) on their own.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            abandoned = len(self._pending)

        self._executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            "TaskSupervisor shut down",
            extra={"supervisor": self.name, "abandoned": abandoned},
        )
