"""Per-session timers and background tasks.

Every timer or helper task a session owns is registered with its
SessionSupervisor. The supervisor is used as an async context manager
around the session's lifetime, so leaving the block on any path (normal
close, transport error, admission failure, unexpected fault) cancels
everything still scheduled.

Usage:
    async with SessionSupervisor(session.id) as supervisor:
        supervisor.schedule_once("admission", 30.0, on_timeout)
        ...
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

TimerCallback = Callable[[], Awaitable[Any]]


class SupervisorClosedError(RuntimeError):
    """Raised when scheduling on a supervisor that has already torn down."""


class SessionSupervisor:
    """Owns the cancellable tasks of a single session."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._closed = False

    async def __aenter__(self) -> "SessionSupervisor":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.cancel_all()

    @property
    def active(self) -> set[str]:
        """Names of tasks that are still running."""
        return {name for name, task in self._tasks.items() if not task.done()}

    def schedule_once(self, name: str, delay: float, callback: TimerCallback) -> None:
        """Run ``callback`` once after ``delay`` seconds unless cancelled first."""

        async def _fire() -> None:
            await asyncio.sleep(delay)
            await callback()

        self._start(name, _fire())

    def schedule_every(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[bool | None]],
    ) -> None:
        """Run ``callback`` every ``interval`` seconds.

        The timer stops when the callback returns False or raises.
        """

        async def _tick() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    keep_going = await callback()
                except Exception as e:
                    logger.warning(
                        "supervised_timer_failed",
                        session_id=self._session_id,
                        timer=name,
                        error=str(e),
                    )
                    return
                if keep_going is False:
                    return

        self._start(name, _tick())

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run a helper coroutine (e.g. a transport reader) under supervision."""
        return self._start(name, coro)

    def cancel(self, name: str) -> bool:
        """Cancel one task by name. Returns True if it was still running."""
        task = self._tasks.pop(name, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("supervised_task_cancelled", session_id=self._session_id, task=name)
        return True

    async def cancel_all(self) -> None:
        """Cancel every task and wait for them to finish unwinding."""
        self._closed = True
        current = asyncio.current_task()
        pending = []
        for name, task in list(self._tasks.items()):
            if not task.done():
                task.cancel()
                if task is not current:
                    pending.append(task)
            self._tasks.pop(name, None)

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug(
                "supervised_tasks_released",
                session_id=self._session_id,
                count=len(pending),
            )

    def _start(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        if self._closed:
            coro.close()
            raise SupervisorClosedError(
                f"Supervisor for session {self._session_id} is closed"
            )
        self.cancel(name)
        task = asyncio.create_task(coro, name=f"{self._session_id}:{name}")
        self._tasks[name] = task
        return task
