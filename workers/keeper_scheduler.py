import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional, Set

from core.domain.entities.keeper_report import KeeperReport
from core.usecases.run_due_executions_use_case import RunDueExecutionsUseCase


class KeeperScheduler:
    """
    In-process timer that runs a keeper pass every `interval_sec`.

    A tick that fires while the previous pass is still running is skipped
    (non-blocking lock check). This only avoids wasted work inside one
    process; double execution across processes is prevented by the claim.
    """

    def __init__(
        self,
        use_case_factory: Callable[[], RunDueExecutionsUseCase],
        interval_sec: float = 900.0,
        initial_delay_sec: float = 10.0,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self._factory = use_case_factory
        self._interval = float(interval_sec)
        self._initial_delay = float(initial_delay_sec)
        self._sleep = sleep_fn
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def is_running_pass(self) -> bool:
        return self._lock.locked()

    async def tick(self) -> Optional[KeeperReport]:
        """Run one pass unless one is already in flight. Returns None when skipped."""
        if self._lock.locked():
            self._logger.info("Previous keeper pass still running, skipping tick")
            return None

        async with self._lock:
            self._logger.info("Starting keeper pass")
            try:
                report = await self._factory().execute()
            except Exception as exc:
                self._logger.exception("Keeper pass error: %s", exc)
                return None
            self._logger.info(
                "Keeper pass complete: processed=%s results=%s",
                report.processed,
                [(r.strategy_id, r.status) for r in report.results],
            )
            return report

    async def _loop(self) -> None:
        await self._sleep(self._initial_delay)
        while True:
            # não aguarda o tick: um pass lento não atrasa o próximo horário
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            await self._sleep(self._interval)

    def start(self) -> None:
        if self._task is None:
            self._logger.info("Starting keeper scheduler every %ss", self._interval)
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._task
            self._task = None
        # a pass already started finishes before the caller closes its clients
        if self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)
