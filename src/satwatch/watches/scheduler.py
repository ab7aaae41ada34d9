"""Watch scheduler: runs poll cycles on an interval and on demand.

Cycle requests flow through a single-slot queue to a single worker, so two
cycles can never overlap. A request made while another is still queued is
folded into it; a request made while a cycle is running is queued and runs
once that cycle finishes.
"""

import asyncio
import logging

from satwatch.watches.cycle import PollCycle
from satwatch.watches.types import CycleReport

logger = logging.getLogger(__name__)


class _RunRequest:
    def __init__(self, reason: str) -> None:
        self.reason = reason
        self.waiters: list[asyncio.Future[CycleReport]] = []


class WatchScheduler:
    """Drives a PollCycle from a fixed interval and a manual trigger.

    Example:
        scheduler = WatchScheduler(cycle, interval=3600)
        await scheduler.start()

        # from a command handler
        report = await scheduler.run_now()

        await scheduler.stop()
    """

    def __init__(
        self,
        cycle: PollCycle,
        interval: float,
        *,
        run_on_start: bool = True,
    ):
        self._cycle = cycle
        self._interval = interval
        self._run_on_start = run_on_start
        self._queue: asyncio.Queue[_RunRequest] = asyncio.Queue(maxsize=1)
        # The request sitting in the queue, if any
        self._pending: _RunRequest | None = None
        self._running = False
        self._in_flight = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: asyncio.Task | None = None
        self._ticker: asyncio.Task | None = None
        self._cycle_count = 0
        self._last_report: CycleReport | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def busy(self) -> bool:
        """Whether a cycle is executing right now."""
        return self._in_flight

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._worker = asyncio.create_task(self._work_loop())
        self._ticker = asyncio.create_task(self._tick_loop())
        logger.info(
            "watch_scheduler_started",
            extra={
                "watch.interval_seconds": self._interval,
                "watch.run_on_start": self._run_on_start,
            },
        )

    async def stop(self) -> None:
        """Stop triggering cycles. An in-flight cycle is allowed to finish."""
        if not self._running:
            return
        self._running = False

        if self._ticker:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None

        if self._worker:
            await self._idle.wait()
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        if self._pending is not None:
            self._abandon(self._pending)
            self._pending = None

        logger.info("watch_scheduler_stopped")

    def request_run(self, reason: str = "manual") -> asyncio.Future[CycleReport]:
        """Ask for a cycle without waiting for it.

        Returns a future resolved with the report of the cycle that served
        this request (or its exception).
        """
        if not self._running:
            raise RuntimeError("watch scheduler is not running")
        waiter: asyncio.Future[CycleReport] = asyncio.get_running_loop().create_future()
        self._submit(reason).waiters.append(waiter)
        return waiter

    async def run_now(self) -> CycleReport:
        """Trigger a cycle and wait for its report.

        Raises:
            PersistenceError: If that cycle's commit failed.
        """
        return await self.request_run("manual")

    def _submit(self, reason: str) -> _RunRequest:
        if self._pending is not None:
            logger.debug(
                "watch_cycle_request_coalesced",
                extra={
                    "watch.trigger": reason,
                    "watch.pending_trigger": self._pending.reason,
                },
            )
            return self._pending
        request = _RunRequest(reason)
        # The slot is empty whenever nothing is pending.
        self._queue.put_nowait(request)
        self._pending = request
        return request

    async def _work_loop(self) -> None:
        while True:
            request = await self._queue.get()
            self._pending = None
            if not self._running:
                self._abandon(request)
                return

            self._in_flight = True
            self._idle.clear()
            self._cycle_count += 1
            logger.debug(
                "watch_cycle_triggered",
                extra={"watch.trigger": request.reason, "watch.cycle": self._cycle_count},
            )
            try:
                report = await self._cycle.run()
            except Exception as e:
                logger.error(
                    "watch_cycle_failed",
                    extra={"watch.trigger": request.reason, "error.message": str(e)},
                )
                for waiter in request.waiters:
                    if not waiter.done():
                        waiter.set_exception(e)
            else:
                self._last_report = report
                for waiter in request.waiters:
                    if not waiter.done():
                        waiter.set_result(report)
            finally:
                self._in_flight = False
                self._idle.set()

    async def _tick_loop(self) -> None:
        if self._run_on_start:
            self._submit("startup")
        while True:
            await asyncio.sleep(self._interval)
            self._submit("interval")

    @staticmethod
    def _abandon(request: _RunRequest) -> None:
        for waiter in request.waiters:
            waiter.cancel()
