"""Poll cycle: one full pass over every watch subscription.

The cycle copies the subscription and location lists under a brief read
acquisition, then fetches, decides and delivers with no lock held, so
commands can keep mutating state while network calls are in flight. Delivered
windows and pruned histories are written back in a single write acquisition
at the end.

Failures are isolated per subscription: a failed fetch or delivery is logged
and recorded in the report, and the cycle moves on. A subscription whose
delivery failed records nothing, so its passes come back as candidates on the
next cycle.
"""

import logging
import time
from collections.abc import Callable, Sequence

from satwatch.errors import DeliveryError, UpstreamFetchError
from satwatch.predictions.types import PredictionSource, SatellitePass
from satwatch.state.store import StateStore
from satwatch.state.types import StateSnapshot, WatchSubscription, Window
from satwatch.watches.policy import is_duplicate, prune, qualifies
from satwatch.watches.types import CycleReport, NotificationSink, PassNotification

logger = logging.getLogger(__name__)


class PollCycle:
    """Evaluates every subscription against fresh predictions.

    Example:
        cycle = PollCycle(store, N2YOClient(api_key), TelegramNotificationSink(bot))
        report = await cycle.run()
    """

    def __init__(
        self,
        store: StateStore,
        source: PredictionSource,
        sink: NotificationSink,
        *,
        forecast_days: int = 1,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._source = source
        self._sink = sink
        self._forecast_days = forecast_days
        self._clock = clock

    async def run(self) -> CycleReport:
        """Run one cycle to completion.

        Raises:
            PersistenceError: If the final commit fails. Notifications already
                delivered in this cycle will be sent again next cycle.
        """
        now = int(self._clock())
        report = CycleReport(started_at=now)

        async with self._store.acquire_read() as view:
            snapshot = view.snapshot.copy()

        logger.info(
            "watch_cycle_started",
            extra={"watch.subscriptions": len(snapshot.subscriptions)},
        )

        for subscription in snapshot.subscriptions:
            report.checked += 1
            delivered = await self._process(subscription, snapshot, report)
            if delivered:
                report.notified[subscription.id] = delivered

        await self._commit(report, now)

        logger.info(
            "watch_cycle_finished",
            extra={
                "watch.checked": report.checked,
                "watch.notifications": report.notifications_sent,
                "watch.failures": report.failed,
                "watch.pruned": report.pruned,
            },
        )
        return report

    async def _process(
        self,
        subscription: WatchSubscription,
        snapshot: StateSnapshot,
        report: CycleReport,
    ) -> list[Window]:
        """Fetch, decide and deliver for one subscription.

        Returns the windows that were delivered.
        """
        log_extra = {
            "watch.subscription_id": subscription.id,
            "watch.object_id": subscription.tracked_object_id,
            "watch.location": subscription.location_name,
        }

        location = snapshot.find_location(subscription.location_name)
        if location is None:
            # Locations can be deleted while still referenced.
            logger.warning("watch_location_missing", extra=log_extra)
            report.missing_location.append(subscription.id)
            return []

        try:
            predictions = await self._source.fetch_passes(
                subscription.tracked_object_id,
                location,
                self._forecast_days,
                subscription.min_elevation,
            )
        except UpstreamFetchError as e:
            logger.warning(
                "watch_fetch_failed", extra={**log_extra, "error.message": str(e)}
            )
            report.fetch_failures[subscription.id] = str(e)
            return []
        except Exception as e:
            logger.exception(
                "watch_fetch_error", extra={**log_extra, "error.message": str(e)}
            )
            report.fetch_failures[subscription.id] = str(e)
            return []

        if not predictions.passes:
            return []

        batch = self._stage(subscription, predictions.passes)
        if not batch:
            return []

        try:
            await self._sink.deliver(subscription.channel_id, batch)
        except DeliveryError as e:
            logger.warning(
                "watch_delivery_failed", extra={**log_extra, "error.message": str(e)}
            )
            report.delivery_failures[subscription.id] = str(e)
            return []
        except Exception as e:
            logger.exception(
                "watch_delivery_error", extra={**log_extra, "error.message": str(e)}
            )
            report.delivery_failures[subscription.id] = str(e)
            return []

        logger.info(
            "watch_notified",
            extra={**log_extra, "watch.passes": len(batch)},
        )
        return [notification.window for notification in batch]

    def _stage(
        self,
        subscription: WatchSubscription,
        passes: Sequence[SatellitePass],
    ) -> list[PassNotification]:
        staged: list[Window] = []
        batch: list[PassNotification] = []

        for satellite_pass in sorted(passes, key=lambda p: p.start):
            if not qualifies(satellite_pass, subscription.min_elevation):
                continue
            window = satellite_pass.window
            if is_duplicate(subscription.history, window) or is_duplicate(
                staged, window
            ):
                logger.debug(
                    "watch_pass_already_notified",
                    extra={
                        "watch.subscription_id": subscription.id,
                        "watch.window": list(window),
                    },
                )
                continue
            staged.append(window)
            batch.append(
                PassNotification(
                    subscription_id=subscription.id,
                    object_id=subscription.tracked_object_id,
                    object_name=subscription.display_name,
                    location_name=subscription.location_name,
                    locale=subscription.locale,
                    satellite_pass=satellite_pass,
                )
            )

        return batch

    async def _commit(self, report: CycleReport, now: int) -> None:
        async with self._store.acquire_write() as tx:
            # Subscriptions removed since the cycle started are simply gone;
            # ones added since then have nothing to record but still prune.
            for subscription in tx.snapshot.subscriptions:
                for window in report.notified.get(subscription.id, []):
                    if not is_duplicate(subscription.history, window):
                        subscription.history.append(window)
                before = len(subscription.history)
                subscription.history = prune(subscription.history, now)
                report.pruned += before - len(subscription.history)
            await tx.commit()
