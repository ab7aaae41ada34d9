"""Tests for the poll cycle."""

import pytest

from satwatch.errors import PersistenceError
from satwatch.watches.cycle import PollCycle
from satwatch.watches.policy import HISTORY_RETENTION_SECONDS
from tests.conftest import FakeSink, make_location, make_pass, make_subscription


async def seed(store, locations=(), subscriptions=()):
    async with store.acquire_write() as tx:
        for location in locations:
            tx.add_location(location)
        for subscription in subscriptions:
            tx.add_subscription(subscription)


async def history_of(store, subscription_id):
    async with store.acquire_read() as view:
        return list(view.snapshot.find_subscription(subscription_id).history)


@pytest.fixture
def cycle(store, source, sink, clock):
    return PollCycle(store, source, sink, clock=clock)


class TestNotificationLifecycle:
    async def test_backyard_scenario(self, store, source, sink, clock, cycle):
        """Notify once, dedup the jittered re-fetch, forget after a day."""
        sub = make_subscription(
            object_id=25338,
            location_name="Backyard",
            channel_id="C1",
            watcher_id="U1",
            min_elevation=20.0,
        )
        await seed(store, [make_location("Backyard", creator="U1")], [sub])

        source.passes[25338] = [make_pass(1000, 1300, max_elevation=35.0)]
        clock.now = 900
        report = await cycle.run()

        assert len(sink.delivered) == 1
        channel_id, batch = sink.delivered[0]
        assert channel_id == "C1"
        assert [n.window for n in batch] == [(1000, 1300)]
        assert report.notified == {sub.id: [(1000, 1300)]}
        assert await history_of(store, sub.id) == [(1000, 1300)]

        source.passes[25338] = [make_pass(1004, 1296, max_elevation=35.0)]
        clock.now = 1100
        report = await cycle.run()

        assert len(sink.delivered) == 1
        assert report.notifications_sent == 0
        assert await history_of(store, sub.id) == [(1000, 1300)]

        source.passes[25338] = []
        clock.now = 1000 + HISTORY_RETENTION_SECONDS + 1
        report = await cycle.run()

        assert report.pruned == 1
        assert await history_of(store, sub.id) == []

    async def test_notification_fields(self, store, source, sink, cycle):
        sub = make_subscription(object_id=33591)
        sub.locale = "en-AU"
        await seed(store, [make_location()], [sub])
        source.passes[33591] = [make_pass(2000, 2600, max_elevation=70.0)]

        await cycle.run()

        notification = sink.delivered[0][1][0]
        assert notification.subscription_id == sub.id
        assert notification.object_id == 33591
        assert notification.object_name == "SAT 33591"
        assert notification.location_name == "Backyard"
        assert notification.locale == "en-AU"
        assert notification.max_elevation == 70.0

    async def test_one_batch_in_start_order(self, store, source, sink, cycle):
        sub = make_subscription()
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [
            make_pass(5000, 5300),
            make_pass(2000, 2300),
            make_pass(8000, 8300),
        ]

        await cycle.run()

        assert len(sink.delivered) == 1
        assert [n.window for n in sink.delivered[0][1]] == [
            (2000, 2300),
            (5000, 5300),
            (8000, 8300),
        ]

    async def test_duplicates_within_one_fetch(self, store, source, sink, cycle):
        sub = make_subscription()
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [make_pass(2000, 2300), make_pass(2003, 2302)]

        await cycle.run()

        assert [n.window for n in sink.delivered[0][1]] == [(2000, 2300)]
        assert await history_of(store, sub.id) == [(2000, 2300)]

    async def test_low_passes_are_ignored(self, store, source, sink, cycle):
        sub = make_subscription(min_elevation=30.0)
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [
            make_pass(2000, 2300, max_elevation=29.0),
            make_pass(5000, 5300, max_elevation=31.0),
        ]

        await cycle.run()

        assert [n.window for n in sink.delivered[0][1]] == [(5000, 5300)]

    async def test_nothing_qualifying_sends_nothing(self, store, source, sink, cycle):
        sub = make_subscription(min_elevation=60.0)
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [make_pass(2000, 2300, max_elevation=20.0)]

        report = await cycle.run()

        assert sink.delivered == []
        assert report.notified == {}

    async def test_no_passes(self, store, source, sink, cycle):
        await seed(store, [make_location()], [make_subscription()])
        report = await cycle.run()
        assert sink.delivered == []
        assert report.checked == 1

    async def test_each_subscription_gets_its_own_message(self, store, source, sink, cycle):
        a = make_subscription(channel_id="100")
        b = make_subscription(channel_id="200")
        await seed(store, [make_location()], [a, b])
        source.passes[25338] = [make_pass(2000, 2300)]

        await cycle.run()

        assert [channel for channel, _ in sink.delivered] == ["100", "200"]
        assert await history_of(store, a.id) == [(2000, 2300)]
        assert await history_of(store, b.id) == [(2000, 2300)]

    async def test_uses_forecast_days(self, store, source, sink, clock):
        await seed(store, [make_location()], [make_subscription(min_elevation=15.0)])
        cycle = PollCycle(store, source, sink, forecast_days=3, clock=clock)

        await cycle.run()

        assert source.calls == [(25338, "Backyard", 3, 15.0)]


class TestFailureIsolation:
    async def test_delivery_failure_retries_next_cycle(self, store, source, sink, cycle):
        sub = make_subscription()
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [make_pass(2000, 2300)]

        sink.fail = True
        report = await cycle.run()

        assert sink.delivered == []
        assert sub.id in report.delivery_failures
        assert await history_of(store, sub.id) == []

        sink.fail = False
        await cycle.run()
        await cycle.run()

        assert len(sink.delivered) == 1
        assert await history_of(store, sub.id) == [(2000, 2300)]

    async def test_fetch_failure_does_not_stop_cycle(self, store, source, sink, cycle):
        failing = make_subscription(object_id=28654)
        working = make_subscription(object_id=25338)
        await seed(store, [make_location()], [failing, working])
        source.failing.add(28654)
        source.passes[25338] = [make_pass(2000, 2300)]

        report = await cycle.run()

        assert list(report.fetch_failures) == [failing.id]
        assert [batch[0].object_id for _, batch in sink.delivered] == [25338]
        assert report.failed == 1

    async def test_unexpected_fetch_error_is_contained(self, store, source, sink, cycle):
        sub = make_subscription()
        await seed(store, [make_location()], [sub])

        async def broken(*args):
            raise ValueError("bad payload")

        source.fetch_passes = broken
        report = await cycle.run()

        assert report.fetch_failures == {sub.id: "bad payload"}

    async def test_one_failing_channel(self, store, source, sink, cycle):
        a = make_subscription(channel_id="100")
        b = make_subscription(channel_id="200")
        await seed(store, [make_location()], [a, b])
        source.passes[25338] = [make_pass(2000, 2300)]
        sink.failing_channels.add("100")

        await cycle.run()

        assert await history_of(store, a.id) == []
        assert await history_of(store, b.id) == [(2000, 2300)]

    async def test_missing_location_is_skipped(self, store, source, sink, cycle):
        orphan = make_subscription(location_name="Gone")
        sub = make_subscription()
        await seed(store, [make_location()], [orphan, sub])
        source.passes[25338] = [make_pass(2000, 2300)]

        report = await cycle.run()

        assert report.missing_location == [orphan.id]
        assert [c[1] for c in source.calls] == ["Backyard"]
        assert len(sink.delivered) == 1

    async def test_commit_failure_propagates(self, store, source, sink, persistence, cycle):
        sub = make_subscription()
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [make_pass(2000, 2300)]

        persistence.fail = True
        with pytest.raises(PersistenceError):
            await cycle.run()
        assert await history_of(store, sub.id) == []

        # At-least-once: the pass is announced again once storage recovers.
        persistence.fail = False
        await cycle.run()
        assert len(sink.delivered) == 2
        assert await history_of(store, sub.id) == [(2000, 2300)]


class MutatingSink(FakeSink):
    """Sink that runs a state mutation while the cycle holds no lock."""

    def __init__(self, mutation):
        super().__init__()
        self._mutation = mutation

    async def deliver(self, channel_id, batch):
        await super().deliver(channel_id, batch)
        if self._mutation is not None:
            mutation, self._mutation = self._mutation, None
            await mutation()


class TestConcurrentMutation:
    async def test_subscription_removed_mid_cycle(self, store, source, clock):
        sub = make_subscription()
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [make_pass(2000, 2300)]

        async def remove():
            async with store.acquire_write() as tx:
                tx.remove_subscription(sub.id)

        sink = MutatingSink(remove)
        report = await PollCycle(store, source, sink, clock=clock).run()

        assert report.notified == {sub.id: [(2000, 2300)]}
        async with store.acquire_read() as view:
            assert view.subscriptions == []

    async def test_subscription_added_mid_cycle_survives(self, store, source, clock):
        sub = make_subscription(channel_id="100")
        late = make_subscription(channel_id="200")
        await seed(store, [make_location()], [sub])
        source.passes[25338] = [make_pass(2000, 2300)]

        async def add():
            async with store.acquire_write() as tx:
                tx.add_subscription(late)

        sink = MutatingSink(add)
        await PollCycle(store, source, sink, clock=clock).run()

        assert await history_of(store, sub.id) == [(2000, 2300)]
        assert await history_of(store, late.id) == []
        assert [channel for channel, _ in sink.delivered] == ["100"]

    async def test_location_added_mid_cycle_survives(self, store, source, clock):
        await seed(store, [make_location()], [make_subscription()])
        source.passes[25338] = [make_pass(2000, 2300)]

        async def add():
            async with store.acquire_write() as tx:
                tx.add_location(make_location("Rooftop"))

        await PollCycle(store, source, MutatingSink(add), clock=clock).run()

        async with store.acquire_read() as view:
            assert view.find_location("Rooftop") is not None
