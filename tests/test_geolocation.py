# tests/test_geolocation.py
import asyncio

import pytest

from conftest import make_context, make_fix
from ridemap.core.errors import AcquisitionTimeout, PermissionDenied, ServicesDisabled
from ridemap.models.events import LocationFailed, PositionUpdated
from ridemap.models.geo import SignalQuality
from ridemap.services.geolocation import (
    GeolocationTracker,
    ReplayLocationProvider,
    classify_accuracy,
)


class RecordingChannel:
    def __init__(self):
        self.published = []

    async def publish_position(self, fix):
        self.published.append(fix)


def _drain(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def test_services_disabled():
    provider = ReplayLocationProvider([make_fix(36.8, 10.18)], enabled=False)
    tracker = GeolocationTracker(make_context(), provider)

    with pytest.raises(ServicesDisabled):
        asyncio.run(tracker.start())
    assert not tracker.tracking


def test_permission_denied():
    provider = ReplayLocationProvider([make_fix(36.8, 10.18)], granted=False)
    tracker = GeolocationTracker(make_context(), provider)

    with pytest.raises(PermissionDenied):
        asyncio.run(tracker.start())


def test_acquisition_timeout():
    provider = ReplayLocationProvider([make_fix(36.8, 10.18)], fix_delay_s=1.0)
    tracker = GeolocationTracker(make_context(LOCATION_TIMEOUT_S=0.05), provider)

    with pytest.raises(AcquisitionTimeout):
        asyncio.run(tracker.refresh())


def test_start_emits_first_fix_and_tracks_with_thresholds():
    fixes = [
        make_fix(36.80000, 10.18, seconds=0),
        make_fix(36.800018, 10.18, seconds=1),   # ~2 m, 1 s: dropped
        make_fix(36.80009, 10.18, seconds=2),    # ~10 m: emitted
        make_fix(36.80009, 10.18, seconds=8),    # stationary, 6 s: emitted
        make_fix(36.80010, 10.18, seconds=9),    # ~1 m, 1 s: dropped
    ]
    provider = ReplayLocationProvider(fixes)

    async def scenario():
        events = asyncio.Queue()
        channel = RecordingChannel()
        tracker = GeolocationTracker(make_context(), provider, events=events, channel=channel)
        first = await tracker.start()
        await tracker._task
        return tracker, first, _drain(events), channel

    tracker, first, events, channel = asyncio.run(scenario())

    assert first == fixes[0]
    assert provider.position_requests == [5.0]
    emitted = [e.fix for e in events if isinstance(e, PositionUpdated)]
    assert emitted == [fixes[0], fixes[2], fixes[3]]
    assert channel.published == emitted
    assert tracker.latest == fixes[3]


def test_refresh_bypasses_cache():
    provider = ReplayLocationProvider([make_fix(36.8, 10.18, accuracy=150.0)])
    tracker = GeolocationTracker(make_context(), provider)

    fix = asyncio.run(tracker.refresh())

    assert provider.position_requests == [0.0]
    assert tracker.latest == fix
    assert tracker.signal == SignalQuality.POOR


def test_restart_never_overlaps_subscriptions():
    fixes = [make_fix(36.8, 10.18), make_fix(36.81, 10.18, seconds=10)]
    provider = ReplayLocationProvider(fixes, interval_s=10.0)

    async def scenario():
        tracker = GeolocationTracker(make_context(), provider)
        await tracker.start()
        first_task = tracker._task
        await tracker.start()
        second_task = tracker._task
        overlap = not first_task.done()
        await tracker.stop()
        return overlap, first_task is second_task, tracker.tracking

    overlap, same, tracking = asyncio.run(scenario())

    assert not overlap
    assert not same
    assert not tracking


class BrokenWatchProvider(ReplayLocationProvider):
    async def watch(self):
        raise OSError("sensor unavailable")
        yield  # pragma: no cover


def test_provider_crash_during_tracking_is_reported():
    provider = BrokenWatchProvider([make_fix(36.8, 10.18)])

    async def scenario():
        events = asyncio.Queue()
        tracker = GeolocationTracker(make_context(), provider, events=events)
        await tracker.start()
        await tracker._task
        return tracker, _drain(events)

    tracker, events = asyncio.run(scenario())

    assert not tracker.tracking
    failures = [e for e in events if isinstance(e, LocationFailed)]
    assert [f.message for f in failures] == ["Location tracking stopped unexpectedly"]


@pytest.mark.parametrize("accuracy,expected", [
    (None, SignalQuality.UNKNOWN),
    (12.0, SignalQuality.NOMINAL),
    (50.0, SignalQuality.NOMINAL),
    (75.0, SignalQuality.DEGRADED),
    (100.0, SignalQuality.DEGRADED),
    (140.0, SignalQuality.POOR),
])
def test_classify_accuracy(accuracy, expected):
    assert classify_accuracy(accuracy) == expected
