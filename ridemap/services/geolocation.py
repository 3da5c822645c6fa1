# ridemap/services/geolocation.py

import asyncio
import contextlib
from typing import TYPE_CHECKING, AsyncIterator, List, Optional, Protocol, Sequence

from ridemap.core.errors import (
    AcquisitionTimeout,
    LocationError,
    PermissionDenied,
    ServicesDisabled,
)
from ridemap.core.logger import logger
from ridemap.models.events import LocationFailed, MapEvent, PositionUpdated
from ridemap.models.geo import PositionFix, SignalQuality
from ridemap.services.distance import distance_km
from ridemap.services.session import SessionContext

if TYPE_CHECKING:
    from ridemap.services.realtime_channel import RealtimeChannel

POOR_ACCURACY_M = 100.0
DEGRADED_ACCURACY_M = 50.0


class LocationProvider(Protocol):
    """
    Platform location service: permission, one-shot fix, continuous stream.
    """

    async def services_enabled(self) -> bool: ...

    async def request_permission(self) -> bool: ...

    async def current_position(self, max_age_s: float) -> PositionFix: ...

    def watch(self) -> AsyncIterator[PositionFix]: ...


class ReplayLocationProvider:
    """
    Location provider that replays a recorded sequence of fixes.

    Used for simulation and tests in place of a device location service.
    """

    def __init__(
        self,
        fixes: Sequence[PositionFix],
        enabled: bool = True,
        granted: bool = True,
        interval_s: float = 0.0,
        fix_delay_s: float = 0.0,
    ) -> None:
        if not fixes:
            raise ValueError("At least one fix is required.")
        self.fixes: List[PositionFix] = list(fixes)
        self.enabled = enabled
        self.granted = granted
        self.interval_s = interval_s
        self.fix_delay_s = fix_delay_s
        self.position_requests: List[float] = []

    async def services_enabled(self) -> bool:
        return self.enabled

    async def request_permission(self) -> bool:
        return self.granted

    async def current_position(self, max_age_s: float) -> PositionFix:
        self.position_requests.append(max_age_s)
        if self.fix_delay_s:
            await asyncio.sleep(self.fix_delay_s)
        return self.fixes[0]

    async def watch(self) -> AsyncIterator[PositionFix]:
        for fix in self.fixes[1:]:
            if self.interval_s:
                await asyncio.sleep(self.interval_s)
            yield fix


def classify_accuracy(accuracy_m: Optional[float]) -> SignalQuality:
    """
    Advisory signal classification; never blocks a caller.
    """
    if accuracy_m is None:
        return SignalQuality.UNKNOWN
    if accuracy_m > POOR_ACCURACY_M:
        logger.warning(f"Location accuracy is poor: {accuracy_m:.1f} m")
        return SignalQuality.POOR
    if accuracy_m > DEGRADED_ACCURACY_M:
        logger.warning(f"Location accuracy is moderate: {accuracy_m:.1f} m")
        return SignalQuality.DEGRADED
    return SignalQuality.NOMINAL


class GeolocationTracker:
    """
    Owns the location subscription.

    - start(): service/permission checks, one bounded fix, then continuous
      tracking (any previous subscription is stopped first).
    - Tracking emits when the rider moved TRACKING_DISTANCE_M or
      TRACKING_INTERVAL_S elapsed since the last emitted fix.
    - Each emission replaces `latest`, is pushed on the event queue and is
      published on the realtime channel (fire-and-forget).
    """

    def __init__(
        self,
        context: SessionContext,
        provider: LocationProvider,
        events: "asyncio.Queue[MapEvent] | None" = None,
        channel: "RealtimeChannel | None" = None,
    ) -> None:
        self.context = context
        self.provider = provider
        self.events = events
        self.channel = channel
        self.latest: Optional[PositionFix] = None
        self.signal = SignalQuality.UNKNOWN
        self._task: Optional[asyncio.Task] = None

    @property
    def tracking(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def start(self) -> PositionFix:
        await self.stop()
        logger.info("Initializing location services...")

        fix = await self._acquire(max_age_s=self.context.settings.LOCATION_MAX_AGE_S)
        await self._emit(fix)

        self._task = asyncio.create_task(self._track())
        logger.info("Location tracking started.")
        return fix

    async def refresh(self) -> PositionFix:
        """
        Force a fresh fix, bypassing any cached reading.
        """
        logger.info("Forcing location refresh...")
        fix = await self._acquire(max_age_s=0.0)
        await self._emit(fix)
        return fix

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Location tracking stopped.")

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    async def _acquire(self, max_age_s: float) -> PositionFix:
        if not await self.provider.services_enabled():
            raise ServicesDisabled()
        if not await self.provider.request_permission():
            raise PermissionDenied()

        timeout_s = self.context.settings.LOCATION_TIMEOUT_S
        try:
            fix = await asyncio.wait_for(
                self.provider.current_position(max_age_s=max_age_s),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            raise AcquisitionTimeout(timeout_s) from None

        logger.info(
            f"Location obtained: ({fix.point.latitude:.6f}, {fix.point.longitude:.6f}), "
            f"accuracy={fix.accuracy_m} m"
        )
        return fix

    async def _track(self) -> None:
        try:
            async for fix in self.provider.watch():
                if self._should_emit(fix):
                    await self._emit(fix)
        except LocationError as exc:
            logger.error(f"Location tracking failed: {exc}")
            self._report_failure(str(exc))
        except Exception as exc:
            logger.exception(f"Location provider error: {exc!r}")
            self._report_failure("Location tracking stopped unexpectedly")

    def _report_failure(self, message: str) -> None:
        if self.events is not None:
            self.events.put_nowait(LocationFailed(message=message))

    def _should_emit(self, fix: PositionFix) -> bool:
        last = self.latest
        if last is None:
            return True
        s = self.context.settings
        moved_m = distance_km(last.point, fix.point) * 1000.0
        elapsed_s = (fix.timestamp - last.timestamp).total_seconds()
        return moved_m >= s.TRACKING_DISTANCE_M or elapsed_s >= s.TRACKING_INTERVAL_S

    async def _emit(self, fix: PositionFix) -> None:
        self.latest = fix
        self.signal = classify_accuracy(fix.accuracy_m)
        if self.events is not None:
            self.events.put_nowait(PositionUpdated(fix=fix))
        if self.channel is not None:
            await self.channel.publish_position(fix)
