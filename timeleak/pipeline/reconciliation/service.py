"""
Usage event reconciliation.

Replays foreground/background transition events for a window into per-package
usage times and launch counts. The OS interval stats are coarse (bucketed per
day, sometimes stale), so the replayed numbers are the ones the aggregator
trusts when they exist.

Reconciliation never raises: a failure part-way through the scan is logged and
whatever was accumulated up to that point is returned.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.domain import (
    LAUNCH_DEBOUNCE_MS,
    MAX_SINGLE_APP_SESSION_MS,
    AppSession,
    UsageEvent,
    UsageEventType,
)
from timeleak.services.usage_stats_provider import UsageStatsProvider
from timeleak.utils.clock import Clock

logger = get_logger(__name__)


@dataclass
class ReconciledUsage:
    launch_counts: dict[str, int] = field(default_factory=dict)
    usage_times: dict[str, int] = field(default_factory=dict)
    last_event_ms: dict[str, int] = field(default_factory=dict)
    capped_sessions: int = 0
    discarded_events: int = 0
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.error is None

    @property
    def total_usage_ms(self) -> int:
        return sum(self.usage_times.values())


class UsageEventReconciler:
    def __init__(self, provider: UsageStatsProvider, clock: Clock):
        self.provider = provider
        self.clock = clock

    async def reconcile(self, window_start_ms: int, window_end_ms: int) -> ReconciledUsage:
        """Query events for the window and replay them."""
        result = ReconciledUsage()
        try:
            events = await self.provider.query_events(window_start_ms, window_end_ms)
        except Exception as e:
            logger.error(
                "Usage event query failed, continuing without events",
                error=str(e),
                error_type=type(e).__name__,
            )
            result.error = f"{type(e).__name__}: {e}"
            return result

        return self.replay(
            events,
            window_start_ms,
            window_end_ms,
            now_ms=self.clock.now_ms(),
            into=result,
        )

    def replay(
        self,
        events: Iterable[UsageEvent],
        window_start_ms: int,
        window_end_ms: int,
        now_ms: int,
        into: ReconciledUsage | None = None,
    ) -> ReconciledUsage:
        """
        Single chronological pass over the events.

        Args:
            events: Transition events in the order the source delivered them
            window_start_ms: Inclusive window start
            window_end_ms: Inclusive window end
            now_ms: Current instant; still-open sessions close at min(now, window end)
            into: Result to accumulate into (partial data survives a failure)

        Returns:
            ReconciledUsage with launch counts, usage times and last event per package
        """
        result = into if into is not None else ReconciledUsage()
        sessions: dict[str, AppSession] = {}
        last_resumed_at: dict[str, int] = {}

        try:
            for event in events:
                timestamp = event.timestamp_ms
                if timestamp < window_start_ms or timestamp > window_end_ms:
                    result.discarded_events += 1
                    continue

                package = event.package_name
                previous_seen = result.last_event_ms.get(package)
                if previous_seen is None or timestamp > previous_seen:
                    result.last_event_ms[package] = timestamp

                if event.event_type == UsageEventType.RESUMED:
                    previous_resume = last_resumed_at.get(package)
                    if previous_resume is None or timestamp - previous_resume >= LAUNCH_DEBOUNCE_MS:
                        result.launch_counts[package] = result.launch_counts.get(package, 0) + 1
                    last_resumed_at[package] = timestamp
                    sessions[package] = AppSession(package_name=package, started_at_ms=timestamp)

                elif event.event_type == UsageEventType.PAUSED:
                    session = sessions.pop(package, None)
                    if session is not None:
                        self._accumulate(result, session, timestamp)

            # Sessions never paused are treated as still running
            close_at = min(now_ms, window_end_ms)
            for session in sessions.values():
                self._accumulate(result, session, close_at)

        except Exception as e:
            logger.error(
                "Usage event reconciliation failed, keeping partial results",
                error=str(e),
                error_type=type(e).__name__,
                packages_so_far=len(result.usage_times),
            )
            result.error = f"{type(e).__name__}: {e}"

        if result.discarded_events:
            logger.debug("Discarded out-of-window usage events", count=result.discarded_events)

        return result

    def _accumulate(self, result: ReconciledUsage, session: AppSession, ended_at_ms: int) -> None:
        duration = session.duration_until(ended_at_ms)
        if duration <= 0:
            return

        if duration > MAX_SINGLE_APP_SESSION_MS:
            logger.warning(
                "Session exceeds single-session cap, clamping",
                package=session.package_name,
                duration_ms=duration,
                cap_ms=MAX_SINGLE_APP_SESSION_MS,
            )
            duration = MAX_SINGLE_APP_SESSION_MS
            result.capped_sessions += 1

        package = session.package_name
        result.usage_times[package] = result.usage_times.get(package, 0) + duration
