"""
Usage aggregation service.

Combines OS interval stats with reconciled event data into one immutable
DailyUsage snapshot per window. Also serves the trailing 30-day average used
for trend display and as the goal baseline.
"""

from __future__ import annotations

from collections import defaultdict

from .windows import calendar_day_window, local_date_iso, trailing_24h_window
from timeleak.data.app_categories import app_name_for, categorize
from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.domain import (
    DAY_MS,
    MAX_DAILY_SCREEN_TIME_MS,
    TOP_APPS_LIMIT,
    AppCategory,
    AppUsage,
    DailyUsage,
    UsageSample,
)
from timeleak.pipeline.reconciliation import ReconciledUsage, UsageEventReconciler
from timeleak.services.usage_stats_provider import UsageStatsProvider
from timeleak.utils.clock import Clock

logger = get_logger(__name__)

AVERAGE_LOOKBACK_DAYS = 30


def clamp_screen_time(value_ms: int, scope: str, **context) -> int:
    """Bound a duration to [0, 24h], logging any correction."""
    if value_ms < 0:
        logger.warning("Negative screen time, clamping to 0", scope=scope, value_ms=value_ms, **context)
        return 0
    if value_ms > MAX_DAILY_SCREEN_TIME_MS:
        logger.warning(
            "Screen time exceeds 24h, capping",
            scope=scope,
            value_ms=value_ms,
            cap_ms=MAX_DAILY_SCREEN_TIME_MS,
            **context,
        )
        return MAX_DAILY_SCREEN_TIME_MS
    return value_ms


def merge_samples(samples: list[UsageSample]) -> dict[str, UsageSample]:
    """Fold per-bucket samples into one per package (times summed, latest use kept)."""
    merged: dict[str, UsageSample] = {}
    for sample in samples:
        current = merged.get(sample.package_name)
        if current is None:
            merged[sample.package_name] = UsageSample(
                package_name=sample.package_name,
                total_time_visible_ms=sample.total_time_visible_ms,
                total_time_in_foreground_ms=sample.total_time_in_foreground_ms,
                last_time_used_ms=sample.last_time_used_ms,
            )
            continue
        current.total_time_visible_ms += sample.total_time_visible_ms
        current.total_time_in_foreground_ms += sample.total_time_in_foreground_ms
        current.last_time_used_ms = max(current.last_time_used_ms, sample.last_time_used_ms)
    return merged


class UsageAggregator:
    def __init__(
        self,
        provider: UsageStatsProvider,
        reconciler: UsageEventReconciler,
        clock: Clock,
    ):
        self.provider = provider
        self.reconciler = reconciler
        self.clock = clock

    async def aggregate_last_24_hours(self) -> DailyUsage | None:
        """Trailing 24h from now; covers a full day even if the device slept through midnight."""
        start, end = trailing_24h_window(self.clock.now_ms())
        return await self.aggregate(start, end)

    async def aggregate_today(self) -> DailyUsage | None:
        """Local midnight to now."""
        start, end = calendar_day_window(self.clock.now_ms(), self.clock.tz)
        return await self.aggregate(start, end)

    async def aggregate(self, window_start_ms: int, window_end_ms: int) -> DailyUsage | None:
        """
        Run one aggregation pass over [window_start_ms, window_end_ms].

        Returns:
            DailyUsage, or None when usage access has not been granted

        Raises:
            UsageStatsError: If the interval stats query fails
        """
        if not await self.provider.has_usage_access():
            logger.info("Usage access not granted, no usage data")
            return None

        samples = await self.provider.query_interval_stats(window_start_ms, window_end_ms)
        reconciled = await self.reconciler.reconcile(window_start_ms, window_end_ms)

        daily_usage = self.build_daily_usage(samples, reconciled, window_start_ms, window_end_ms)
        logger.info(
            "Usage aggregated",
            date=daily_usage.date,
            total_screen_time_ms=daily_usage.total_screen_time_ms,
            app_count=daily_usage.app_count,
            reconciliation_complete=reconciled.complete,
        )
        return daily_usage

    def build_daily_usage(
        self,
        samples: list[UsageSample],
        reconciled: ReconciledUsage,
        window_start_ms: int,
        window_end_ms: int,
    ) -> DailyUsage:
        merged = merge_samples(samples)
        apps: dict[str, AppUsage] = {}

        for package in sorted(set(merged) | set(reconciled.usage_times)):
            sample = merged.get(package)
            if package in reconciled.usage_times:
                usage_ms = reconciled.usage_times[package]
            else:
                usage_ms = sample.total_time_in_foreground_ms

            last_used_ms = max(
                sample.last_time_used_ms if sample else 0,
                reconciled.last_event_ms.get(package, 0),
            )

            usage_ms = clamp_screen_time(usage_ms, "app", package=package)
            if usage_ms <= 0 or not window_start_ms <= last_used_ms <= window_end_ms:
                continue

            apps[package] = AppUsage(
                package_name=package,
                usage_time_ms=usage_ms,
                last_time_used_ms=last_used_ms,
                launch_count=reconciled.launch_counts.get(package, 0),
                app_name=app_name_for(package),
                category=categorize(package),
            )

        if reconciled.usage_times:
            raw_total = reconciled.total_usage_ms
        else:
            raw_total = sum(sample.total_time_in_foreground_ms for sample in merged.values())
        total_ms = clamp_screen_time(raw_total, "total")

        top_apps = sorted(apps.values(), key=lambda app: (-app.usage_time_ms, app.package_name))

        # Category totals cover every qualifying app, including those past the top-N cut
        social_ms = sum(a.usage_time_ms for a in apps.values() if a.category == AppCategory.SOCIAL_MEDIA)
        entertainment_ms = sum(
            a.usage_time_ms for a in apps.values() if a.category == AppCategory.ENTERTAINMENT
        )

        return DailyUsage(
            date=local_date_iso(window_end_ms, self.clock.tz),
            total_screen_time_ms=total_ms,
            top_apps=tuple(top_apps[:TOP_APPS_LIMIT]),
            social_media_time_ms=clamp_screen_time(social_ms, "social_media"),
            entertainment_time_ms=clamp_screen_time(entertainment_ms, "entertainment"),
        )

    async def average_daily_screen_time(self, days: int = AVERAGE_LOOKBACK_DAYS) -> int | None:
        """
        Average daily screen time over the trailing window.

        Interval stats are bucketed by the local date of last use; each day's
        total is clamped like any other total. Days without data don't count.

        Returns:
            Average in milliseconds, or None when there is no data or no access
        """
        try:
            if not await self.provider.has_usage_access():
                return None

            end = self.clock.now_ms()
            start = end - days * DAY_MS
            samples = await self.provider.query_interval_stats(start, end)
        except Exception as e:
            logger.error("Failed to load usage history for average", error=str(e))
            return None

        daily_totals: dict[str, int] = defaultdict(int)
        for sample in samples:
            if sample.total_time_in_foreground_ms > 0:
                day = local_date_iso(sample.last_time_used_ms, self.clock.tz)
                daily_totals[day] += sample.total_time_in_foreground_ms

        if not daily_totals:
            return None

        clamped = [clamp_screen_time(total, "day", date=day) for day, total in daily_totals.items()]
        return sum(clamped) // len(clamped)
