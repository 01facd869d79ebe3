# timeleak/models/api/usage_export.py
"""
Wire shape of the device usage export consumed by JsonExportUsageStatsProvider.
"""

from pydantic import BaseModel, Field

from timeleak.models.domain import UsageEvent, UsageEventType, UsageSample


class UsageSampleRecord(BaseModel):
    package_name: str
    total_time_visible_ms: int = 0
    total_time_in_foreground_ms: int = 0
    last_time_used_ms: int = 0

    def to_domain(self) -> UsageSample:
        return UsageSample(
            package_name=self.package_name,
            total_time_visible_ms=self.total_time_visible_ms,
            total_time_in_foreground_ms=self.total_time_in_foreground_ms,
            last_time_used_ms=self.last_time_used_ms,
        )


class UsageEventRecord(BaseModel):
    package_name: str
    event_type: UsageEventType
    timestamp_ms: int

    def to_domain(self) -> UsageEvent:
        return UsageEvent(
            package_name=self.package_name,
            event_type=self.event_type,
            timestamp_ms=self.timestamp_ms,
        )


class UsageExport(BaseModel):
    """Snapshot written by the device: access grant plus raw stats and events."""

    usage_access_granted: bool = False
    interval_stats: list[UsageSampleRecord] = Field(default_factory=list)
    events: list[UsageEventRecord] = Field(default_factory=list)
