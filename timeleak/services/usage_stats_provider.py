"""
Usage-stats source consumed by the aggregation pipeline.

The pipeline only needs three calls: interval stats for a window, ordered
transition events for a window, and whether usage access is granted.
JsonExportUsageStatsProvider serves them from a device export file.
"""

import asyncio
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.api.usage_export import UsageExport
from timeleak.models.domain import UsageEvent, UsageSample

logger = get_logger(__name__)


class UsageStatsError(Exception):
    """Raised when the usage-stats source cannot be read."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class UsageStatsProvider(Protocol):
    async def has_usage_access(self) -> bool: ...

    async def query_interval_stats(self, start_ms: int, end_ms: int) -> list[UsageSample]: ...

    async def query_events(self, start_ms: int, end_ms: int) -> list[UsageEvent]: ...


class JsonExportUsageStatsProvider:
    """
    Reads usage data exported from the device.

    A missing export is treated as "usage access not granted" rather than an
    error; a present but unreadable export raises UsageStatsError.
    """

    def __init__(self, export_path: str | Path):
        self.export_path = Path(export_path)

    async def has_usage_access(self) -> bool:
        if not self.export_path.exists():
            return False
        export = await self._load()
        return export.usage_access_granted

    async def query_interval_stats(self, start_ms: int, end_ms: int) -> list[UsageSample]:
        export = await self._load()
        return [
            record.to_domain()
            for record in export.interval_stats
            if start_ms <= record.last_time_used_ms <= end_ms
        ]

    async def query_events(self, start_ms: int, end_ms: int) -> list[UsageEvent]:
        export = await self._load()
        events = [
            record.to_domain()
            for record in export.events
            if start_ms <= record.timestamp_ms <= end_ms
        ]
        events.sort(key=lambda event: event.timestamp_ms)
        return events

    async def _load(self) -> UsageExport:
        try:
            raw = await asyncio.to_thread(self.export_path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return UsageExport()
        except OSError as e:
            logger.error("Failed to read usage export", path=str(self.export_path), error=str(e))
            raise UsageStatsError(f"Cannot read usage export: {e}", source=str(self.export_path)) from e

        try:
            return UsageExport.model_validate_json(raw)
        except ValidationError as e:
            logger.error(
                "Usage export is malformed",
                path=str(self.export_path),
                error_count=e.error_count(),
            )
            raise UsageStatsError("Malformed usage export", source=str(self.export_path)) from e
