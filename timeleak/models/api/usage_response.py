# timeleak/models/api/usage_response.py
from pydantic import BaseModel, Field

from timeleak.models.domain import AppCategory, AppUsage, DailyUsage
from timeleak.services.goal_service import GoalProgress
from timeleak.utils.time_format import format_duration


class AppUsageResponse(BaseModel):
    package_name: str
    app_name: str
    category: AppCategory
    usage_time_ms: int
    usage_time_display: str
    last_time_used_ms: int
    launch_count: int

    @classmethod
    def from_domain(cls, app: AppUsage) -> "AppUsageResponse":
        return cls(
            package_name=app.package_name,
            app_name=app.app_name,
            category=app.category,
            usage_time_ms=app.usage_time_ms,
            usage_time_display=format_duration(app.usage_time_ms),
            last_time_used_ms=app.last_time_used_ms,
            launch_count=app.launch_count,
        )


class DailyUsageResponse(BaseModel):
    """Response for GET /usage/today and GET /usage/last-24h"""

    date: str
    total_screen_time_ms: int
    total_screen_time_display: str
    social_media_time_ms: int
    entertainment_time_ms: int
    app_count: int
    top_apps: list[AppUsageResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, usage: DailyUsage) -> "DailyUsageResponse":
        return cls(
            date=usage.date,
            total_screen_time_ms=usage.total_screen_time_ms,
            total_screen_time_display=format_duration(usage.total_screen_time_ms),
            social_media_time_ms=usage.social_media_time_ms,
            entertainment_time_ms=usage.entertainment_time_ms,
            app_count=usage.app_count,
            top_apps=[AppUsageResponse.from_domain(app) for app in usage.top_apps],
        )


class AverageUsageResponse(BaseModel):
    """Response for GET /usage/average"""

    days: int
    average_daily_screen_time_ms: int
    average_daily_screen_time_display: str


class GoalProgressResponse(BaseModel):
    current_usage_ms: int
    progress: float
    is_over_goal: bool
    remaining_ms: int
    over_ms: int
    band: str

    @classmethod
    def from_domain(cls, progress: GoalProgress) -> "GoalProgressResponse":
        return cls(
            current_usage_ms=progress.current_usage_ms,
            progress=progress.progress,
            is_over_goal=progress.is_over_goal,
            remaining_ms=progress.remaining_ms,
            over_ms=progress.over_ms,
            band=progress.band.value,
        )


class GoalResponse(BaseModel):
    """Response for GET /goal and PUT /goal"""

    goal_time_ms: int
    goal_time_display: str
    baseline_screen_time_ms: int | None = None
    progress: GoalProgressResponse | None = None
