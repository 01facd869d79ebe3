# timeleak/models/api/usage_upload.py
"""
Upload document for one user's daily usage.

This is the only place the wire field names live; DailyUsage is converted here
and nowhere else.
"""

from pydantic import BaseModel, ConfigDict, Field

from timeleak.models.domain import AppCategory, AppUsage, AuthenticatedUser, DailyUsage


class AppUsageDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_name: str = Field(..., alias="packageName")
    usage_time_ms: int = Field(..., alias="usageTimeMillis", ge=0)
    last_time_used_ms: int = Field(0, alias="lastTimeUsed")
    launch_count: int = Field(0, alias="launchCount", ge=0)
    app_name: str = Field("", alias="appName")
    category: AppCategory = AppCategory.OTHER

    @classmethod
    def from_domain(cls, app: AppUsage) -> "AppUsageDocument":
        return cls(
            package_name=app.package_name,
            usage_time_ms=app.usage_time_ms,
            last_time_used_ms=app.last_time_used_ms,
            launch_count=app.launch_count,
            app_name=app.app_name,
            category=app.category,
        )

    def to_domain(self) -> AppUsage:
        return AppUsage(
            package_name=self.package_name,
            usage_time_ms=self.usage_time_ms,
            last_time_used_ms=self.last_time_used_ms,
            launch_count=self.launch_count,
            app_name=self.app_name,
            category=self.category,
        )


class UsageUploadPayload(BaseModel):
    """Document stored per user; each upload replaces the previous one."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    phone_number: str | None = Field(None, alias="phoneNumber")
    date: str
    total_screen_time_ms: int = Field(..., alias="totalScreenTime", ge=0)
    social_media_time_ms: int = Field(0, alias="socialMediaTime", ge=0)
    entertainment_time_ms: int = Field(0, alias="entertainmentTime", ge=0)
    goal_time_ms: int = Field(0, alias="goalTime", ge=0)
    top_apps: list[AppUsageDocument] = Field(default_factory=list, alias="topApps")

    @classmethod
    def from_daily_usage(
        cls, user: AuthenticatedUser, daily_usage: DailyUsage, goal_time_ms: int
    ) -> "UsageUploadPayload":
        return cls(
            user_id=user.uid,
            phone_number=user.phone_number,
            date=daily_usage.date,
            total_screen_time_ms=daily_usage.total_screen_time_ms,
            social_media_time_ms=daily_usage.social_media_time_ms,
            entertainment_time_ms=daily_usage.entertainment_time_ms,
            goal_time_ms=goal_time_ms,
            top_apps=[AppUsageDocument.from_domain(app) for app in daily_usage.top_apps],
        )

    def to_daily_usage(self) -> DailyUsage:
        return DailyUsage(
            date=self.date,
            total_screen_time_ms=self.total_screen_time_ms,
            top_apps=tuple(app.to_domain() for app in self.top_apps),
            social_media_time_ms=self.social_media_time_ms,
            entertainment_time_ms=self.entertainment_time_ms,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
