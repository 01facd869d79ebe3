"""Duration formatting shared by the API responses and status reports."""

from timeleak.models.domain import HOUR_MS, MINUTE_MS


def format_duration(millis: int) -> str:
    """Format a duration like "2 hr 30 min" or "45 min"."""
    hours = millis // HOUR_MS
    minutes = (millis % HOUR_MS) // MINUTE_MS
    if hours > 0:
        return f"{hours} hr {minutes} min"
    return f"{minutes} min"


def format_time_remaining(millis: int) -> str:
    """Countdown string like "2h 30m 45s", "30m 45s" or "45s"."""
    if millis <= 0:
        return "Due now"

    hours = millis // HOUR_MS
    minutes = (millis % HOUR_MS) // MINUTE_MS
    seconds = (millis % MINUTE_MS) // 1000

    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
