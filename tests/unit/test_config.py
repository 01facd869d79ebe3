from zoneinfo import ZoneInfo

from timeleak.config import Settings
from timeleak.models.domain import HOUR_MS, MINUTE_MS


def test_backoff_policy_from_settings():
    policy = Settings(SYNC_BACKOFF_INITIAL_MINUTES=10, SYNC_BACKOFF_MAX_HOURS=2, SYNC_MAX_RETRY_ATTEMPTS=3)
    backoff = policy.sync_backoff_policy()

    assert backoff.initial_delay_ms == 10 * MINUTE_MS
    assert backoff.max_delay_ms == 2 * HOUR_MS
    assert backoff.max_attempts == 3


def test_timezone_resolves_to_zoneinfo():
    assert Settings(TIMEZONE="Europe/Berlin").tzinfo() == ZoneInfo("Europe/Berlin")


def test_redis_config_is_smaller_in_development():
    assert Settings(environment="development").get_redis_config()["max_connections"] == 4
    assert Settings(environment="production").get_redis_config()["max_connections"] == 10
