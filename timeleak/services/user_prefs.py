"""
Persisted per-device state.

Each key has a single writer: the sync run writes last_run_time, the goal
service writes goal and baseline, sign-in writes uid and phone.

Goal and baseline go through the strict store calls: a failed read raises
KeyValueStoreError instead of looking like an unset value.
"""

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger
from timeleak.services.redis_client import KeyValueStore

logger = get_logger(__name__)

KEY_PHONE = "phone_number"
KEY_UID = "uid"
KEY_GOAL_TIME = "goal_time_millis"
KEY_BASELINE_SCREEN_TIME = "baseline_screen_time_millis"
KEY_BASELINE_CAPTURED = "baseline_captured"
KEY_LAST_RUN_TIME = "last_run_time"

USER_SCOPED_KEYS = (
    KEY_PHONE,
    KEY_UID,
    KEY_GOAL_TIME,
    KEY_BASELINE_SCREEN_TIME,
    KEY_BASELINE_CAPTURED,
)


class UserPrefs:
    def __init__(self, store: KeyValueStore, prefix: str | None = None):
        self.store = store
        self.prefix = prefix or settings.KEY_PREFIX

    def _key(self, name: str) -> str:
        return f"{self.prefix}:prefs:{name}"

    async def _get_int(self, name: str, strict: bool = False) -> int | None:
        key = self._key(name)
        raw = await (self.store.get_strict(key) if strict else self.store.get(key))
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer preference value", key=name)
            return None

    async def save_user(self, phone: str | None, uid: str | None) -> None:
        logger.info("Saving user", uid=uid, has_phone=bool(phone))
        if phone:
            await self.store.set(self._key(KEY_PHONE), phone)
        else:
            await self.store.delete(self._key(KEY_PHONE))
        if uid:
            await self.store.set(self._key(KEY_UID), uid)
        else:
            await self.store.delete(self._key(KEY_UID))

    async def get_phone(self) -> str | None:
        return await self.store.get(self._key(KEY_PHONE))

    async def get_uid(self) -> str | None:
        return await self.store.get(self._key(KEY_UID))

    async def save_goal_time(self, goal_time_ms: int) -> None:
        await self.store.set_strict(self._key(KEY_GOAL_TIME), str(goal_time_ms))

    async def get_saved_goal_time(self) -> int | None:
        """Goal as stored, or None when the user never set one."""
        value = await self._get_int(KEY_GOAL_TIME, strict=True)
        return value if value else None

    async def save_baseline_screen_time(self, baseline_ms: int) -> None:
        logger.info("Saving baseline screen time", baseline_ms=baseline_ms)
        await self.store.set_strict(self._key(KEY_BASELINE_SCREEN_TIME), str(baseline_ms))
        await self.store.set_strict(self._key(KEY_BASELINE_CAPTURED), "1")

    async def get_baseline_screen_time(self) -> int | None:
        if not await self.is_baseline_captured():
            return None
        return await self._get_int(KEY_BASELINE_SCREEN_TIME, strict=True) or 0

    async def is_baseline_captured(self) -> bool:
        return await self.store.get_strict(self._key(KEY_BASELINE_CAPTURED)) == "1"

    async def save_last_run_time(self, epoch_ms: int) -> None:
        await self.store.set(self._key(KEY_LAST_RUN_TIME), str(epoch_ms))

    async def get_last_run_time(self) -> int | None:
        return await self._get_int(KEY_LAST_RUN_TIME)

    async def clear_goal_state(self) -> None:
        for name in (KEY_GOAL_TIME, KEY_BASELINE_SCREEN_TIME, KEY_BASELINE_CAPTURED):
            await self.store.delete(self._key(name))

    async def clear(self) -> None:
        """Drop user-scoped state on sign-out. Sync bookkeeping survives."""
        for name in USER_SCOPED_KEYS:
            await self.store.delete(self._key(name))
        logger.info("User preferences cleared")
