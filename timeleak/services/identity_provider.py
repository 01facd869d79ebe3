"""
Authenticated identity as seen by the sync pipeline.

Phone sign-in itself happens elsewhere; once it succeeds the uid and phone
number are cached in UserPrefs and this provider serves them back.
"""

from typing import Protocol

from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.domain import AuthenticatedUser
from timeleak.services.user_prefs import UserPrefs

logger = get_logger(__name__)


class IdentityProvider(Protocol):
    async def current_user(self) -> AuthenticatedUser | None: ...


class PrefsIdentityProvider:
    def __init__(self, prefs: UserPrefs):
        self.prefs = prefs

    async def current_user(self) -> AuthenticatedUser | None:
        uid = await self.prefs.get_uid()
        if not uid:
            return None
        return AuthenticatedUser(uid=uid, phone_number=await self.prefs.get_phone())

    async def sign_in(self, uid: str, phone_number: str) -> AuthenticatedUser:
        await self.prefs.save_user(phone=phone_number, uid=uid)
        logger.info("User signed in", uid=uid)
        return AuthenticatedUser(uid=uid, phone_number=phone_number)

    async def sign_out(self) -> None:
        await self.prefs.clear()
        logger.info("User signed out")
