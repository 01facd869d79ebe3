"""
Usage upload sink.

Writes one document per user with replace semantics: uploading again for the
same uid overwrites the previous day's document instead of appending to it.
Transient failures are retried briefly here; anything left over is raised as
UploadSinkError and handled by the work scheduler's backoff.
"""

import asyncio

import httpx
from pydantic import ValidationError

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger
from timeleak.models.api.usage_upload import UsageUploadPayload
from timeleak.models.domain import AuthenticatedUser, DailyUsage

logger = get_logger(__name__)

USAGE_COLLECTION = "usage_data"

MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class UploadSinkError(Exception):
    """Raised when the usage document cannot be written or read."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class UsageUploadSink:
    def __init__(
        self,
        base_url: str | None = None,
        auth_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        self.base_url = (base_url or settings.UPLOAD_BASE_URL).rstrip("/")
        self.auth_token = auth_token if auth_token is not None else settings.UPLOAD_AUTH_TOKEN
        self._client = client or self._create_client()
        self.backoff_factor = backoff_factor

    def _create_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(settings.UPLOAD_TIMEOUT_SECONDS)
        limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        await self._client.aclose()

    def _document_url(self, uid: str) -> str:
        return f"{self.base_url}/{USAGE_COLLECTION}/{uid}"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, headers=self._headers(), **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    backoff = self.backoff_factor * (2 ** (attempt - 1))
                    logger.debug(
                        "Upload sink retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise UploadSinkError(f"Upload request failed: {e}", retryable=True) from e
                backoff = self.backoff_factor * (2 ** (attempt - 1))
                logger.debug(
                    "Upload sink request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Upload sink retry loop exhausted")

    async def upsert(
        self, user: AuthenticatedUser, daily_usage: DailyUsage, goal_time_ms: int
    ) -> UsageUploadPayload:
        """
        Replace the user's usage document.

        Raises:
            UploadSinkError: On transport failure or a non-success response
        """
        payload = UsageUploadPayload.from_daily_usage(user, daily_usage, goal_time_ms)
        url = self._document_url(user.uid)

        logger.info(
            "Uploading usage document",
            uid=user.uid,
            date=payload.date,
            total_screen_time_ms=payload.total_screen_time_ms,
            app_count=len(payload.top_apps),
        )

        response = await self._request_with_retry("PUT", url, json=payload.to_wire())
        if not response.is_success:
            logger.error(
                "Usage upload failed",
                uid=user.uid,
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise UploadSinkError(
                f"Usage upload failed (HTTP {response.status_code})",
                status_code=response.status_code,
                retryable=response.status_code in RETRY_STATUS_CODES or response.status_code >= 500,
            )

        logger.info("Usage document uploaded", uid=user.uid, date=payload.date)
        return payload

    async def fetch(self, uid: str) -> UsageUploadPayload | None:
        """Read back the stored document; None if the user has none yet."""
        response = await self._request_with_retry("GET", self._document_url(uid))
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise UploadSinkError(
                f"Usage fetch failed (HTTP {response.status_code})",
                status_code=response.status_code,
                retryable=response.status_code in RETRY_STATUS_CODES,
            )

        try:
            return UsageUploadPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("Stored usage document is malformed", uid=uid, error=str(e))
            raise UploadSinkError("Malformed usage document", retryable=False) from e
