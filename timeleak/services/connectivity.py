"""Network constraint check used before running network-bound work."""

import httpx

from timeleak.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

PROBE_TIMEOUT_SECONDS = 5.0


class HttpConnectivityProbe:
    """Treats any HTTP response from the probe URL as "network available"."""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(PROBE_TIMEOUT_SECONDS))

    async def __call__(self) -> bool:
        try:
            await self._client.head(self.url)
            return True
        except httpx.HTTPError as e:
            logger.debug("Connectivity probe failed", url=self.url, error=str(e))
            return False

    async def close(self) -> None:
        await self._client.aclose()
