"""
Client for an external verifiable-randomness oracle.

The oracle accepts POST {base_url}/requests and answers with a request id.
When the value is ready it calls back RANDOMNESS_CALLBACK_URL with
{request_id, random_value, signature}; see api/routes/randomness.py.
"""

import logging
from typing import Optional

import aiohttp

from lootvault.core.config import settings
from lootvault.services.randomness.base import RandomnessProvider
from lootvault.services.rate_limiting import get_rate_limiter, retry_with_backoff

logger = logging.getLogger(__name__)


class OracleRandomnessProvider(RandomnessProvider):
    name = "oracle"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        callback_url: Optional[str] = None,
        secret: Optional[str] = None,
    ):
        super().__init__(secret=secret)
        self.base_url = (base_url or settings.RANDOMNESS_ORACLE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.RANDOMNESS_ORACLE_API_KEY
        self.callback_url = callback_url or settings.RANDOMNESS_CALLBACK_URL
        self.rate_limiter = get_rate_limiter(
            "randomness-oracle", max_requests=settings.RANDOMNESS_ORACLE_RATE_LIMIT
        )
        self._http: Optional[aiohttp.ClientSession] = None

    async def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._http = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=10),
            )
        return self._http

    @retry_with_backoff(max_retries=3)
    async def request_randomness(self) -> str:
        if not self.base_url:
            raise RuntimeError("RANDOMNESS_ORACLE_URL is not configured")

        async with self.rate_limiter.acquire("oracle"):
            http = await self._get_http()
            async with http.post(
                f"{self.base_url}/requests",
                json={"num_words": 1, "callback_url": self.callback_url},
            ) as resp:
                resp.raise_for_status()
                data = await resp.json()

        request_id = str(data["request_id"])
        logger.info("oracle: randomness requested (%s)", request_id)
        return request_id

    async def stop(self) -> None:
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None
