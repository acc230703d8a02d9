"""
HTTP version prober.

Observes which version a service is serving by fetching its check endpoint.
The version token is read from the ``Server`` header when it carries one
(``name-<version>``), otherwise from the response body.
"""

import logging
import os
from typing import Optional

import httpx

from rollout_manager.errors import ProbeError, SmokeTestError
from rollout_manager.utils.log_sanitizer import sanitize_for_log

logger = logging.getLogger(__name__)

SMOKE_TEST_TOKEN_ENV = "ROLLOUT_SMOKE_TEST_TOKEN"


class HttpVersionProber:
    """VersionProber implementation over HTTP."""

    def __init__(
        self,
        timeout: float = 10.0,
        smoke_test_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize HTTP prober.

        Args:
            timeout: Per-request timeout in seconds
            smoke_test_token: Bearer token sent to smoke test endpoints. Read
                from ROLLOUT_SMOKE_TEST_TOKEN when not given.
            client: Optional preconfigured client
        """
        self.smoke_test_token = smoke_test_token or os.getenv(SMOKE_TEST_TOKEN_ENV)
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_deployed_version(self, url: str) -> str:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise ProbeError(f"Failed to GET {url}: {e}") from e

        if response.status_code != 200:
            raise ProbeError(f"Received non 200 status {response.status_code} from {url}")

        server = response.headers.get("Server")
        if server:
            parts = server.split("-")
            if len(parts) > 1:
                return parts[-1].strip()

        return response.text.strip()

    async def run_smoke_test(self, url: str) -> None:
        headers = {}
        if self.smoke_test_token:
            headers["Authorization"] = f"Bearer {self.smoke_test_token}"

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise SmokeTestError(f"Failed to GET {url}: {e}") from e

        if response.status_code != 200:
            raise SmokeTestError(
                f"Smoke test at {url} returned {response.status_code}: "
                f"{sanitize_for_log(response.text, max_length=200)}"
            )
        logger.info(f"Smoke test passed at {url}")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "HttpVersionProber":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
