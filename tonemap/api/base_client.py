"""
Base API Client

Shared aiohttp request handling for ToneMap's HTTP clients: session
lifecycle, rate limiting, retries with backoff, and translation of every
failure into ExternalLookupError.
"""

import asyncio
import json
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..exceptions import ExternalLookupError
from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)

MAX_BACKOFF_SECONDS = 30.0


class BaseAPIClient(ABC):
    """
    Base HTTP client for external lookups.

    Use as an async context manager, or call `open()`/`close()` explicitly
    when the client lives as long as a session.
    """

    def __init__(
        self,
        base_url: str,
        rate_limiter: RateLimiter,
        timeout: float = 10,
        service_name: str = "api"
    ):
        self.base_url = base_url.rstrip('/')
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.service_name = service_name
        self.session: Optional[aiohttp.ClientSession] = None

        self.logger = logger.bind(
            component="BaseAPIClient",
            service=service_name,
            base_url=self.base_url
        )

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self.logger.debug("API client session started")

    async def close(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
            self.logger.debug("API client session closed")
        self.session = None

    async def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        retries: int = 2
    ) -> Dict[str, Any]:
        """
        Make a rate-limited request, retrying timeouts, 429s and 5xx responses.

        Returns:
            Parsed JSON response

        Raises:
            ExternalLookupError: If the request cannot be completed
        """
        if self.session is None:
            raise ExternalLookupError(self.service_name, "client session not open")

        url = f"{self.base_url}/{endpoint.lstrip('/')}" if endpoint else self.base_url
        request_headers = dict(headers or {})
        request_headers.setdefault('User-Agent', f'ToneMap-{self.service_name}/1.0')

        for attempt in range(retries + 1):
            await self.rate_limiter.wait_if_needed()
            try:
                async with self.session.request(
                    method=method,
                    url=url,
                    params=params if method == "GET" else None,
                    json=params if method in ("POST", "PUT", "PATCH") else None,
                    headers=request_headers
                ) as response:
                    if response.status == 200:
                        data = await self._parse_response(response)
                        error_info = self._extract_api_error(data)
                        if error_info:
                            raise ExternalLookupError(self.service_name, error_info)
                        self.logger.debug("API request successful", endpoint=endpoint)
                        return data

                    if response.status == 429:
                        wait_time = self._retry_after(response, attempt)
                        self.logger.warning(
                            "Rate limited, backing off",
                            endpoint=endpoint,
                            attempt=attempt + 1,
                            wait_time=wait_time
                        )
                        await asyncio.sleep(wait_time)
                        continue

                    if 400 <= response.status < 500:
                        raise ExternalLookupError(
                            self.service_name, f"client error {response.status} for {endpoint}"
                        )

                    self.logger.warning(
                        "Server error",
                        endpoint=endpoint,
                        status=response.status,
                        attempt=attempt + 1
                    )

            except asyncio.TimeoutError:
                self.logger.warning(
                    "Request timeout",
                    endpoint=endpoint,
                    attempt=attempt + 1,
                    timeout=self.timeout
                )
            except aiohttp.ClientError as e:
                self.logger.warning(
                    "HTTP client error",
                    endpoint=endpoint,
                    error=str(e),
                    error_type=type(e).__name__,
                    attempt=attempt + 1
                )

            if attempt < retries:
                await self._exponential_backoff(attempt)

        self.logger.error("Request failed after all retries", endpoint=endpoint, attempts=retries + 1)
        raise ExternalLookupError(
            self.service_name, f"request to {endpoint or '/'} failed after {retries + 1} attempts"
        )

    async def _parse_response(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            return await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
            raise ExternalLookupError(self.service_name, f"invalid JSON response: {e}") from e

    @abstractmethod
    def _extract_api_error(self, data: Dict[str, Any]) -> Optional[str]:
        """Return the API-specific error carried in a 200 response body, if any."""

    @staticmethod
    def _retry_after(response: aiohttp.ClientResponse, attempt: int) -> float:
        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return min(float(retry_after), MAX_BACKOFF_SECONDS)
            except ValueError:
                pass
        return min(2 ** attempt, MAX_BACKOFF_SECONDS)

    async def _exponential_backoff(self, attempt: int, base_delay: float = 0.5):
        delay = base_delay * (2 ** attempt)
        delay = min(delay + random.uniform(0.1, 0.3) * delay, MAX_BACKOFF_SECONDS)
        self.logger.debug("Backing off before retry", attempt=attempt + 1, delay=round(delay, 2))
        await asyncio.sleep(delay)

    def get_service_info(self) -> Dict[str, Any]:
        return {
            "service_name": self.service_name,
            "base_url": self.base_url,
            "timeout": self.timeout,
            "session_active": self.session is not None and not self.session.closed,
        }
