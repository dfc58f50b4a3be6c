"""
Gemini request orchestration.

GeminiClient posts prompts to the generateContent endpoints in priority
order, retries transient failures, backs off on rate limiting and enforces
one overall timeout per request. It also owns the service mode: once the
client falls back to mock data it never goes back to the live API.
"""
import asyncio
import logging
import random
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx

from smart_search.config import AIConfig
from smart_search.errors import (
    AllEndpointsFailedError,
    ConnectivityUnavailableError,
    EndpointHTTPError,
    InvalidConfigurationError,
    MalformedEnvelopeError,
    RateLimitedError,
    RequestTimeoutError,
)
from smart_search.mock_engine import (
    DEFAULT_QUERY,
    extract_query_from_prompt,
    generate_categories,
    generate_chat_reply,
    generate_market_analysis,
    generate_smart_search_result,
    generic_recommendations,
)
from smart_search.prompts import RequestKind, sniff_request_kind

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429


class ServiceMode(str, Enum):
    LIVE = "live"
    FORCED_MOCK = "forced_mock"     # fell back at runtime, never reverts
    ALWAYS_MOCK = "always_mock"     # production deployments never call the API


def always_online() -> bool:
    return True


def rate_limit_backoff(attempt: int, rng=random) -> float:
    """2s, 4s, 8s ... plus up to a second of jitter"""
    return (2 ** attempt) * 2 + rng.random()


def network_backoff(rng=random) -> float:
    return 1 + rng.random()


def build_payload(prompt: str) -> Dict[str, Any]:
    return {"contents": [{"parts": [{"text": prompt}]}]}


class GeminiClient:
    def __init__(
        self,
        config: AIConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        is_online: Callable[[], bool] = always_online,
        sleep: Callable[[float], Any] = asyncio.sleep,
        rng=None,
    ):
        self.config = config
        self.endpoints = list(config.endpoints)
        self.is_online = is_online
        self.sleep = sleep
        self.rng = rng or random

        if config.production:
            # Never keep the key around in production
            self.api_key = ""
            self.mode = ServiceMode.ALWAYS_MOCK
        else:
            self.api_key = config.gemini_api_key or ""
            self.mode = ServiceMode.LIVE

        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=config.request_timeout)

    @property
    def use_mock_data(self) -> bool:
        return self.mode is not ServiceMode.LIVE

    @property
    def enabled(self) -> bool:
        return self.mode is ServiceMode.LIVE

    def force_mock_mode(self, reason: str = "rate limited") -> None:
        if self.mode is ServiceMode.LIVE:
            self.mode = ServiceMode.FORCED_MOCK
            logger.warning(f"Gemini API {reason}. Switching to mock data mode.")

    def mock_output(self, prompt: str, kind: RequestKind, mock: Optional[Callable[[], Any]] = None) -> Any:
        """Mock synthesis shaped like what the model would have answered; `mock` overrides it"""
        if mock is not None:
            return mock()
        if kind is RequestKind.SMART_SEARCH:
            return generate_smart_search_result(extract_query_from_prompt(prompt), rng=self.rng)
        elif kind is RequestKind.CATEGORIES:
            return generate_categories(DEFAULT_QUERY)
        elif kind is RequestKind.MARKET_ANALYSIS:
            return generate_market_analysis(DEFAULT_QUERY, rng=self.rng)
        elif kind is RequestKind.RECOMMENDATIONS:
            return generic_recommendations()
        return generate_chat_reply(prompt, rng=self.rng)

    async def make_api_request(
        self,
        prompt: str,
        kind: Optional[RequestKind] = None,
        mock: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """
        Raw model text for the prompt, or mock output when mock mode is active.

        `mock` builds the mock answer from the caller's own inputs; without it
        the answer is synthesized from the prompt alone.
        """
        kind = kind or sniff_request_kind(prompt)

        if self.use_mock_data:
            return self.mock_output(prompt, kind, mock)

        if not self.api_key:
            raise InvalidConfigurationError("Gemini API key is not configured")

        if not self.is_online():
            raise ConnectivityUnavailableError("No internet connection")

        try:
            return await asyncio.wait_for(
                self._request_from_endpoints(prompt, kind, mock),
                timeout=self.config.request_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Gemini API request timeout reached, aborting...")
            raise RequestTimeoutError("Request timed out. Please try again.") from e

    async def _request_from_endpoints(self, prompt: str, kind: RequestKind, mock=None) -> Any:
        last_error = "no endpoints configured"
        last_status = None

        for endpoint in self.endpoints:
            try:
                response = await self.make_request_with_retry(endpoint, prompt)
            except httpx.RequestError as e:
                last_error = f"Endpoint {endpoint}: {e.__class__.__name__} {e}".rstrip()
                last_status = None
                logger.warning(f"Error with endpoint {endpoint}: {e!r}")
                continue

            if response is None:
                # Retries ran into the rate limit and mock mode is now on
                return self.mock_output(prompt, kind, mock)

            if response.is_success:
                return self._extract_text(response)

            error_cls = RateLimitedError if response.status_code == RATE_LIMIT_STATUS else EndpointHTTPError
            error = error_cls(endpoint, response.status_code, response.reason_phrase)
            last_error = str(error)
            last_status = response.status_code
            logger.warning(f"Failed to use endpoint {endpoint}: {response.status_code} {response.reason_phrase}")

        if last_status == RATE_LIMIT_STATUS:
            self.force_mock_mode()
        raise AllEndpointsFailedError(last_error, last_status)

    async def make_request_with_retry(
        self,
        endpoint: str,
        prompt: str,
        max_retries: Optional[int] = None,
    ) -> Optional[httpx.Response]:
        """
        POST the prompt to one endpoint.

        Returns the first successful or non-retryable response, or None when the
        caller should answer with mock data (production, or rate limited on every
        attempt). Request errors (transport, decoding, redirects) are retried once
        and then re-raised.
        """
        if self.mode is ServiceMode.ALWAYS_MOCK:
            return None

        max_retries = self.config.max_retries if max_retries is None else max_retries
        last_response = None

        for attempt in range(max_retries + 1):
            try:
                response = await self.client.post(
                    endpoint,
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=build_payload(prompt),
                )
            except httpx.RequestError as e:
                if attempt < min(1, max_retries):
                    delay = network_backoff(self.rng)
                    logger.warning(f"Network error ({e!r}). Retrying in {delay:.1f}s... (attempt {attempt + 1}/{max_retries + 1})")
                    await self.sleep(delay)
                    continue
                raise

            last_response = response
            if response.is_success:
                return response

            if response.status_code == RATE_LIMIT_STATUS:
                if attempt < max_retries:
                    delay = rate_limit_backoff(attempt, self.rng)
                    logger.warning(f"Rate limited (429). Retrying in {delay:.1f}s... (attempt {attempt + 1}/{max_retries + 1})")
                    await self.sleep(delay)
                    continue
                logger.warning("All Gemini API retries failed with 429. Switching to mock data mode.")
                self.force_mock_mode()
                return None

            # Other HTTP errors are not worth retrying on the same endpoint
            return response

        return last_response

    def _extract_text(self, response: httpx.Response) -> str:
        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedEnvelopeError("Invalid response structure from Gemini API") from e

        if not isinstance(text, str):
            raise MalformedEnvelopeError("Invalid response structure from Gemini API")
        return text

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
