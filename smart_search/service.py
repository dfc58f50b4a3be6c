"""
SmartSearchService: the public face of the Gemini integration.

Every operation returns a fully shaped result. Network, envelope and parse
failures are logged and answered with mock synthesis of the same shape, so
the calling UI flow never sees an exception from here.
"""
import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from smart_search.config import AIConfig
from smart_search.errors import UnparsableModelOutputError, user_friendly_error
from smart_search.gemini_client import GeminiClient, ServiceMode
from smart_search.mock_engine import (
    DEFAULT_QUERY,
    generate_categories,
    generate_chat_reply,
    generate_market_analysis,
    generate_smart_search_result,
    generic_recommendations,
)
from smart_search.models import (
    MarketAnalysis,
    ProductCategory,
    ProductDescriptor,
    ProductRecommendation,
    SmartSearchResult,
)
from smart_search.prompts import (
    CONNECTION_TEST_PROMPT,
    RequestKind,
    categorize_prompt,
    chat_prompt,
    enhance_query_prompt,
    market_analysis_prompt,
    recommendations_prompt,
)
from smart_search.recovery import parse_model_output

logger = logging.getLogger(__name__)

T = TypeVar("T")

GOOGLE_API_KEY_PREFIX = "AIza"
MIN_API_KEY_LENGTH = 10

SMART_SEARCH_ADAPTER = TypeAdapter(SmartSearchResult)
CATEGORIES_ADAPTER = TypeAdapter(List[ProductCategory])
MARKET_ANALYSIS_ADAPTER = TypeAdapter(MarketAnalysis)
RECOMMENDATIONS_ADAPTER = TypeAdapter(List[ProductRecommendation])


class SmartSearchService:
    def __init__(
        self,
        config: AIConfig,
        client: Optional[GeminiClient] = None,
        today: Callable[[], date] = date.today,
        rng=None,
    ):
        self.config = config
        self.client = client or GeminiClient(config, rng=rng)
        self.today = today
        self.rng = rng
        self._probe_task: Optional[asyncio.Task] = None

        if self.client.mode is ServiceMode.ALWAYS_MOCK:
            if config.debug_enabled:
                logger.info("Production mode: Using mock data only (AI features disabled)")
            return

        if config.debug_enabled:
            api_key = self.client.api_key
            logger.debug(f"SmartSearchService - API Key: {'Present' if api_key else 'Missing'}")
            logger.debug(f"API Key length: {len(api_key)}")
            logger.debug(f"API Key preview: {api_key[:10] + '...' if api_key else 'Not set'}")

        if not self.validate_api_key():
            self.client.force_mock_mode("key is not properly configured")

        if config.debug_enabled:
            logger.debug(f"Using mock data: {self.client.use_mock_data}")

    # --- mode --------------------------------------------------------------

    @property
    def mode(self) -> ServiceMode:
        return self.client.mode

    def is_using_mock_data(self) -> bool:
        return self.client.use_mock_data

    def force_mock_mode(self) -> None:
        self.client.force_mock_mode()

    def validate_api_key(self) -> bool:
        api_key = self.client.api_key
        if not api_key or len(api_key) < MIN_API_KEY_LENGTH:
            logger.warning("Gemini API key is invalid or missing")
            return False

        if not api_key.startswith(GOOGLE_API_KEY_PREFIX):
            logger.warning(f"Gemini API key format appears invalid (should start with {GOOGLE_API_KEY_PREFIX})")
            return False

        return True

    async def test_api_connection(self) -> bool:
        if self.client.mode is ServiceMode.ALWAYS_MOCK:
            return False

        if self.client.use_mock_data:
            logger.info("API test skipped - using mock data mode")
            return False

        try:
            response = await self.client.make_api_request(CONNECTION_TEST_PROMPT, RequestKind.CHAT)
        except Exception as e:
            logger.error(f"Gemini API test failed: {e}")
            return False

        logger.info(f"Gemini API test successful: {str(response)[:100]}...")
        return True

    def start(self) -> Optional[asyncio.Task]:
        """Kick off the background connection test; must run inside an event loop"""
        if self.client.use_mock_data:
            return None
        if self._probe_task is None:
            self._probe_task = asyncio.create_task(self._probe_connection())
        return self._probe_task

    async def _probe_connection(self) -> None:
        if not await self.test_api_connection():
            self.client.force_mock_mode("connection test failed")

    async def aclose(self) -> None:
        if self._probe_task is not None and not self._probe_task.done():
            self._probe_task.cancel()
        await self.client.aclose()

    # --- public operations -------------------------------------------------

    async def enhance_search_query(self, query: str) -> SmartSearchResult:
        return await self._run(
            "enhance_search_query",
            lambda: enhance_query_prompt(query),
            RequestKind.SMART_SEARCH,
            SMART_SEARCH_ADAPTER,
            lambda: generate_smart_search_result(query, today=self.today(), rng=self.rng),
        )

    async def categorize_products(self, products: Iterable[Any]) -> List[ProductCategory]:
        descriptors = _descriptors(products)
        titles = " ".join(p.title for p in descriptors)
        return await self._run(
            "categorize_products",
            lambda: categorize_prompt(descriptors),
            RequestKind.CATEGORIES,
            CATEGORIES_ADAPTER,
            lambda: generate_categories(titles or DEFAULT_QUERY),
        )

    async def analyze_market_trends(self, query: str, products: Iterable[Any] = ()) -> MarketAnalysis:
        descriptors = _descriptors(products)
        return await self._run(
            "analyze_market_trends",
            lambda: market_analysis_prompt(query, descriptors),
            RequestKind.MARKET_ANALYSIS,
            MARKET_ANALYSIS_ADAPTER,
            lambda: generate_market_analysis(query or DEFAULT_QUERY, today=self.today(), rng=self.rng),
        )

    async def get_personalized_recommendations(
        self, user_query: str, search_history: Optional[Iterable[str]] = None
    ) -> List[ProductRecommendation]:
        history = [str(h) for h in (search_history or [])]
        return await self._run(
            "get_personalized_recommendations",
            lambda: recommendations_prompt(user_query, history),
            RequestKind.RECOMMENDATIONS,
            RECOMMENDATIONS_ADAPTER,
            generic_recommendations,
        )

    async def chat(self, message: str) -> str:
        prompt = chat_prompt(message)
        if self.client.use_mock_data:
            return generate_chat_reply(prompt, rng=self.rng)

        try:
            response = await self.client.make_api_request(
                prompt, RequestKind.CHAT, mock=lambda: generate_chat_reply(prompt, rng=self.rng)
            )
        except Exception as e:
            self._log_failure("chat", e)
            return generate_chat_reply(prompt, rng=self.rng)

        if not isinstance(response, str) or not response.strip():
            return generate_chat_reply(prompt, rng=self.rng)
        return response.strip()

    # --- helpers -----------------------------------------------------------

    async def _run(
        self,
        operation: str,
        build_prompt: Callable[[], str],
        kind: RequestKind,
        adapter: TypeAdapter,
        fallback: Callable[[], T],
    ) -> T:
        if self.client.use_mock_data:
            return fallback()

        try:
            response = await self.client.make_api_request(build_prompt(), kind, mock=fallback)
            return self._coerce(response, adapter)
        except Exception as e:
            self._log_failure(operation, e)
            return fallback()

    def _coerce(self, response: Any, adapter: TypeAdapter) -> Any:
        """Validate model output (raw text or an already structured mock) into the result type"""
        if isinstance(response, str):
            parsed = parse_model_output(response)
            if parsed is None:
                if self.config.debug_enabled:
                    logger.debug(f"Raw response: {response[:500]}")
                raise UnparsableModelOutputError("Failed to parse Gemini response after all attempts")
        else:
            parsed = response

        try:
            return adapter.validate_python(parsed)
        except ValidationError as e:
            raise UnparsableModelOutputError(
                f"Gemini response does not match the expected shape ({e.error_count()} errors)"
            ) from e

    def _log_failure(self, operation: str, error: Exception) -> None:
        logger.warning(f"{operation} failed, using mock data: {error}")
        if self.config.debug_enabled:
            logger.error(f"Gemini request failed: {_diagnostics(operation, error)}")


def _diagnostics(operation: str, error: Exception) -> dict:
    return {
        "error": str(error),
        "type": type(error).__name__,
        "user_message": user_friendly_error(error),
        "stage": operation,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _descriptors(products: Iterable[Any]) -> List[ProductDescriptor]:
    """Accept descriptors or plain dicts; skip entries without a usable title"""
    descriptors = []
    for product in products or []:
        if isinstance(product, ProductDescriptor):
            descriptors.append(product)
            continue
        try:
            descriptors.append(ProductDescriptor.model_validate(product))
        except ValidationError as e:
            logger.warning(f"Skipping product descriptor: {e.error_count()} validation errors")
    return descriptors
