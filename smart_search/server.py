import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel

from smart_search import __version__
from smart_search.config import AIConfig
from smart_search.models import (
    MarketAnalysis,
    ProductCategory,
    ProductDescriptor,
    ProductRecommendation,
    SmartSearchResult,
)
from smart_search.service import SmartSearchService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# request models
class EnhanceRequest(BaseModel):
    query: str

class CategorizeRequest(BaseModel):
    products: List[ProductDescriptor]

class MarketAnalysisRequest(BaseModel):
    query: str
    products: Optional[List[ProductDescriptor]] = []

class RecommendationRequest(BaseModel):
    query: str
    search_history: Optional[List[str]] = []

class ChatRequest(BaseModel):
    message: str


def create_app(config: Optional[AIConfig] = None) -> FastAPI:
    config = config or AIConfig.from_env()
    if config.debug_enabled:
        logging.getLogger("smart_search").setLevel(logging.DEBUG)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # The one service instance for this process
        service = SmartSearchService(config)
        service.start()
        app.state.smart_search = service
        logger.info(f"Smart search service started (mode: {service.mode.value})")
        try:
            yield
        finally:
            await service.aclose()

    app = FastAPI(title="Smart Search AI", version=__version__, lifespan=lifespan)

    def get_service(request: Request) -> SmartSearchService:
        return request.app.state.smart_search

    @app.post("/enhance", response_model=SmartSearchResult)
    async def enhance_search_query(request: EnhanceRequest, service: SmartSearchService = Depends(get_service)):
        if not request.query.strip():
            raise HTTPException(status_code=400, detail="Query must not be empty")
        return await service.enhance_search_query(request.query.strip())

    @app.post("/categorize", response_model=List[ProductCategory])
    async def categorize_products(request: CategorizeRequest, service: SmartSearchService = Depends(get_service)):
        if not request.products:
            raise HTTPException(status_code=400, detail="No products provided")
        return await service.categorize_products(request.products)

    @app.post("/market-analysis", response_model=MarketAnalysis)
    async def analyze_market_trends(request: MarketAnalysisRequest, service: SmartSearchService = Depends(get_service)):
        if not request.query.strip():
            raise HTTPException(status_code=400, detail="Query must not be empty")
        return await service.analyze_market_trends(request.query.strip(), request.products or [])

    @app.post("/recommendations", response_model=List[ProductRecommendation])
    async def get_recommendations(request: RecommendationRequest, service: SmartSearchService = Depends(get_service)):
        if not request.query.strip():
            raise HTTPException(status_code=400, detail="Query must not be empty")
        return await service.get_personalized_recommendations(request.query.strip(), request.search_history or [])

    @app.post("/chat")
    async def chat(request: ChatRequest, service: SmartSearchService = Depends(get_service)):
        if not request.message.strip():
            raise HTTPException(status_code=400, detail="I didn't catch that. Could you try again?")
        response_text = await service.chat(request.message.strip())
        return {
            "response": response_text,
            "status": "success",
            "mock_mode": service.is_using_mock_data(),
        }

    @app.get("/health")
    async def health_check(service: SmartSearchService = Depends(get_service)):
        return {
            "status": "healthy",
            "service": "smart-search",
            "version": __version__,
            "gemini_api": "enabled" if service.client.enabled else "disabled",
            "mode": service.mode.value,
        }

    @app.get("/")
    async def root(service: SmartSearchService = Depends(get_service)):
        features = ["Query enhancement", "Product categorization", "Market analysis", "Recommendations", "Chat"]
        if service.client.enabled:
            features.append("Gemini AI")
        else:
            features.append("Offline insights")
        return {
            "message": "Smart Search AI",
            "version": __version__,
            "features": features,
        }

    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        "smart_search.server:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
