from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MarketTrend = Literal["increasing", "decreasing", "stable"]


class _WireModel(BaseModel):
    """Immutable value type serialized with the camelCase names the UI expects"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ProductCategory(_WireModel):
    category: str
    confidence: float = Field(ge=0, le=1)
    subcategory: Optional[str] = None


class MarketAnalysis(_WireModel):
    price_range: str = Field(alias="priceRange")
    market_trend: MarketTrend = Field(alias="marketTrend")
    best_time_to_buy: str = Field(alias="bestTimeToBuy")
    price_prediction: str = Field(alias="pricePrediction")
    market_insights: List[str] = Field(alias="marketInsights")


class ProductRecommendation(_WireModel):
    product_name: str = Field(alias="productName")
    reason: str
    category: str
    estimated_price: str = Field(alias="estimatedPrice")
    confidence: float = Field(ge=0, le=1)


class SmartSearchResult(_WireModel):
    enhanced_query: str = Field(alias="enhancedQuery")
    categories: List[ProductCategory]
    market_analysis: MarketAnalysis = Field(alias="marketAnalysis")
    recommendations: List[ProductRecommendation]
    search_tips: List[str] = Field(alias="searchTips")


class ProductDescriptor(BaseModel):
    """Lightweight product passed in by the caller (title/price pair)"""
    title: str
    price: Union[float, str, None] = None
