"""
Smart Search AI - Gemini-backed product search insights with offline fallback.
"""

__version__ = "1.0.0"

from smart_search.config import AIConfig
from smart_search.gemini_client import GeminiClient, ServiceMode
from smart_search.models import (
    MarketAnalysis,
    ProductCategory,
    ProductDescriptor,
    ProductRecommendation,
    SmartSearchResult,
)
from smart_search.service import SmartSearchService

__all__ = [
    'AIConfig',
    'GeminiClient',
    'ServiceMode',
    'SmartSearchService',
    'SmartSearchResult',
    'ProductCategory',
    'MarketAnalysis',
    'ProductRecommendation',
    'ProductDescriptor',
]
