"""
One-shot instruction prompts for the structured Gemini calls.

Each prompt documents the exact JSON shape the UI consumes and asks for
Indian Rupee prices; response recovery and the models rely on that shape.
"""
from enum import Enum
from typing import Iterable, Optional

from smart_search.models import ProductDescriptor


class RequestKind(str, Enum):
    SMART_SEARCH = "smart_search"
    CATEGORIES = "categories"
    MARKET_ANALYSIS = "market_analysis"
    RECOMMENDATIONS = "recommendations"
    CHAT = "chat"

    @property
    def structured(self) -> bool:
        return self is not RequestKind.CHAT


# Literal substrings present only in structured prompts
STRUCTURED_MARKERS = ('"enhancedQuery"', '"categories"', '"marketAnalysis"')

INR_RULE = "IMPORTANT: All prices must be in Indian Rupees (₹) format, not USD ($)."

CONNECTION_TEST_PROMPT = "Hello, this is a test message."


def sniff_request_kind(prompt: str) -> RequestKind:
    """Guess the kind of a prompt that arrived without one"""
    if any(marker in prompt for marker in STRUCTURED_MARKERS):
        return RequestKind.SMART_SEARCH
    return RequestKind.CHAT


def enhance_query_prompt(query: str) -> str:
    return f"""
Analyze this search query: "{query}"

You must return ONLY valid JSON with this exact structure, no markdown, no explanations, no additional text:
{{
  "enhancedQuery": "enhanced search query",
  "categories": [
    {{
      "category": "main category",
      "confidence": 0.95,
      "subcategory": "subcategory"
    }}
  ],
  "marketAnalysis": {{
    "priceRange": "price range in INR (₹)",
    "marketTrend": "increasing/decreasing/stable",
    "bestTimeToBuy": "recommendation",
    "pricePrediction": "prediction",
    "marketInsights": ["insight1", "insight2"]
  }},
  "recommendations": [
    {{
      "productName": "product name",
      "reason": "why recommend",
      "category": "category",
      "estimatedPrice": "price in INR (₹)",
      "confidence": 0.85
    }}
  ],
  "searchTips": ["tip1", "tip2", "tip3"]
}}

Focus on electronics, gadgets, and consumer products. Be specific and actionable.
{INR_RULE}
CRITICAL: Return ONLY the JSON object above, nothing else.
"""


def categorize_prompt(products: Iterable[ProductDescriptor]) -> str:
    titles = ", ".join(p.title for p in products)
    return f"""
Categorize these products: {titles}

You must return ONLY valid JSON array with this exact structure, no markdown, no explanations:
[
  {{
    "category": "main category",
    "confidence": 0.95,
    "subcategory": "subcategory"
  }}
]

CRITICAL: Return ONLY the JSON array above, nothing else.
"""


def market_analysis_prompt(query: str, products: Iterable[ProductDescriptor]) -> str:
    prices = ", ".join(str(p.price) for p in products if p.price is not None)
    return f"""
Analyze market trends for "{query}" with prices: {prices}

You must return ONLY valid JSON with this exact structure, no markdown, no explanations:
{{
  "priceRange": "price range in INR (₹)",
  "marketTrend": "increasing/decreasing/stable",
  "bestTimeToBuy": "recommendation",
  "pricePrediction": "prediction",
  "marketInsights": ["insight1", "insight2"]
}}

{INR_RULE}
CRITICAL: Return ONLY the JSON object above, nothing else.
"""


def recommendations_prompt(user_query: str, search_history: Optional[Iterable[str]] = None) -> str:
    history = ", ".join(search_history or [])
    return f"""
Based on user query: "{user_query}" and search history: [{history}]

You must return ONLY valid JSON array with this exact structure, no markdown, no explanations:
[
  {{
    "productName": "product name",
    "reason": "why recommended",
    "category": "category",
    "estimatedPrice": "price in INR (₹)",
    "confidence": 0.85
  }}
]

{INR_RULE}
CRITICAL: Return ONLY the JSON array above, nothing else.
"""


def chat_prompt(message: str) -> str:
    return f"""You are a friendly shopping assistant for Indian online shoppers. The user asked: "{message}"

Answer conversationally in a few sentences. Quote any prices in Indian Rupees (₹).
Do not use JSON or markdown tables."""
