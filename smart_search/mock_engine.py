"""
Mock synthesis engine.

Builds plausible smart-search insights locally, from the query text and the
calendar date, so callers get a fully shaped result when Gemini is not usable.
Everything is deterministic for a given (query, date) except the market trend
of uncategorized products and the choice among canned chat replies; both draw
from the `rng` argument so tests can pin them.
"""
import random
import re
from datetime import date
from typing import List, Optional, Sequence, Tuple

from smart_search.models import (
    MarketAnalysis,
    ProductCategory,
    ProductRecommendation,
    SmartSearchResult,
)

DEFAULT_QUERY = "general product"
PRICE_RANGE_SEPARATOR = " - "
TRENDS = ["increasing", "decreasing", "stable"]

ELECTRONICS_RX = re.compile(r"phone|laptop|tablet|tv|camera|headphone|speaker|watch|gaming|console|monitor", re.I)
APPLE_RX = re.compile(r"iphone|ipad|macbook|apple|airpods", re.I)
CLOTHING_RX = re.compile(r"shirt|jeans|dress|shoes|jacket|clothing|fashion", re.I)
HOME_RX = re.compile(r"furniture|kitchen|home|decor|appliance", re.I)
BOOK_RX = re.compile(r"book|novel|textbook|guide", re.I)
# Marketing adjectives stand in for product tier
PREMIUM_RX = re.compile(r"pro|max|ultra|premium|flagship", re.I)

# Ordered: the first matching group wins
CATEGORY_GROUPS: List[Tuple[re.Pattern, List[Tuple[str, float, str]]]] = [
    (re.compile(r"phone|smartphone|mobile", re.I), [
        ("Electronics", 0.95, "Smartphones"),
        ("Mobile Devices", 0.88, "Communication"),
    ]),
    (re.compile(r"laptop|computer|pc", re.I), [
        ("Electronics", 0.92, "Computers"),
        ("Technology", 0.85, "Computing"),
    ]),
    (re.compile(r"tv|television|monitor", re.I), [
        ("Electronics", 0.90, "Display"),
        ("Home Entertainment", 0.82, "Audio Visual"),
    ]),
    (re.compile(r"headphone|earphone|speaker|audio", re.I), [
        ("Electronics", 0.88, "Audio"),
        ("Accessories", 0.75, "Audio Accessories"),
    ]),
    (re.compile(r"watch|smartwatch", re.I), [
        ("Electronics", 0.85, "Wearables"),
        ("Fashion", 0.70, "Accessories"),
    ]),
    (re.compile(r"shirt|jeans|dress|clothing|fashion", re.I), [
        ("Fashion", 0.90, "Apparel"),
        ("Clothing", 0.85, "Casual Wear"),
    ]),
    (re.compile(r"shoes|sneaker|footwear", re.I), [
        ("Fashion", 0.88, "Footwear"),
        ("Sports", 0.72, "Athletic Wear"),
    ]),
    (re.compile(r"book|novel|guide", re.I), [
        ("Books", 0.92, "Literature"),
        ("Education", 0.78, "Learning Materials"),
    ]),
    (re.compile(r"furniture|home|decor", re.I), [
        ("Home & Garden", 0.87, "Furniture"),
        ("Lifestyle", 0.75, "Home Improvement"),
    ]),
]

DEFAULT_CATEGORIES = [
    ("General", 0.80, "Consumer Goods"),
    ("Retail", 0.70, "Miscellaneous"),
]

UNIVERSAL_TIP = "Compare prices across multiple platforms"

SEARCH_TIPS: List[Tuple[Optional[re.Pattern], List[str]]] = [
    (re.compile(r"phone|laptop|electronics", re.I), [
        "Check for student discounts and educational offers",
        "Look for exchange offers with old devices",
        "Consider extended warranty options",
        "Check EMI options for expensive purchases",
    ]),
    (re.compile(r"clothing|fashion", re.I), [
        "Check size charts carefully before ordering",
        "Look for seasonal clearance sales",
        "Read fabric and care instructions",
        "Check return and exchange policies",
    ]),
    (re.compile(r"book", re.I), [
        "Consider digital versions for instant access",
        "Check for used book options",
        "Look for bundle deals with related titles",
    ]),
    (None, [
        "Read customer reviews and ratings",
        "Check for cashback offers and reward points",
        "Look for bulk purchase discounts",
    ]),
]

GENERIC_RECOMMENDATIONS = [
    ("iPhone 15 Pro Max", "Premium flagship with advanced features", "Electronics", "₹1,50,000", 0.85),
    ("Samsung Galaxy S24 Ultra", "Best Android alternative with S Pen", "Electronics", "₹1,30,000", 0.78),
    ("Google Pixel 8 Pro", "Excellent camera and AI features", "Electronics", "₹1,10,000", 0.72),
]


def generate_categories(query: str) -> List[ProductCategory]:
    for pattern, entries in CATEGORY_GROUPS:
        if pattern.search(query):
            break
    else:
        entries = DEFAULT_CATEGORIES

    return [
        ProductCategory(category=category, confidence=confidence, subcategory=subcategory)
        for category, confidence, subcategory in entries
    ]


def _price_range(is_electronics, is_apple, is_clothing, is_home, is_book, is_premium) -> str:
    if is_apple and is_premium:
        return "₹1,00,000 - ₹2,00,000"
    elif is_electronics and is_premium:
        return "₹50,000 - ₹1,50,000"
    elif is_apple:
        return "₹60,000 - ₹1,20,000"
    elif is_electronics:
        return "₹15,000 - ₹80,000"
    elif is_clothing:
        return "₹500 - ₹5,000"
    elif is_home:
        return "₹2,000 - ₹50,000"
    elif is_book:
        return "₹200 - ₹2,000"
    return "₹1,000 - ₹25,000"


def _buying_advice(month: int, day: int, is_electronics, is_clothing, is_home, is_book) -> Tuple[str, str]:
    """(best time to buy, price prediction); month is 0-based"""
    if is_electronics:
        if 9 <= month <= 11:
            return "Buy now during festive season", "Prices at yearly low, good time to purchase"
        if 0 <= month <= 2:
            return "Wait 1-2 months for better deals", "Prices may drop 5-10% in coming months"
        if 6 <= month <= 8:
            return "Wait 3-4 weeks for festive sales", "Major discounts expected during upcoming festivals"
        return "Current prices are moderate, can buy now", "Prices expected to remain stable for next 2-3 months"

    if is_clothing:
        if month in (0, 5, 6):
            return "Buy now during seasonal sale", "End of season clearance offers available"
        if 9 <= month <= 11:
            return "Wait 4-6 weeks for year-end sales", "Better discounts expected during winter sales"
        return "Wait 2-3 weeks for next sale period", "Seasonal sales coming up with 20-40% discounts"

    if is_home:
        if 9 <= month <= 11:
            return "Buy now during festive home decor season", "Good deals available for home improvement"
        return "Wait 3-5 weeks for better offers", "Home appliance sales expected soon"

    if is_book:
        return "Buy now, book prices are generally stable", "Book prices rarely fluctuate significantly"

    if day <= 10:
        return "Wait 2-3 weeks for mid-month offers", "Better deals typically available mid-month"
    if day <= 20:
        return "Good time to buy, prices are competitive", "Current pricing is reasonable for this category"
    return "Wait 1-2 weeks for month-end clearance", "Month-end sales may offer additional discounts"


def generate_market_analysis(query: str, today: Optional[date] = None, rng=None) -> MarketAnalysis:
    today = today or date.today()
    rng = rng or random
    month = today.month - 1

    is_electronics = bool(ELECTRONICS_RX.search(query))
    is_apple = bool(APPLE_RX.search(query))
    is_clothing = bool(CLOTHING_RX.search(query))
    is_home = bool(HOME_RX.search(query))
    is_book = bool(BOOK_RX.search(query))
    is_premium = bool(PREMIUM_RX.search(query))

    price_range = _price_range(is_electronics, is_apple, is_clothing, is_home, is_book, is_premium)

    if is_electronics:
        # Sep-Dec launches and festive sales push electronics prices down
        market_trend = "decreasing" if month >= 8 else "stable"
    elif is_clothing:
        market_trend = "decreasing" if month in (1, 6) else "stable"
    else:
        market_trend = rng.choice(TRENDS)

    best_time_to_buy, price_prediction = _buying_advice(
        month, today.day, is_electronics, is_clothing, is_home, is_book
    )

    insights = []
    if is_electronics:
        insights.append("New model launches can trigger price drops on older versions")
        if month >= 8:
            insights.append("Festive season brings the best electronics deals")
        insights.append("Consider refurbished options for significant savings")
    elif is_clothing:
        insights.append("End-of-season sales offer maximum discounts")
        insights.append("Online exclusive deals often beat retail prices")
    elif is_home:
        insights.append("Bulk purchases during sales can reduce per-unit cost")
        insights.append("Check for installation and warranty offers")
    else:
        insights.append("Compare prices across multiple platforms")
        insights.append("Look for cashback and reward point offers")

    return MarketAnalysis(
        price_range=price_range,
        market_trend=market_trend,
        best_time_to_buy=best_time_to_buy,
        price_prediction=price_prediction,
        market_insights=insights,
    )


def generate_search_tips(query: str) -> List[str]:
    tips = [UNIVERSAL_TIP]
    for pattern, group_tips in SEARCH_TIPS:
        if pattern is None or pattern.search(query):
            tips.extend(group_tips)
            break
    return tips


def generate_recommendations(
    query: str,
    categories: Sequence[ProductCategory],
    market_analysis: MarketAnalysis,
) -> List[ProductRecommendation]:
    """A premium and a budget variant of the query, priced at the range bounds"""
    category = categories[0].category if categories else "Electronics"
    bounds = market_analysis.price_range.split(PRICE_RANGE_SEPARATOR)
    lower = bounds[0] or "₹60,000"
    upper = bounds[1] if len(bounds) > 1 and bounds[1] else "₹1,20,000"

    return [
        ProductRecommendation(
            product_name=f"{query} Pro Max",
            reason="Premium variant with better features",
            category=category,
            estimated_price=upper,
            confidence=0.85,
        ),
        ProductRecommendation(
            product_name=f"{query} Lite",
            reason="Budget-friendly alternative",
            category=category,
            estimated_price=lower,
            confidence=0.78,
        ),
    ]


def generic_recommendations() -> List[ProductRecommendation]:
    return [
        ProductRecommendation(
            product_name=name, reason=reason, category=category,
            estimated_price=price, confidence=confidence,
        )
        for name, reason, category, price, confidence in GENERIC_RECOMMENDATIONS
    ]


def generate_smart_search_result(query: str, today: Optional[date] = None, rng=None) -> SmartSearchResult:
    market_analysis = generate_market_analysis(query, today=today, rng=rng)
    categories = generate_categories(query)

    return SmartSearchResult(
        enhanced_query=f"{query} best deals 2024",
        categories=categories,
        market_analysis=market_analysis,
        recommendations=generate_recommendations(query, categories, market_analysis),
        search_tips=generate_search_tips(query),
    )


def extract_query_from_prompt(prompt: str) -> str:
    """Pull the query out of an enhance prompt, e.g. 'Analyze this search query: "iphone"'"""
    match = re.search(r'Analyze this search query:\s*"([^"]+)"', prompt)
    return match.group(1) if match else DEFAULT_QUERY


# --- conversational replies ---------------------------------------------------

CHAT_INTENTS: List[Tuple[str, List[str], List[str]]] = [
    ("greeting", ["hello", "hi", "hey", "start", "begin"], [
        "Hi there! 👋 I'm excited to help you find the perfect products. What are you shopping for today?",
        "Hello! Welcome to your personal shopping assistant. I can help you discover great deals and make smart purchasing decisions. What interests you?",
        "Hey! I'm here to make your shopping experience amazing. Whether you're looking for the latest gadgets, fashion, or home essentials, I've got you covered. What's on your shopping list?",
        "Hi! Thanks for chatting with me. I love helping people find exactly what they need at the best prices. What can I help you discover today?",
    ]),
    ("phone", ["phone", "smartphone", "mobile"], [
        "Smartphones are constantly evolving! Right now, I'd recommend looking at the latest iPhone 15 series or Samsung Galaxy S24 lineup. Both offer excellent cameras, performance, and battery life. The iPhone 15 Pro starts around ₹1,30,000, while Samsung's flagship is about ₹1,00,000. Which features matter most to you - camera, battery, or gaming performance?",
        "When it comes to phones, it really depends on your budget and needs. For premium users, the iPhone 15 Pro Max offers the best camera and ecosystem integration. If you're looking for great value, Samsung Galaxy S24 Ultra gives you similar features at a lower price point. Both are excellent choices with 5G support and long-term software updates.",
        "Phone shopping can be overwhelming with so many options! Let me help you narrow it down. Are you upgrading from an older phone, or is this your first smartphone? Also, what's your budget range? This will help me give you more targeted recommendations.",
    ]),
    ("laptop", ["laptop", "computer", "macbook"], [
        "Laptops are such a personal choice! For students and general use, I'd recommend the MacBook Air M2 - it's lightweight, has amazing battery life (up to 18 hours), and handles everything from browsing to light video editing. It starts at around ₹1,10,000. If you need more power for gaming or professional work, consider a Windows laptop with dedicated graphics.",
        "The laptop market has something for everyone. If you're into the Apple ecosystem and value design, the MacBook Pro M3 is incredible for creative work. For gaming, look at ASUS ROG or MSI laptops. And for everyday use, Lenovo ThinkPad or Dell XPS series offer great reliability. What's your primary use case - work, gaming, or general browsing?",
        "Great question about laptops! Current trends show that Apple Silicon Macs are dominating for their efficiency, while gaming laptops from ASUS and MSI offer incredible performance. For business users, ThinkPad reliability is unmatched. Do you have a preference for Windows, macOS, or are you open to both?",
    ]),
    ("price", ["price", "cost", "expensive", "cheap", "budget", "deal"], [
        "Smart shopping is all about timing! Prices typically drop during major sales like Amazon Great Indian Festival, Flipkart Big Billion Days, and festive seasons (October-December). Right now, you can find up to 40% off on electronics. Also, check for bank offers, exchange deals, and student discounts. What product are you interested in?",
        "The best deals happen during shopping festivals! We're currently in a good period with various offers running. Electronics see the biggest discounts (up to 50% off), followed by fashion and home goods. Pro tip: Set price alerts on apps and wait for sales rather than buying at full price. What's your budget for what you're looking for?",
        "Price comparison is crucial in India! Amazon, Flipkart, Croma, and Vijay Sales often have competing offers. Don't forget about cashback apps like CashKaro and bank credit card rewards. For big purchases, EMI options can make expensive items more affordable. What category interests you most?",
    ]),
    ("audio", ["audio", "headphone", "earphone", "speaker", "sound"], [
        "Audio quality can make or break your experience! For wireless earbuds, the Sony WF-1000XM5 offers incredible noise cancellation and sound quality, though they're pricey at ₹25,000+. If you're on a budget, OnePlus Buds Pro 2 gives great value at ₹10,000. For over-ear headphones, Bose QuietComfort Ultra delivers premium comfort and ANC.",
        "When it comes to audio gear, it depends on your usage. For commuting and calls, I'd recommend true wireless earbuds with good ANC. For music production or critical listening, over-ear headphones with high-end drivers are better. Sony and Bose dominate the premium segment, while brands like boAt and Noise offer affordable alternatives with decent quality.",
        "Audio shopping is exciting! Current favorites include Sony WH-1000XM5 for noise cancellation, Bose QuietComfort for comfort, and Apple AirPods Pro for seamless iPhone integration. Don't forget to check reviews for fit and battery life. What type of audio gear are you looking for - earbuds, headphones, or speakers?",
    ]),
    ("trend", ["trend", "popular", "hot", "new", "latest"], [
        "2024 is all about AI integration and sustainability! Smartphones with advanced cameras, foldable displays, and AI features are trending. In laptops, Apple Silicon Macs are dominating, while gaming laptops with RTX 40-series GPUs are hot. Sustainable products and energy-efficient appliances are also gaining popularity.",
        "Current shopping trends show strong demand for: 1) AI-powered devices (smartphones, smart home gadgets), 2) Sustainable and eco-friendly products, 3) Foldable phones and flexible displays, 4) High-refresh-rate gaming monitors, 5) Wireless charging everywhere. What category interests you most?",
        "The market is evolving rapidly! Right now, we're seeing a surge in demand for electric vehicles, smart home automation, and AI assistants. In consumer electronics, 8K TVs and high-end gaming PCs are popular. Fashion trends lean towards sustainable materials and versatile athleisure wear. What's catching your eye?",
    ]),
    ("comparison", ["compare", "vs", "versus", "better", "which is"], [
        "Great question for comparisons! To give you the best advice, I need to know what you're comparing. For example: iPhone vs Samsung (iPhone wins on ecosystem, Samsung on value), MacBook vs Windows laptops (Mac for creative work, Windows for gaming), or specific models? What products are you considering?",
        "Comparisons help make informed decisions! Generally, I compare based on: performance, price, build quality, software support, and user reviews. Apple products excel in ecosystem integration and long-term support, while Android/Windows offer more customization. Premium brands like Sony and Bose focus on quality, while budget brands prioritize value. What are you comparing?",
        "Smart comparisons save money and buyer's remorse! Key factors include: 1) Performance vs price ratio, 2) Build quality and durability, 3) Software updates and support, 4) User reviews and ratings, 5) Warranty and after-sales service. Indian market favorites include Samsung for value, Apple for premium, and OnePlus for performance. What would you like me to compare?",
    ]),
    ("warranty", ["warranty", "support", "service", "repair", "guarantee"], [
        "Warranty is crucial for peace of mind! Most electronics come with 1-2 year manufacturer warranty covering manufacturing defects. Extended warranties are available for ₹2,000-5,000 extra. Apple offers excellent support with authorized service centers everywhere. Always buy from authorized dealers to ensure valid warranty coverage.",
        "Good warranty coverage is essential! Premium brands like Apple, Samsung, and Sony offer comprehensive support with dedicated service centers. Budget brands typically provide 1-year warranty with good coverage. Pro tip: Register your product online immediately after purchase and keep all bills safe. What product are you considering?",
        "Service and support vary by brand. Apple leads with seamless ecosystem support, Samsung has widespread service centers, while local brands like Lava and Micromax offer good regional support. For high-value purchases, consider extended warranty plans. Always check the warranty card and terms carefully before buying.",
    ]),
    ("advice", ["advice", "tip", "how to", "guide", "help"], [
        "Smart shopping tips: 1) Compare prices across platforms, 2) Read recent reviews (last 3 months), 3) Check return policies, 4) Look for cashback offers, 5) Consider future needs, not just current ones. For big purchases, wait for sales or use credit card rewards. What specific advice do you need?",
        "Here's my shopping wisdom: Always research thoroughly, never buy impulsively on deals, check user reviews on multiple sites, and consider the total cost of ownership (including accessories and maintenance). For electronics, focus on reputable brands with good service networks. What's your shopping challenge?",
        "Pro shopping advice: 1) Set a realistic budget first, 2) Make a wishlist and compare options, 3) Read specifications carefully, 4) Check compatibility with existing devices, 5) Buy from authorized sellers for warranty validity. For online shopping, use secure payment methods and track your orders. How can I assist you today?",
    ]),
    ("thanks", ["thank", "thanks", "appreciate"], [
        "You're very welcome! I'm always here to help you make great shopping decisions. Feel free to ask if you need more recommendations or have any other questions. Happy shopping! 🛒",
        "My pleasure! Shopping can be overwhelming, but I'm glad I could help. Remember, I'm here whenever you need advice on products, deals, or anything shopping-related. Have a great day!",
        "Glad I could help! Don't hesitate to reach out anytime you need shopping assistance. Whether it's product research, price comparison, or finding the best deals, I'm your go-to shopping companion. 😊",
    ]),
]

DEFAULT_CHAT_REPLIES = [
    "That's an interesting question! I'd love to help you find the perfect solution. Could you tell me more about what you're looking for? For example, what's your budget, or what features are most important to you?",
    "Great question! Shopping decisions are important, and I want to make sure you get exactly what you need. To give you the best advice, could you share a bit more about your requirements or preferences?",
    "I'm here to help you make smart shopping decisions! Whether you're looking for the latest tech, fashion essentials, or home improvements, I can provide recommendations and insights. What specific product or category interests you?",
    "Thanks for asking! I can help you navigate the vast world of online shopping in India. From finding the best deals to understanding product specifications, I'm your shopping companion. What would you like to explore today?",
]

USER_QUESTION_RX = re.compile(r'(?:user asked|user says|user is asking|user question):\s*"([^"]+)"', re.I)
QUOTED_RX = re.compile(r'"([^"]+)"')


def extract_user_question(prompt: str) -> str:
    """The user's own words inside a larger instruction prompt"""
    match = USER_QUESTION_RX.search(prompt) or QUOTED_RX.search(prompt)
    if match:
        return match.group(1)
    return prompt


def classify_chat_intent(question: str) -> Optional[str]:
    lower_question = question.lower()
    for intent, keywords, _ in CHAT_INTENTS:
        if any(keyword in lower_question for keyword in keywords):
            return intent
    return None


def generate_chat_reply(prompt: str, rng=None) -> str:
    rng = rng or random
    intent = classify_chat_intent(extract_user_question(prompt))
    for name, _, replies in CHAT_INTENTS:
        if name == intent:
            return rng.choice(replies)
    return rng.choice(DEFAULT_CHAT_REPLIES)
