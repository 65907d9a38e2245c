"""Pricing Calculator - single source of truth for project cost estimates.

estimate = round((BASE + PER_PAGE * pages + sum(feature prices)) * type multiplier)

- Unknown feature names contribute 0 (not an error)
- Unknown website types use a 1.0 multiplier
- Rounding is half-up to the whole dollar, applied after the multiplier
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Union, Any
from models import WebsiteType


BASE_COST = 1000
COST_PER_PAGE = 200
DEPOSIT_RATIO = Decimal("0.5")


# ============================================================================
# FEATURE CATALOGUE
# ============================================================================
FEATURE_PRICES: Dict[str, int] = {
    "Responsive Design": 500,
    "SEO Optimization": 300,
    "Contact Forms": 200,
    "E-commerce": 1500,
    "Blog/CMS": 800,
    "User Authentication": 600,
    "Payment Integration": 1000,
    "Analytics": 300,
    "Social Media Integration": 250,
    "Custom Functionality": 2000,
}


# ============================================================================
# WEBSITE TYPE MULTIPLIERS
# ============================================================================
WEBSITE_TYPE_MULTIPLIERS: Dict[WebsiteType, Decimal] = {
    WebsiteType.BUSINESS: Decimal("1.0"),
    WebsiteType.ECOMMERCE: Decimal("1.5"),
    WebsiteType.PORTFOLIO: Decimal("0.8"),
    WebsiteType.BLOG: Decimal("0.9"),
    WebsiteType.CUSTOM: Decimal("2.0"),
}

WEBSITE_TYPE_LABELS: Dict[WebsiteType, str] = {
    WebsiteType.BUSINESS: "Business Website",
    WebsiteType.ECOMMERCE: "E-commerce Store",
    WebsiteType.PORTFOLIO: "Portfolio Site",
    WebsiteType.BLOG: "Blog/Content Site",
    WebsiteType.CUSTOM: "Custom Application",
}

DEFAULT_MULTIPLIER = Decimal("1.0")


def get_multiplier(website_type: Union[WebsiteType, str, None]) -> Decimal:
    """Multiplier for a website type; unrecognised values fall back to 1.0."""
    try:
        return WEBSITE_TYPE_MULTIPLIERS[WebsiteType(website_type)]
    except ValueError:
        return DEFAULT_MULTIPLIER


def features_cost(features: Iterable[str]) -> int:
    # Duplicates are counted once
    return sum(FEATURE_PRICES.get(name, 0) for name in set(features or ()))


def breakdown(pages: int, features: Iterable[str], website_type: Union[WebsiteType, str, None]) -> Dict[str, Any]:
    """Itemised quote. `total` is the same value estimate() returns."""
    features = list(features or ())
    pages_cost = COST_PER_PAGE * pages
    selected = sorted({name for name in features if name in FEATURE_PRICES})
    subtotal = BASE_COST + pages_cost + features_cost(features)
    multiplier = get_multiplier(website_type)
    total = int((Decimal(subtotal) * multiplier).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return {
        "base_cost": BASE_COST,
        "pages_cost": pages_cost,
        "features": [{"name": name, "cost": FEATURE_PRICES[name]} for name in selected],
        "ignored_features": sorted({name for name in features if name not in FEATURE_PRICES}),
        "features_cost": features_cost(features),
        "subtotal": subtotal,
        "multiplier": float(multiplier),
        "total": total,
    }


def estimate(pages: int, features: Iterable[str], website_type: Union[WebsiteType, str, None]) -> int:
    """Estimated project cost in whole dollars."""
    return breakdown(pages, features, website_type)["total"]


def deposit_amount(total: int) -> int:
    """Half of the total, rounded half-up to the dollar."""
    return int((Decimal(total) * DEPOSIT_RATIO).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_catalogue() -> Dict[str, Any]:
    """Public price list for quote previews."""
    return {
        "base_cost": BASE_COST,
        "cost_per_page": COST_PER_PAGE,
        "features": [{"name": name, "cost": cost} for name, cost in FEATURE_PRICES.items()],
        "website_types": [
            {
                "value": wt.value,
                "label": WEBSITE_TYPE_LABELS[wt],
                "multiplier": float(WEBSITE_TYPE_MULTIPLIERS[wt]),
            }
            for wt in WebsiteType
        ],
    }
