"""Category reference data and search filter normalization."""

from __future__ import annotations

import logging

from src.models.search import SearchQuery

logger = logging.getLogger(__name__)

# category key -> (display name, {subcategory key: display name})
PRODUCT_CATEGORIES: dict[str, tuple[str, dict[str, str]]] = {
    "food_beverages": (
        "Food & Beverages",
        {
            "baked_goods": "Baked Goods",
            "dairy_products": "Dairy Products",
            "preserves_jams": "Preserves & Jams",
            "beverages": "Beverages",
            "fresh_produce": "Fresh Produce",
            "meat_seafood": "Meat & Seafood",
            "snacks_treats": "Snacks & Treats",
        },
    ),
    "handmade_crafts": (
        "Handmade Crafts",
        {
            "jewelry": "Jewelry",
            "pottery_ceramics": "Pottery & Ceramics",
            "textiles_fiber": "Textiles & Fiber Arts",
            "woodworking": "Woodworking",
            "glass_art": "Glass Art",
            "paper_crafts": "Paper Crafts",
        },
    ),
    "clothing_accessories": (
        "Clothing & Accessories",
        {
            "clothing": "Clothing",
            "accessories": "Accessories",
            "shoes_footwear": "Shoes & Footwear",
            "baby_kids": "Baby & Kids",
        },
    ),
    "home_garden": (
        "Home & Garden",
        {
            "home_decor": "Home Decor",
            "kitchen_dining": "Kitchen & Dining",
            "garden_outdoor": "Garden & Outdoor",
            "bath_bedroom": "Bath & Bedroom",
        },
    ),
    "beauty_wellness": (
        "Beauty & Wellness",
        {
            "skincare": "Skincare",
            "haircare": "Haircare",
            "aromatherapy": "Aromatherapy",
            "wellness": "Wellness",
        },
    ),
    "toys_games": (
        "Toys & Games",
        {
            "wooden_toys": "Wooden Toys",
            "stuffed_animals": "Stuffed Animals",
            "educational": "Educational",
            "games": "Games",
        },
    ),
    "pet_supplies": (
        "Pet Supplies",
        {
            "pet_accessories": "Pet Accessories",
            "pet_care": "Pet Care",
            "pet_home": "Pet Home",
        },
    ),
    "seasonal_holiday": (
        "Seasonal & Holiday",
        {
            "christmas": "Christmas",
            "halloween": "Halloween",
            "easter": "Easter",
            "valentines": "Valentine's Day",
        },
    ),
    "art_collectibles": (
        "Art & Collectibles",
        {
            "original_art": "Original Art",
            "prints_reproductions": "Prints & Reproductions",
            "collectibles": "Collectibles",
            "photography": "Photography",
        },
    ),
}


def normalize_category_key(value: str | None) -> str | None:
    """Accept a category key or display name and return the key."""

    if not value:
        return None
    if value in PRODUCT_CATEGORIES:
        return value
    for key, (name, _) in PRODUCT_CATEGORIES.items():
        if name == value:
            return key
    return None


def normalize_subcategory_key(category: str | None, value: str | None) -> str | None:
    category_key = normalize_category_key(category)
    if category_key is None or not value:
        return None
    subcategories = PRODUCT_CATEGORIES[category_key][1]
    if value in subcategories:
        return value
    for key, name in subcategories.items():
        if name == value:
            return key
    return None


def normalize_search_query(query: SearchQuery) -> SearchQuery:
    """Return a copy of ``query`` with unrecognized filters removed."""

    category = normalize_category_key(query.category)
    if query.category and category is None:
        logger.warning("Dropping invalid category filter: %s", query.category)

    subcategory = None
    if query.subcategory:
        subcategory = normalize_subcategory_key(category, query.subcategory)
        if subcategory is None:
            logger.warning(
                "Dropping invalid subcategory filter: %s for category: %s",
                query.subcategory,
                query.category,
            )

    categories = []
    for value in query.filters.categories:
        key = normalize_category_key(value)
        if key is None:
            logger.warning("Dropping invalid category in filter set: %s", value)
        elif key not in categories:
            categories.append(key)

    filters = query.filters.model_copy(update={"categories": categories})
    return query.model_copy(
        update={
            "query": query.query.strip(),
            "category": category,
            "subcategory": subcategory,
            "filters": filters,
        }
    )
