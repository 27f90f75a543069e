"""
Store-wide settings and the things derived from them: shipping charges,
site metadata and the home page product sections.
"""
from __future__ import annotations
import asyncio
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError as SchemaValidationError

from database import find_document
from errors import StoreError
from schemas import DeliveryCharge, Setting
import products

logger = logging.getLogger("ebooks.storefront")

COLLECTION = "setting"

INSIDE_DISTRICT = "dhaka"

DEFAULT_SITE_NAME = "E-Books"
DEFAULT_DESCRIPTION = (
    "E-Books is a modern online bookstore built for readers who want choice, "
    "convenience, and great prices. From bestsellers and fiction to academic "
    "titles and self-development books, E-Books brings you a curated collection "
    "with fast delivery and a smooth shopping experience."
)
KEYWORDS = ["Online Book Store", "E-Book", "Book Shop"]

HOME_SUBCATEGORIES = [
    "Fresh Reads",
    "Spotlight Picks",
    "Top Sellers",
    "Hot Reads",
    "Collector’s Editions",
    "Special Releases",
    "Critically Acclaimed",
    "Bargain Books",
    "Quick Picks",
    "Clearance Corner",
    "Back by Popular Demand",
    "Steal of the Week",
    "Editor's Choice",
    "Weekly Spotlight",
    "Seasonal Favorites",
    "Staff Recommendations",
    "Perfect Gift Books",
    "Readers’ Choice",
]
HOME_SECTION_LIMIT = 10

_TAG_RE = re.compile(r"<[^>]+>")


async def get_setting() -> Optional[Setting]:
    try:
        doc = await find_document(COLLECTION)
    except StoreError:
        logger.warning("could not load store settings", exc_info=True)
        return None
    if doc is None:
        return None
    try:
        return Setting.model_validate(doc)
    except SchemaValidationError:
        logger.warning("store settings document is malformed", exc_info=True)
        return None


def shipping_for_district(district: str, delivery_charge: Optional[DeliveryCharge]) -> float:
    """Delivery charge for a district: the inside rate for Dhaka (any case), else the outside rate."""
    if delivery_charge is None:
        return 0.0
    if (district or "").strip().lower() == INSIDE_DISTRICT:
        return float(delivery_charge.insideDhaka or 0)
    return float(delivery_charge.outSideDhaka or 0)


def strip_html(html: Optional[str]) -> str:
    return _TAG_RE.sub("", html or "")


def site_metadata(setting: Optional[Setting]) -> dict[str, Any]:
    if setting is None:
        return {
            "title": DEFAULT_SITE_NAME,
            "description": DEFAULT_DESCRIPTION,
            "keywords": KEYWORDS,
            "icon": None,
            "siteName": DEFAULT_SITE_NAME,
        }
    return {
        "title": f"{setting.name} | {setting.tagline or ''}",
        "description": strip_html(setting.description) or DEFAULT_DESCRIPTION,
        "keywords": KEYWORDS,
        "icon": setting.favicon,
        "siteName": setting.name or DEFAULT_SITE_NAME,
    }


async def home_sections(subcategories: list[str] = HOME_SUBCATEGORIES) -> list[dict[str, Any]]:
    pages = await asyncio.gather(
        *(products.query_products(sub_category=sub, page=1, limit=HOME_SECTION_LIMIT) for sub in subcategories)
    )
    return [
        {"subcategory": sub, "products": page["products"]}
        for sub, page in zip(subcategories, pages)
    ]
