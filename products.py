"""
Product catalogue: the query pipeline behind the listing pages and the
single-product CRUD operations.
"""
from __future__ import annotations
import logging
import math
from datetime import datetime
from typing import Any, Optional

from database import (
    create_document,
    delete_document,
    get_document,
    get_documents,
    settings,
    update_document,
)
from errors import InvalidStateError, NotFoundError, StoreError, ValidationError
from schemas import Product, ProductUpdate

logger = logging.getLogger("ebooks.products")

COLLECTION = "product"

SORT_LOW_TO_HIGH = "lowToHigh"
SORT_HIGH_TO_LOW = "highToLow"


def to_number(value: Any) -> float:
    """Loose numeric coercion; NaN for anything that does not read as a number."""
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return 0.0
        try:
            return float(s)
        except ValueError:
            return math.nan
    return math.nan


def format_stock(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else str(n)


def _searchable_text(p: dict[str, Any]) -> str:
    fields = [p.get("title"), p.get("sku"), p.get("brand"), p.get("category"), *(p.get("subCategory") or [])]
    return " ".join("" if f is None else str(f) for f in fields).lower()


def _price_key(p: dict[str, Any]) -> tuple[bool, float]:
    price = to_number(p.get("price"))
    return (True, 0.0) if math.isnan(price) else (False, price)


def _created_at(p: dict[str, Any]) -> datetime:
    value = p.get("created_at")
    return value if isinstance(value, datetime) else datetime.min


def filter_products(
    products: list[dict[str, Any]],
    search: str = "",
    category: str = "",
    sub_category: str = "",
    min_price: float = math.nan,
    max_price: float = math.nan,
    sort: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> tuple[list[dict[str, Any]], int]:
    """Search, filter, sort and paginate an in-memory product list.

    Steps run in a fixed order: search terms (all must match), category,
    subcategory (any label matches), price bounds, sort, then the page
    slice. Returns the page and the number of products that passed the
    filters.
    """
    limit = settings.DEFAULT_PAGE_LIMIT if limit is None else limit
    min_price = math.nan if min_price is None else min_price
    max_price = math.nan if max_price is None else max_price

    if search and search.strip():
        terms = search.lower().split()
        products = [p for p in products if all(t in _searchable_text(p) for t in terms)]

    if category:
        cats = category.split(",")
        products = [p for p in products if p.get("category") in cats]

    if sub_category:
        subs = sub_category.split(",")
        products = [p for p in products if any(sc in subs for sc in (p.get("subCategory") or []))]

    def in_range(p: dict[str, Any]) -> bool:
        price = to_number(p.get("price"))
        # comparisons against NaN are false, so an unparseable price fails any active bound
        if not math.isnan(min_price) and not price >= min_price:
            return False
        if not math.isnan(max_price) and not price <= max_price:
            return False
        return True

    products = [p for p in products if in_range(p)]

    if sort == SORT_LOW_TO_HIGH:
        products.sort(key=_price_key)
    elif sort == SORT_HIGH_TO_LOW:
        # unpriced products stay last in both directions
        products.sort(key=lambda p: (not _price_key(p)[0], _price_key(p)[1]), reverse=True)
    else:
        products.sort(key=_created_at, reverse=True)

    total_count = len(products)
    page = max(page, 1)
    start = (page - 1) * limit
    return products[start:start + limit], total_count


async def query_products(
    search: str = "",
    category: str = "",
    sub_category: str = "",
    min_price: float = math.nan,
    max_price: float = math.nan,
    sort: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> dict[str, Any]:
    """Run the listing pipeline over a snapshot of the whole catalogue.

    A store failure yields an empty page with ``available`` set to False.
    """
    try:
        snapshot = await get_documents(COLLECTION, limit=0)
    except StoreError:
        logger.warning("product query failed, returning empty page", exc_info=True)
        return {"products": [], "totalCount": 0, "available": False}
    page_items, total = filter_products(
        snapshot,
        search=search,
        category=category,
        sub_category=sub_category,
        min_price=min_price,
        max_price=max_price,
        sort=sort,
        page=page,
        limit=limit,
    )
    return {"products": page_items, "totalCount": total, "available": True}


async def get_all_products() -> list[dict[str, Any]]:
    try:
        return await get_documents(COLLECTION, limit=0, sort=[("created_at", -1)])
    except StoreError:
        logger.warning("could not list products", exc_info=True)
        return []


async def get_products_by_subcategory(sub_category: str) -> list[dict[str, Any]]:
    try:
        return await get_documents(COLLECTION, {"subCategory": sub_category}, limit=0, sort=[("created_at", -1)])
    except StoreError:
        logger.warning("could not list products for %r", sub_category, exc_info=True)
        return []


async def search_products(query: str) -> list[dict[str, Any]]:
    if not query:
        return []
    needle = query.lower()
    products = await get_all_products()
    return [p for p in products if needle in str(p.get("title") or "").lower()][: settings.SEARCH_RESULT_LIMIT]


async def create_product(payload: Product) -> dict[str, Any]:
    try:
        return await create_document(COLLECTION, payload.model_dump())
    except StoreError:
        logger.error("could not create product %r", payload.title)
        raise


async def get_product_by_id(product_id: str) -> Optional[dict[str, Any]]:
    return await get_document(COLLECTION, product_id)


async def update_product(product_id: str, update: ProductUpdate) -> dict[str, Any]:
    data = update.model_dump(exclude_unset=True)
    if not data:
        product = await get_document(COLLECTION, product_id)
    else:
        product = await update_document(COLLECTION, product_id, data)
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def delete_product(product_id: str) -> dict[str, str]:
    if not await delete_document(COLLECTION, product_id):
        raise NotFoundError("Product not found")
    return {"message": "Product deleted successfully"}


async def decrease_product_quantity(product_id: str, ordered_quantity: int) -> dict[str, Any]:
    """Take ``ordered_quantity`` units off a product's stock.

    The write only lands if the stock is unchanged since it was read;
    a concurrent change restarts the read, up to STOCK_UPDATE_RETRIES
    more times after the first attempt. Stock clamps at zero unless
    STOCK_ALLOW_OVERSELL is off.
    """
    if ordered_quantity < 0:
        raise ValidationError("Ordered quantity must not be negative")

    for attempt in range(max(settings.STOCK_UPDATE_RETRIES, 0) + 1):
        product = await get_document(COLLECTION, product_id)
        if product is None:
            raise NotFoundError("Product not found")

        raw = product.get("stock")
        current = to_number(raw)
        if math.isnan(current):
            raise InvalidStateError("Invalid stock value")
        if current <= 0:
            raise InvalidStateError("Out of stock")
        if ordered_quantity > current and not settings.STOCK_ALLOW_OVERSELL:
            raise InvalidStateError("Not enough stock")

        remaining = format_stock(max(0, current - ordered_quantity))
        updated = await update_document(COLLECTION, product_id, {"stock": remaining}, expected={"stock": raw})
        if updated is not None:
            logger.info("stock for %s: %s -> %s", product_id, raw, remaining)
            return updated
        logger.info("stock for %s changed concurrently (attempt %d)", product_id, attempt + 1)

    raise InvalidStateError("Stock changed while updating, try again")
