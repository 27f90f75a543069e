"""
Cart items, one document per line item, keyed by the customer's email.
"""
from __future__ import annotations
import logging
import math
from typing import Any

from database import create_document, delete_document, delete_documents, find_document, get_documents, to_object_id
from errors import InvalidStateError, NotFoundError, StoreError
from schemas import AddToCart, CartItem
import products

logger = logging.getLogger("ebooks.carts")

COLLECTION = "cart"


async def add_to_cart(email: str, payload: AddToCart) -> dict[str, Any]:
    """Snapshot the product's display fields into a new cart line."""
    product = await products.get_product_by_id(payload.productId)
    if product is None:
        raise NotFoundError("Product not found")
    price = products.to_number(product.get("price"))
    if math.isnan(price):
        raise InvalidStateError("Product has no valid price")
    item = CartItem(
        email=email,
        productId=product["id"],
        title=product.get("title", ""),
        images=product.get("images") or [],
        price=price,
        quantity=payload.quantity,
        category=product.get("category"),
        brand=product.get("brand"),
        sku=product.get("sku"),
        variations=payload.variations,
    )
    return await create_document(COLLECTION, item.model_dump())


async def get_carts_by_email(email: str) -> list[dict[str, Any]]:
    if not email:
        return []
    try:
        return await get_documents(COLLECTION, {"email": email}, limit=0)
    except StoreError:
        logger.warning("could not load cart for %s", email, exc_info=True)
        return []


async def remove_cart_item(email: str, item_id: str) -> dict[str, str]:
    oid = to_object_id(item_id)
    item = await find_document(COLLECTION, {"email": email, "_id": oid}) if oid else None
    if item is None or not await delete_document(COLLECTION, item_id):
        raise NotFoundError("Cart item not found")
    return {"message": "Item removed from cart"}


async def delete_carts_by_email(email: str) -> int:
    deleted = await delete_documents(COLLECTION, {"email": email})
    logger.info("cleared %d cart item(s) for %s", deleted, email)
    return deleted
