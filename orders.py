from __future__ import annotations
import logging
from typing import Any, Optional

from database import create_document, get_document
from errors import StoreError
from schemas import Order

logger = logging.getLogger("ebooks.orders")

COLLECTION = "order"


async def create_order(order: Order) -> dict[str, Any]:
    """Persist a denormalized order; the returned dict carries ``orderId``."""
    try:
        saved = await create_document(COLLECTION, order.model_dump())
    except StoreError:
        logger.error("could not create order %s for %s", order.transactionId, order.email)
        raise
    saved["orderId"] = saved.get("id", "")
    logger.info("order %s created (%s, total %.2f)", saved["orderId"], order.transactionId, order.totalAmount)
    return saved


async def get_order_by_id(order_id: str) -> Optional[dict[str, Any]]:
    order = await get_document(COLLECTION, order_id)
    if order is not None:
        order["orderId"] = order["id"]
    return order
