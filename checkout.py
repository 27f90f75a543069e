"""
Checkout session for one customer.

    loading -> ready -> submitting -> completed
                 ^          |
                 +- failed -+

Subtotal and total are always derived from the cart lines and the current
shipping charge. The cart that was loaded, the signed-in user's, is
cleared only after the order was created.
"""
from __future__ import annotations
import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from database import settings
from errors import InvalidStateError, ValidationError
from schemas import Customer, Order, OrderProduct, Setting
import carts
import orders
import storefront

logger = logging.getLogger("ebooks.checkout")

PAYMENT_METHOD = "cod"
PAYMENT_STATUS = "pending"
REQUIRED_FIELDS = ("name", "email", "number", "address")
EMPTY_CART_REDIRECT = "/products"


class CheckoutState(str, enum.Enum):
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Notice:
    level: str
    message: str


def new_transaction_id() -> str:
    return f"COD_{int(time.time() * 1000)}"


class CheckoutSession:
    def __init__(
        self,
        email: str,
        load_setting: Callable[[], Awaitable[Optional[Setting]]] = storefront.get_setting,
        load_cart: Callable[[str], Awaitable[list[dict[str, Any]]]] = carts.get_carts_by_email,
        create_order: Callable[[Order], Awaitable[dict[str, Any]]] = orders.create_order,
        clear_cart: Callable[[str], Awaitable[Any]] = carts.delete_carts_by_email,
    ):
        self.customer = Customer(email=email or "")
        self.note = ""
        self.items: list[dict[str, Any]] = []
        self.setting: Optional[Setting] = None
        self.shipping: float = settings.DEFAULT_SHIPPING_CHARGE
        self.state = CheckoutState.LOADING
        self.history = [CheckoutState.LOADING]
        self.notices: list[Notice] = []
        self.order: Optional[dict[str, Any]] = None
        self.redirect: Optional[str] = None
        self._email = email or ""
        self._load_setting = load_setting
        self._load_cart = load_cart
        self._create_order = create_order
        self._clear_cart = clear_cart

    @property
    def subtotal(self) -> float:
        return sum(float(item.get("price") or 0) * int(item.get("quantity") or 0) for item in self.items)

    @property
    def total(self) -> float:
        return self.subtotal + (self.shipping or 0)

    def _transition(self, state: CheckoutState) -> None:
        logger.debug("checkout %s: %s -> %s", self._email, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _notify(self, level: str, message: str) -> None:
        self.notices.append(Notice(level, message))

    def _require(self, *states: CheckoutState) -> None:
        if self.state not in states:
            raise InvalidStateError(f"Checkout is {self.state.value}")

    async def load(self) -> CheckoutState:
        self._require(CheckoutState.LOADING)
        self.setting, items = await asyncio.gather(self._load_setting(), self._load_cart(self._email))
        self.items = list(items or [])
        if not self.items:
            self.redirect = EMPTY_CART_REDIRECT
            self._transition(CheckoutState.COMPLETED)
        else:
            self._transition(CheckoutState.READY)
        return self.state

    def update_customer(self, field: str, value: str) -> None:
        self._require(CheckoutState.READY)
        if field not in Customer.model_fields:
            raise ValidationError(f"Unknown customer field: {field}")
        setattr(self.customer, field, value)
        if field == "district":
            delivery = self.setting.deliveryCharge if self.setting else None
            self.shipping = storefront.shipping_for_district(value, delivery)

    def set_note(self, note: str) -> None:
        self.note = note or ""

    def validate(self) -> None:
        if any(not getattr(self.customer, f) for f in REQUIRED_FIELDS):
            raise ValidationError("Please fill in all customer details.")
        if not self.items:
            raise ValidationError("Your cart is empty.")

    def build_order(self) -> Order:
        return Order(
            customer=self.customer.model_copy(),
            products=[
                OrderProduct(
                    productId=item["productId"],
                    title=item.get("title", ""),
                    price=item.get("price") or 0,
                    quantity=item.get("quantity") or 1,
                    variations=item.get("variations") or [],
                    images=item.get("images") or [],
                    category=item.get("category"),
                    sku=item.get("sku"),
                )
                for item in self.items
            ],
            email=self.customer.email,
            subtotal=self.subtotal,
            shipping=self.shipping,
            totalAmount=self.total,
            paymentMethod=PAYMENT_METHOD,
            paymentStatus=PAYMENT_STATUS,
            transactionId=new_transaction_id(),
            note=self.note,
        )

    async def submit(self) -> CheckoutState:
        """Validate, create the order and clear the cart.

        A validation problem or a failed order leaves the session ready
        for another attempt, with a notice explaining why.
        """
        self._require(CheckoutState.READY)
        try:
            self.validate()
        except ValidationError as e:
            self._notify("error", e.message)
            return self.state

        self._transition(CheckoutState.SUBMITTING)
        try:
            self.order = await self._create_order(self.build_order())
        except Exception:
            logger.exception("order creation failed for %s", self.customer.email)
            self._notify("error", "Failed to place order.")
            self._transition(CheckoutState.FAILED)
            self._transition(CheckoutState.READY)
            return self.state

        try:
            await self._clear_cart(self._email)
        except Exception:
            # the order already exists, so the session still completes
            logger.exception("order placed but cart could not be cleared for %s", self._email)
            self._notify("warning", "Order placed, but your cart could not be cleared.")
        self.items = []
        self._notify("success", "Order placed successfully!")
        self.redirect = f"/orders/{self.order['orderId']}"
        self._transition(CheckoutState.COMPLETED)
        return self.state

    def summary(self) -> dict[str, Any]:
        subtotal, shipping, total = self.subtotal, self.shipping, self.total
        if self.order is not None:
            # the cart is gone once ordered; report what was charged
            subtotal = self.order.get("subtotal", subtotal)
            shipping = self.order.get("shipping", shipping)
            total = self.order.get("totalAmount", total)
        return {
            "state": self.state.value,
            "customer": self.customer.model_dump(),
            "items": self.items,
            "subtotal": subtotal,
            "shipping": shipping,
            "total": total,
            "order": self.order,
            "redirect": self.redirect,
            "notices": [{"level": n.level, "message": n.message} for n in self.notices],
        }
