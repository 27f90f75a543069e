import pytest
from bson import ObjectId

import carts
import orders
from errors import InvalidStateError, NotFoundError, StoreError
from schemas import AddToCart, Customer, Order, OrderProduct, Variation


@pytest.mark.asyncio
async def test_add_to_cart_snapshots_product(fake_db, add_product):
    pid = add_product(title="Dune", price="11.5", brand="Ace", sku="BK-9", images=["dune.jpg"], category="SF")
    item = await carts.add_to_cart(
        "reader@example.com",
        AddToCart(productId=pid, quantity=2, variations=[Variation(name="Cover", value="Paperback")]),
    )
    assert item["productId"] == pid
    assert item["price"] == 11.5
    assert item["quantity"] == 2
    assert item["variations"] == [{"name": "Cover", "value": "Paperback"}]

    # later product edits do not reach the cart line
    fake_db["product"].docs[0]["title"] = "Dune (Deluxe)"
    [line] = await carts.get_carts_by_email("reader@example.com")
    assert line["title"] == "Dune"


@pytest.mark.asyncio
async def test_add_unknown_product():
    with pytest.raises(NotFoundError):
        await carts.add_to_cart("reader@example.com", AddToCart(productId=str(ObjectId())))


@pytest.mark.asyncio
async def test_add_unpriced_product(add_product):
    pid = add_product(price="call us")
    with pytest.raises(InvalidStateError):
        await carts.add_to_cart("reader@example.com", AddToCart(productId=pid))


@pytest.mark.asyncio
async def test_carts_are_scoped_by_email(add_product):
    pid = add_product()
    await carts.add_to_cart("a@example.com", AddToCart(productId=pid))
    await carts.add_to_cart("b@example.com", AddToCart(productId=pid))
    assert len(await carts.get_carts_by_email("a@example.com")) == 1
    assert await carts.get_carts_by_email("") == []


@pytest.mark.asyncio
async def test_remove_item_only_from_own_cart(add_product):
    pid = add_product()
    item = await carts.add_to_cart("a@example.com", AddToCart(productId=pid))
    with pytest.raises(NotFoundError):
        await carts.remove_cart_item("b@example.com", item["id"])
    with pytest.raises(NotFoundError):
        await carts.remove_cart_item("a@example.com", "bogus")
    await carts.remove_cart_item("a@example.com", item["id"])
    assert await carts.get_carts_by_email("a@example.com") == []


@pytest.mark.asyncio
async def test_delete_carts_by_email(fake_db, add_product):
    pid = add_product()
    for email in ("a@example.com", "a@example.com", "b@example.com"):
        await carts.add_to_cart(email, AddToCart(productId=pid))
    assert await carts.delete_carts_by_email("a@example.com") == 2
    assert [d["email"] for d in fake_db["cart"].docs] == ["b@example.com"]


@pytest.mark.asyncio
async def test_delete_propagates_store_error(fake_db):
    fake_db["cart"].fail = True
    with pytest.raises(StoreError):
        await carts.delete_carts_by_email("a@example.com")


def _order(**fields):
    data = dict(
        customer=Customer(name="R", email="r@example.com", number="1", address="x", district="Dhaka"),
        products=[OrderProduct(productId="p1", title="Dune", price=10, quantity=2)],
        email="r@example.com",
        subtotal=20,
        shipping=60,
        totalAmount=80,
        transactionId="COD_1",
    )
    data.update(fields)
    return Order(**data)


@pytest.mark.asyncio
async def test_create_and_fetch_order(fake_db):
    saved = await orders.create_order(_order())
    assert saved["orderId"] == saved["id"]
    assert saved["paymentMethod"] == "cod"
    assert saved["paymentStatus"] == "pending"
    fetched = await orders.get_order_by_id(saved["orderId"])
    assert fetched["totalAmount"] == 80
    assert await orders.get_order_by_id(str(ObjectId())) is None


def test_order_requires_products():
    with pytest.raises(Exception):
        _order(products=[])
