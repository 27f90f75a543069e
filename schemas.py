"""
Database Schemas for the E-Books storefront

Each Pydantic model corresponds to a MongoDB collection. The collection name is the lowercase of the class name.

Example: class Product -> collection "product"
"""
from __future__ import annotations
from datetime import datetime
import math
from typing import Annotated, Any, List, Literal, Optional, Union
from pydantic import BaseModel, BeforeValidator, Field, field_validator


def _coerce_stock(v: Any) -> Any:
    # stock is persisted as a string, but must read as a number >= 0
    if v is None:
        return v
    if isinstance(v, bool):
        raise ValueError("stock must be a number")
    if isinstance(v, (int, float)):
        v = str(int(v)) if float(v).is_integer() else str(v)
    if isinstance(v, str):
        try:
            n = float(v)
        except ValueError:
            raise ValueError("stock must be a number")
        if math.isnan(n):
            raise ValueError("stock must be a number")
        if n < 0:
            raise ValueError("stock must not be negative")
    return v


Stock = Annotated[str, BeforeValidator(_coerce_stock)]


# Catalogue

class Product(BaseModel):
    title: str
    price: float = Field(..., ge=0)
    stock: Stock = "0"
    category: str
    subCategory: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    sku: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    description: Optional[str] = None


class ProductUpdate(BaseModel):
    title: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[Stock] = None
    category: Optional[str] = None
    subCategory: Optional[List[str]] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    images: Optional[List[str]] = None
    description: Optional[str] = None

    @field_validator("title", "price", "stock", "category", "subCategory", "images")
    @classmethod
    def not_null(cls, v):
        # omitted fields are left alone; an explicit null would erase a required one
        if v is None:
            raise ValueError("field may not be null")
        return v


class ProductOut(BaseModel):
    id: str
    title: str
    price: Union[float, str, None] = None
    stock: Union[str, float, int, None] = None
    category: Optional[str] = None
    subCategory: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    sku: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class ProductPage(BaseModel):
    products: List[ProductOut]
    totalCount: int
    available: bool = True


class DecreaseStock(BaseModel):
    orderedQuantity: int = Field(..., ge=0)


# Cart

class Variation(BaseModel):
    name: str
    value: str


class CartItem(BaseModel):
    email: str
    productId: str
    title: str
    images: List[str] = Field(default_factory=list)
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    category: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    variations: List[Variation] = Field(default_factory=list)


class AddToCart(BaseModel):
    productId: str
    quantity: int = Field(1, ge=1)
    variations: List[Variation] = Field(default_factory=list)


# Orders

class Customer(BaseModel):
    name: str = ""
    email: str = ""
    number: str = ""
    address: str = ""
    areaOfDelivery: str = ""
    district: str = ""


class OrderProduct(BaseModel):
    productId: str
    title: str
    price: float
    quantity: int = Field(..., ge=1)
    variations: List[Variation] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    sku: Optional[str] = None


class Order(BaseModel):
    customer: Customer
    products: List[OrderProduct] = Field(..., min_length=1)
    email: str
    subtotal: float = Field(..., ge=0)
    shipping: float = Field(..., ge=0)
    totalAmount: float = Field(..., ge=0)
    paymentMethod: Literal["cod"] = "cod"
    paymentStatus: str = Field("pending", description="pending|paid|failed")
    transactionId: str
    note: str = ""


class CheckoutRequest(BaseModel):
    customer: Customer
    note: str = ""


# Store settings

class DeliveryCharge(BaseModel):
    insideDhaka: float = 0
    outSideDhaka: float = 0


class Setting(BaseModel):
    name: str
    tagline: Optional[str] = None
    description: Optional[str] = None
    favicon: Optional[str] = None
    deliveryCharge: DeliveryCharge = Field(default_factory=DeliveryCharge)
