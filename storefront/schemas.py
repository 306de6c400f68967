"""
Schemas for the HuskThreads storefront

Catalog records (categories, subcategories, products) are read-only
snapshots of documents in the hosted store. Orders and custom orders are
written once and never read back. Field names on the wire are camelCase,
matching the documents already in the store.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .pricing import discount_badge, discount_percent, effective_price, has_discount

ACTIVE = "Active"
PENDING = "Pending"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class StoreModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

# Catalog

class Category(StoreModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(..., description="Display name")
    image_url: Optional[str] = Field(None, description="Banner image URL")

class Subcategory(StoreModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category_id: str = Field(..., description="Parent category id")

class Product(StoreModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: float = Field(..., ge=0, description="Base price")
    discount_price: Optional[float] = Field(None, ge=0, description="Sale price, only honoured below base price")
    images: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list, description="Display order is significant")
    stock: int = Field(0, ge=0)
    status: str = ACTIVE
    category_id: str
    subcategory_id: Optional[str] = None
    description: str = ""
    sku: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @property
    def effective_price(self) -> float:
        return effective_price(self.price, self.discount_price)

    @property
    def has_discount(self) -> bool:
        return has_discount(self.price, self.discount_price)

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""

class ProductCard(StoreModel):
    """Product as shown in listings and on the detail page."""

    id: str
    name: str
    price: float
    discount_price: Optional[float] = None
    effective_price: float
    discount_percent: int = 0
    badge: Optional[str] = None
    image: str = ""
    stock: int = 0
    in_stock: bool = True

    @classmethod
    def from_product(cls, product: Product) -> "ProductCard":
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            discount_price=product.discount_price,
            effective_price=product.effective_price,
            discount_percent=discount_percent(product.price, product.discount_price),
            badge=discount_badge(product.price, product.discount_price),
            image=product.primary_image,
            stock=product.stock,
            in_stock=product.stock > 0,
        )

class ProductDetail(ProductCard):
    images: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    description: str = ""
    sku: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category_id: str
    subcategory_id: Optional[str] = None

    @classmethod
    def from_product(cls, product: Product) -> "ProductDetail":
        card = ProductCard.from_product(product)
        return cls(
            **card.model_dump(),
            images=product.images,
            colors=product.colors,
            sizes=product.sizes,
            description=product.description,
            sku=product.sku,
            tags=product.tags,
            category_id=product.category_id,
            subcategory_id=product.subcategory_id,
        )

# Cart

class CartLine(StoreModel):
    """One cart line. Name, prices and image are captured when first added."""
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    quantity: int = Field(1, ge=1)
    size: str
    color: str
    image: str = ""

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.product_id, self.size, self.color)

    @property
    def unit_price(self) -> float:
        return effective_price(self.price, self.discount_price)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    @classmethod
    def from_product(cls, product: Product, size: str, color: str, quantity: int = 1) -> "CartLine":
        return cls(
            product_id=product.id,
            name=product.name,
            price=product.price,
            discount_price=product.discount_price,
            quantity=quantity,
            size=size,
            color=color,
            image=product.primary_image,
        )

# Orders

class OrderLine(StoreModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0, description="Effective unit price at checkout")
    quantity: int = Field(..., ge=1)
    size: str
    color: str
    image: str = ""

    @classmethod
    def from_cart_line(cls, line: CartLine) -> "OrderLine":
        return cls(
            product_id=line.product_id,
            name=line.name,
            price=line.unit_price,
            quantity=line.quantity,
            size=line.size,
            color=line.color,
            image=line.image,
        )

class ShippingAddress(StoreModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str

class Order(StoreModel):
    customer_name: str
    customer_phone: str
    shipping_address: ShippingAddress
    products: List[OrderLine]
    total_amount: float = Field(..., ge=0)
    status: str = PENDING
    payment_status: str = PENDING
    payment_method: str
    created_at: datetime = Field(default_factory=utcnow)

class CustomOrder(StoreModel):
    customer_name: str
    customer_phone: str
    product_type: str
    color: str
    sizes: List[str]
    quantity: int = Field(1, ge=1)
    notes: str = ""
    design_file_name: str
    design_url: str
    status: str = PENDING
    created_at: datetime = Field(default_factory=utcnow)
