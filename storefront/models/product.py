from typing import Optional, List
from datetime import datetime
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import JSON

class ProductVariant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)

    size: str  # e.g. 30ml, 50ml, Small
    price: float

    # Inventory
    stock: int = Field(default=0, ge=0)
    reserved_stock: int = Field(default=0, ge=0)  # held by unpaid orders

    @property
    def available_stock(self) -> int:
        return max(0, self.stock - self.reserved_stock)

class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Basic Info
    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    short_description: str = Field(default="")
    description: str = Field(default="")

    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)

    # Pricing
    price: float  # base price shown on listings
    offer_percentage: float = Field(default=0, ge=0, le=99)

    # Images
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    # Metadata
    sold_count: int = Field(default=0)
    reviews_count: int = Field(default=0)
    average_rating: float = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    variants: List[ProductVariant] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "ProductVariant.id"}
    )

    @property
    def offer_price(self) -> float:
        return round(self.price - (self.price * self.offer_percentage) / 100)

    def unit_price(self, variant: ProductVariant) -> float:
        """Variant price after the product-wide offer"""
        price = variant.price
        if self.offer_percentage > 0:
            price = price - (price * (self.offer_percentage / 100))
        return round(price, 2)

    def find_variant(self, variant_name: Optional[str]) -> Optional[ProductVariant]:
        if not variant_name:
            return self.variants[0] if self.variants else None
        return next((v for v in self.variants if v.size == variant_name), None)
