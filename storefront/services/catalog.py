import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import desc, func, or_
from sqlmodel import Session, select

from storefront.models.category import Category
from storefront.models.product import Product, ProductVariant

logger = logging.getLogger(__name__)

def serialize_product(product: Product) -> dict:
    data = product.model_dump()
    data["offer_price"] = product.offer_price
    data["variants"] = [
        {**v.model_dump(), "available_stock": v.available_stock, "offer_price": product.unit_price(v)}
        for v in product.variants
    ]
    return data

def paginate(session: Session, query, count_column, page: int, limit: int, order_by) -> tuple:
    total = session.scalar(query.with_only_columns(func.count(count_column)).order_by(None)) or 0
    rows = session.exec(query.order_by(order_by).offset((page - 1) * limit).limit(limit)).all()
    return rows, {"total": total, "page": page, "pages": (total + limit - 1) // limit}

class CatalogService:
    def __init__(self, session: Session):
        self.session = session

    def _search(self, query, search: Optional[str]):
        if search:
            query = query.where(
                or_(
                    Product.name.ilike(f"%{search}%"),
                    Product.description.ilike(f"%{search}%")
                )
            )
        return query

    def list_products(self, page: int = 1, limit: int = 12, search: Optional[str] = None,
                      category_id: Optional[int] = None) -> dict:
        query = self._search(select(Product).where(Product.is_active == True), search)  # noqa: E712
        if category_id:
            query = query.where(Product.category_id == category_id)
        products, meta = paginate(self.session, query, Product.id, page, limit, desc(Product.created_at))
        return {"products": [serialize_product(p) for p in products], **meta}

    def latest_products(self, limit: int) -> List[Product]:
        return self.session.exec(
            select(Product).where(Product.is_active == True)  # noqa: E712
            .order_by(desc(Product.created_at), desc(Product.id)).limit(limit)
        ).all()

    def get_product(self, id_or_slug: str, include_inactive: bool = False) -> Product:
        if str(id_or_slug).isdigit():
            product = self.session.get(Product, int(id_or_slug))
        else:
            product = self.session.exec(select(Product).where(Product.slug == id_or_slug)).first()
        if not product or (not product.is_active and not include_inactive):
            raise HTTPException(status_code=404, detail="Product not found")
        return product

    # Admin

    def admin_list_products(self, page: int, limit: int, search: Optional[str] = None, status: Optional[str] = None) -> dict:
        query = self._search(select(Product), search)
        if status:
            query = query.where(Product.is_active == (status.lower() == "active"))
        products, meta = paginate(self.session, query, Product.id, page, limit, desc(Product.created_at))
        return {"products": [self.with_applied_offer(p) for p in products], **meta}

    def with_applied_offer(self, product: Product) -> dict:
        """The better of the product and category offers, for admin listings"""
        data = serialize_product(product)
        category = self.session.get(Category, product.category_id) if product.category_id else None
        category_offer = category.offer if category and category.is_active else 0
        applied = max(product.offer_percentage, category_offer)
        data["category"] = category.name if category else None
        data["applied_offer"] = applied
        data["final_price"] = round(product.price - (product.price * applied) / 100)
        return data

    def _check_category(self, category_id: Optional[int]) -> None:
        if category_id is not None and not self.session.get(Category, category_id):
            raise HTTPException(status_code=404, detail="Category not found")

    def create_product(self, data: dict, variants: List[dict]) -> Product:
        if self.session.exec(select(Product).where(Product.slug == data["slug"])).first():
            raise HTTPException(status_code=409, detail="A product with this slug already exists")
        if not variants:
            raise HTTPException(status_code=400, detail="At least one variant is required")
        self._check_category(data.get("category_id"))

        product = Product(**data)
        product.variants = [ProductVariant(**v) for v in variants]
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        logger.info("Product %s created", product.id)
        return product

    def update_product(self, product_id: int, data: dict, variants: Optional[List[dict]] = None) -> Product:
        product = self.get_product(str(product_id), include_inactive=True)
        if "slug" in data and data["slug"] != product.slug:
            if self.session.exec(select(Product).where(Product.slug == data["slug"])).first():
                raise HTTPException(status_code=409, detail="A product with this slug already exists")

        if "category_id" in data:
            self._check_category(data["category_id"])

        for key, value in data.items():
            setattr(product, key, value)

        if variants is not None:
            # Upsert by size; reservations on existing variants are preserved
            existing = {v.size: v for v in product.variants}
            for payload in variants:
                variant = existing.get(payload["size"])
                if variant:
                    variant.price = payload["price"]
                    variant.stock = payload["stock"]
                    self.session.add(variant)
                else:
                    product.variants.append(ProductVariant(**payload))

        product.updated_at = datetime.utcnow()
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return product

    def deactivate_product(self, product_id: int) -> None:
        product = self.get_product(str(product_id), include_inactive=True)
        product.is_active = False
        product.updated_at = datetime.utcnow()
        self.session.add(product)
        self.session.commit()
        logger.info("Product %s deactivated", product.id)

    def update_variant_stock(self, product_id: int, variant_id: int, stock: int) -> ProductVariant:
        variant = self.session.get(ProductVariant, variant_id)
        if not variant or variant.product_id != product_id:
            raise HTTPException(status_code=404, detail="Variant not found")
        if stock < variant.reserved_stock:
            raise HTTPException(
                status_code=400,
                detail=f"Stock cannot be lower than the {variant.reserved_stock} units reserved by pending orders"
            )
        variant.stock = stock
        self.session.add(variant)
        self.session.commit()
        self.session.refresh(variant)
        return variant
