import logging
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlmodel import Session, select, delete

from storefront.core.config import settings
from storefront.models.cart import CartItem
from storefront.models.product import Product, ProductVariant

logger = logging.getLogger(__name__)

class CartService:
    def __init__(self, session: Session):
        self.session = session

    def get_items(self, user_id: int) -> List[CartItem]:
        return self.session.exec(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        ).all()

    def _resolve(self, product_id: int, variant_name: Optional[str]) -> Tuple[Product, ProductVariant]:
        product = self.session.get(Product, product_id)
        if not product or not product.is_active:
            raise HTTPException(status_code=404, detail="Product not found")
        if not product.variants:
            raise HTTPException(status_code=400, detail="Product has no variants available")
        variant = product.find_variant(variant_name)
        if not variant:
            raise HTTPException(status_code=400, detail=f"Variant '{variant_name}' not found")
        return product, variant

    def _find_line(self, user_id: int, product_id: int, variant_id: int) -> Optional[CartItem]:
        return self.session.exec(
            select(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id,
                CartItem.variant_id == variant_id
            )
        ).first()

    def get_cart(self, user_id: int) -> dict:
        """Cart lines with current product details and the recomputed total"""
        items = []
        total = 0.0
        for item in self.get_items(user_id):
            product = self.session.get(Product, item.product_id)
            variant = self.session.get(ProductVariant, item.variant_id) if item.variant_id else None
            if not product or not variant:
                continue
            price = product.unit_price(variant)
            line_total = round(price * item.quantity, 2)
            total += line_total
            items.append({
                "id": item.id,
                "product_id": product.id,
                "product_name": product.name,
                "product_slug": product.slug,
                "product_image": product.images[0] if product.images else None,
                "is_active": product.is_active,
                "variant_name": variant.size,
                "available_stock": variant.available_stock,
                "quantity": item.quantity,
                "price": price,
                "total": line_total,
            })
        return {"items": items, "total_amount": round(total, 2)}

    def add_to_cart(self, user_id: int, product_id: int, variant_name: Optional[str], quantity: int) -> dict:
        if quantity < 1:
            raise HTTPException(status_code=400, detail="Quantity must be at least 1")
        product, variant = self._resolve(product_id, variant_name)
        line = self._find_line(user_id, product.id, variant.id)

        new_quantity = (line.quantity if line else 0) + quantity
        if new_quantity > settings.CART_MAX_QUANTITY:
            raise HTTPException(status_code=400, detail=f"maximum {settings.CART_MAX_QUANTITY} per product")
        if not line and len(self.get_items(user_id)) >= settings.CART_MAX_LINES:
            raise HTTPException(status_code=400, detail=f"maximum {settings.CART_MAX_LINES} products in cart")
        if new_quantity > variant.available_stock:
            raise HTTPException(
                status_code=400,
                detail=f"Insufficient stock for {variant.size}. Available: {variant.available_stock}"
            )

        if line:
            line.quantity = new_quantity
            line.price = product.unit_price(variant)
            line.updated_at = datetime.utcnow()
        else:
            line = CartItem(
                user_id=user_id,
                product_id=product.id,
                variant_id=variant.id,
                variant_name=variant.size,
                quantity=quantity,
                price=product.unit_price(variant)
            )
        self.session.add(line)
        self.session.commit()
        return self.get_cart(user_id)

    def update_quantity(self, user_id: int, product_id: int, variant_name: Optional[str], quantity: int) -> dict:
        product, variant = self._resolve(product_id, variant_name)
        line = self._find_line(user_id, product.id, variant.id)
        if not line:
            raise HTTPException(status_code=404, detail="Item not in cart")

        if quantity <= 0:
            self.session.delete(line)
        else:
            if quantity > settings.CART_MAX_QUANTITY:
                raise HTTPException(status_code=400, detail=f"maximum {settings.CART_MAX_QUANTITY} per product")
            if quantity > variant.available_stock:
                raise HTTPException(status_code=400, detail=f"Insufficient stock. Available: {variant.available_stock}")
            line.quantity = quantity
            line.price = product.unit_price(variant)
            line.updated_at = datetime.utcnow()
            self.session.add(line)
        self.session.commit()
        return self.get_cart(user_id)

    def remove_from_cart(self, user_id: int, product_id: int, variant_name: Optional[str]) -> dict:
        product = self.session.get(Product, product_id)
        variant = product.find_variant(variant_name) if product else None
        if variant:
            line = self._find_line(user_id, product_id, variant.id)
            if line:
                self.session.delete(line)
                self.session.commit()
        return self.get_cart(user_id)

    def clear_cart(self, user_id: int, commit: bool = True) -> None:
        self.session.exec(delete(CartItem).where(CartItem.user_id == user_id))
        if commit:
            self.session.commit()
