import logging

from fastapi import HTTPException
from sqlalchemy import update
from sqlmodel import Session

from storefront.models.order import Order
from storefront.models.product import Product, ProductVariant

logger = logging.getLogger(__name__)

class InventoryService:
    """Stock movements for orders. Callers own the commit."""

    def __init__(self, session: Session):
        self.session = session

    def reserve(self, variant_id: int, quantity: int, label: str = "item") -> None:
        # Conditional update so two checkouts cannot both take the last unit
        result = self.session.exec(
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .where(ProductVariant.stock - ProductVariant.reserved_stock >= quantity)
            .values(reserved_stock=ProductVariant.reserved_stock + quantity)
        )
        if result.rowcount != 1:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {label}")

    def release(self, order: Order) -> None:
        """Give back the units held by an unpaid order"""
        for item in order.items:
            if item.variant_id is None:
                continue
            variant = self.session.get(ProductVariant, item.variant_id)
            if variant:
                variant.reserved_stock = max(0, variant.reserved_stock - item.quantity)
                self.session.add(variant)
        logger.info("Released reservation for order %s", order.id)

    def commit(self, order: Order) -> None:
        """Turn the reservation into a sale once payment is confirmed"""
        for item in order.items:
            if item.variant_id is not None:
                variant = self.session.get(ProductVariant, item.variant_id)
                if variant:
                    variant.stock = max(0, variant.stock - item.quantity)
                    variant.reserved_stock = max(0, variant.reserved_stock - item.quantity)
                    self.session.add(variant)
            product = self.session.get(Product, item.product_id)
            if product:
                product.sold_count += item.quantity
                self.session.add(product)
        logger.info("Committed stock for order %s", order.id)

    def restock(self, order: Order) -> None:
        """Put sold units back after a paid order is cancelled"""
        for item in order.items:
            if item.variant_id is not None:
                variant = self.session.get(ProductVariant, item.variant_id)
                if variant:
                    variant.stock += item.quantity
                    self.session.add(variant)
            product = self.session.get(Product, item.product_id)
            if product:
                product.sold_count = max(0, product.sold_count - item.quantity)
                self.session.add(product)
        logger.info("Restocked order %s", order.id)
