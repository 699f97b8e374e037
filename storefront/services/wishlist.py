from typing import List

from fastapi import HTTPException
from sqlmodel import Session, select

from storefront.models.product import Product
from storefront.models.wishlist import WishlistItem
from storefront.services.catalog import serialize_product

class WishlistService:
    def __init__(self, session: Session):
        self.session = session

    def _product_ids(self, user_id: int) -> List[int]:
        return list(self.session.exec(
            select(WishlistItem.product_id).where(WishlistItem.user_id == user_id).order_by(WishlistItem.id)
        ).all())

    def get_wishlist(self, user_id: int) -> dict:
        products = []
        for product_id in self._product_ids(user_id):
            product = self.session.get(Product, product_id)
            if product:
                products.append(serialize_product(product))
        return {"products": products}

    def toggle(self, user_id: int, product_id: int) -> dict:
        if not self.session.get(Product, product_id):
            raise HTTPException(status_code=404, detail="Product not found")

        existing = self.session.exec(
            select(WishlistItem).where(WishlistItem.user_id == user_id, WishlistItem.product_id == product_id)
        ).first()
        if existing:
            self.session.delete(existing)
        else:
            self.session.add(WishlistItem(user_id=user_id, product_id=product_id))
        self.session.commit()
        return {**self.get_wishlist(user_id), "added": existing is None}

    def merge(self, user_id: int, product_ids: List[int]) -> dict:
        """Fold a guest wishlist into the account, skipping unknown products"""
        present = set(self._product_ids(user_id))
        for product_id in product_ids:
            if product_id in present or not self.session.get(Product, product_id):
                continue
            self.session.add(WishlistItem(user_id=user_id, product_id=product_id))
            present.add(product_id)
        self.session.commit()
        return self.get_wishlist(user_id)
