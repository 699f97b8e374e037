import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import HTTPException
from sqlmodel import Session, select

from storefront.models.product import Product
from storefront.models.promotion import FeaturedProducts, FlashSale
from storefront.services.catalog import CatalogService, serialize_product
from storefront.services.category import CategoryService

logger = logging.getLogger(__name__)

MAX_FLASH_SALE_PRODUCTS = 7
NEW_ARRIVALS_LIMIT = 8
FEATURED_FALLBACK_LIMIT = 4

def current_window(sale: FlashSale, now: datetime) -> dict:
    """End of the running cycle; the sale repeats every duration_hours from start_time"""
    duration = timedelta(hours=sale.duration_hours)
    if now < sale.start_time:
        return {"current_end_time": sale.start_time + duration, "is_upcoming": True}
    cycles = int((now - sale.start_time) / duration)
    return {"current_end_time": sale.start_time + (cycles + 1) * duration, "is_upcoming": False}

class PromotionService:
    """Flash sale and featured products, one row each, plus the home feed built from them"""

    def __init__(self, session: Session):
        self.session = session

    def _products_by_id(self, product_ids: List[int], active_only: bool = True) -> dict:
        if not product_ids:
            return {}
        query = select(Product).where(Product.id.in_(product_ids))
        if active_only:
            query = query.where(Product.is_active == True)  # noqa: E712
        return {p.id: p for p in self.session.exec(query).all()}

    def _ensure_products_exist(self, product_ids: List[int]) -> None:
        found = self._products_by_id(product_ids, active_only=False)
        missing = [pid for pid in product_ids if pid not in found]
        if missing:
            raise HTTPException(status_code=404, detail=f"Product not found: {missing[0]}")

    # Flash sale

    def _flash_sale_row(self) -> FlashSale:
        row = self.session.exec(select(FlashSale)).first()
        if not row:
            row = FlashSale()
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def get_flash_sale(self, include_inactive: bool = False, now: Optional[datetime] = None) -> Optional[dict]:
        sale = self._flash_sale_row()
        if not sale.is_active and not include_inactive:
            return None
        now = now or datetime.utcnow()
        products = self._products_by_id([entry["product_id"] for entry in sale.products], active_only=not include_inactive)
        items = []
        for entry in sale.products:
            product = products.get(entry["product_id"])
            if product:
                items.append({**serialize_product(product), "flash_sale_percentage": entry["offer_percentage"]})
        return {
            "is_active": sale.is_active,
            "duration_hours": sale.duration_hours,
            "start_time": sale.start_time,
            **current_window(sale, now),
            "products": items,
        }

    def update_flash_sale(self, products: List[dict], is_active: bool, duration_hours: int) -> dict:
        if len(products) > MAX_FLASH_SALE_PRODUCTS:
            raise HTTPException(
                status_code=400,
                detail=f"A flash sale can have at most {MAX_FLASH_SALE_PRODUCTS} products"
            )
        self._ensure_products_exist([entry["product_id"] for entry in products])

        sale = self._flash_sale_row()
        sale.products = [
            {"product_id": entry["product_id"], "offer_percentage": min(max(entry["offer_percentage"], 0), 99)}
            for entry in products
        ]
        sale.is_active = is_active
        sale.duration_hours = duration_hours
        # Saving restarts the cycle
        sale.start_time = datetime.utcnow()
        sale.updated_at = sale.start_time
        self.session.add(sale)
        self.session.commit()
        logger.info("Flash sale updated: %d products, active=%s", len(sale.products), is_active)
        return self.get_flash_sale(include_inactive=True)

    # Featured products

    def _featured_row(self) -> FeaturedProducts:
        row = self.session.exec(select(FeaturedProducts)).first()
        if not row:
            row = FeaturedProducts()
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def get_featured(self, active_only: bool = True) -> List[dict]:
        row = self._featured_row()
        products = self._products_by_id(row.product_ids, active_only=active_only)
        return [serialize_product(products[pid]) for pid in row.product_ids if pid in products]

    def update_featured(self, product_ids: List[int]) -> List[dict]:
        product_ids = list(dict.fromkeys(product_ids))
        self._ensure_products_exist(product_ids)
        row = self._featured_row()
        row.product_ids = product_ids
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.commit()
        return self.get_featured(active_only=False)

    # Home feed

    def home_feed(self) -> dict:
        catalog = CatalogService(self.session)
        featured = self.get_featured()
        if not featured:
            featured = [serialize_product(p) for p in catalog.latest_products(FEATURED_FALLBACK_LIMIT)]
        return {
            "new_arrivals": [serialize_product(p) for p in catalog.latest_products(NEW_ARRIVALS_LIMIT)],
            "featured": featured,
            "flash_sale": self.get_flash_sale(),
            "categories": CategoryService(self.session).active_categories(),
        }
