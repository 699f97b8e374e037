import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import desc, func, update
from sqlmodel import Session, select

from storefront.models.category import Category
from storefront.models.product import Product
from storefront.services.catalog import paginate

logger = logging.getLogger(__name__)

class CategoryService:
    def __init__(self, session: Session):
        self.session = session

    def active_categories(self) -> List[Category]:
        return self.session.exec(
            select(Category).where(Category.is_active == True).order_by(Category.name)  # noqa: E712
        ).all()

    def list_categories(self, page: int, limit: int, search: Optional[str] = None) -> dict:
        query = select(Category)
        if search:
            query = query.where(Category.name.ilike(f"%{search}%"))
        categories, meta = paginate(self.session, query, Category.id, page, limit, desc(Category.created_at))
        return {"categories": categories, **meta}

    def get_category(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise HTTPException(status_code=404, detail="Category not found")
        return category

    def _ensure_unique_name(self, name: str, category_id: Optional[int] = None) -> None:
        existing = self.session.exec(select(Category).where(func.lower(Category.name) == name.lower())).first()
        if existing and existing.id != category_id:
            raise HTTPException(status_code=409, detail="Category already exists")

    def create_category(self, data: dict) -> Category:
        self._ensure_unique_name(data["name"])
        category = Category(**data)
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        logger.info("Category %s created", category.id)
        return category

    def update_category(self, category_id: int, data: dict) -> Category:
        category = self.get_category(category_id)
        if "name" in data:
            self._ensure_unique_name(data["name"], category.id)
        for key, value in data.items():
            setattr(category, key, value)
        category.updated_at = datetime.utcnow()
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete_category(self, category_id: int) -> None:
        category = self.get_category(category_id)
        # Products stay on sale, just uncategorised
        self.session.exec(
            update(Product).where(Product.category_id == category.id).values(category_id=None)
            .execution_options(synchronize_session="fetch")
        )
        self.session.delete(category)
        self.session.commit()
        logger.info("Category %s deleted", category_id)
