import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import and_, asc, desc, func, or_
from sqlmodel import Session, select

from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.product import Product
from storefront.models.review import Review
from storefront.models.user import User
from storefront.services.catalog import CatalogService, paginate

logger = logging.getLogger(__name__)

TEAM_NAME = "Sking Cosmetics Team"

# Public sorts; pinned reviews always come first
PRODUCT_SORTS = {
    "newest": desc(Review.created_at),
    "oldest": asc(Review.created_at),
    "rating_high": desc(Review.rating),
    "rating_low": asc(Review.rating),
}

ADMIN_SORT_FIELDS = {"created_at", "rating", "updated_at"}

BLOCK_DURATIONS = {
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "permanent": None,
}

def visible_clause(now: datetime):
    return or_(
        Review.is_blocked == False,  # noqa: E712
        and_(Review.blocked_until != None, Review.blocked_until <= now)  # noqa: E711
    )

class ReviewService:
    def __init__(self, session: Session):
        self.session = session
        self.catalog = CatalogService(session)

    def serialize(self, review: Review) -> dict:
        data = review.model_dump()
        if review.is_admin_review or review.user_id is None:
            data["user"] = {"id": None, "name": TEAM_NAME}
        else:
            user = self.session.get(User, review.user_id)
            data["user"] = {"id": review.user_id, "name": user.name if user else None}
        return data

    def get_review(self, review_id: int) -> Review:
        review = self.session.get(Review, review_id)
        if not review:
            raise HTTPException(status_code=404, detail="Review not found")
        return review

    def refresh_product_rating(self, product_id: int) -> None:
        """Recompute the cached review count and average from visible reviews"""
        count, average = self.session.exec(
            select(func.count(Review.id), func.avg(Review.rating))
            .where(Review.product_id == product_id, visible_clause(datetime.utcnow()))
        ).one()
        product = self.session.get(Product, product_id)
        if product:
            product.reviews_count = count or 0
            product.average_rating = round(average or 0, 1)
            self.session.add(product)

    # User facing

    def _delivered_orders_with(self, user_id: int, product_id: int):
        return (
            select(Order)
            .join(OrderItem, OrderItem.order_id == Order.id)
            .where(
                Order.user_id == user_id,
                Order.order_status == OrderStatus.DELIVERED,
                OrderItem.product_id == product_id
            )
        )

    def _already_reviewed(self, user_id: int, product_id: int, order_id: int) -> bool:
        return self.session.exec(
            select(Review.id).where(
                Review.user_id == user_id,
                Review.product_id == product_id,
                Review.order_id == order_id
            )
        ).first() is not None

    def find_eligible_order(self, user_id: int, product_id: int) -> Optional[Order]:
        """Newest delivered order holding the product that has no review yet"""
        orders = self.session.exec(
            self._delivered_orders_with(user_id, product_id).order_by(desc(Order.created_at), desc(Order.id))
        ).all()
        return next((o for o in orders if not self._already_reviewed(user_id, product_id, o.id)), None)

    def can_review(self, user: User, id_or_slug: str, order_id: Optional[int] = None) -> dict:
        product = self.catalog.get_product(id_or_slug)
        if order_id is not None:
            order = self.session.exec(
                self._delivered_orders_with(user.id, product.id).where(Order.id == order_id)
            ).first()
            eligible = order is not None and not self._already_reviewed(user.id, product.id, order_id)
            return {"can_review": eligible, "order_id": order_id if eligible else None}
        order = self.find_eligible_order(user.id, product.id)
        return {"can_review": order is not None, "order_id": order.id if order else None}

    def create_review(self, user: User, product_id: int, rating: int, comment: str,
                      images: List[str], order_id: Optional[int] = None) -> Review:
        product = self.catalog.get_product(str(product_id))
        if order_id is None:
            order = self.find_eligible_order(user.id, product.id)
        else:
            order = self.session.exec(
                self._delivered_orders_with(user.id, product.id).where(Order.id == order_id)
            ).first()
        if not order:
            if order_id is None and self.session.exec(self._delivered_orders_with(user.id, product.id)).first():
                raise HTTPException(status_code=409, detail="You have already reviewed this product for this order.")
            raise HTTPException(status_code=400, detail="You can only review products that have been delivered to you.")
        if self._already_reviewed(user.id, product.id, order.id):
            raise HTTPException(status_code=409, detail="You have already reviewed this product for this order.")

        review = Review(
            product_id=product.id,
            user_id=user.id,
            order_id=order.id,
            rating=rating,
            comment=comment,
            images=images,
            is_verified=True
        )
        self.session.add(review)
        self.session.flush()
        self.refresh_product_rating(product.id)
        self.session.commit()
        self.session.refresh(review)
        logger.info("Review %s added for product %s by user %s", review.id, product.id, user.id)
        return review

    def product_reviews(self, id_or_slug: str, page: int, limit: int, sort: Optional[str] = None) -> dict:
        product = self.catalog.get_product(id_or_slug)
        now = datetime.utcnow()
        visible = and_(Review.product_id == product.id, visible_clause(now))

        query = select(Review).where(visible)
        order_by = PRODUCT_SORTS.get(sort or "newest", PRODUCT_SORTS["newest"])
        total = self.session.scalar(select(func.count(Review.id)).where(visible)) or 0
        reviews = self.session.exec(
            query.order_by(desc(Review.is_pinned), order_by, desc(Review.id))
            .offset((page - 1) * limit).limit(limit)
        ).all()

        breakdown = {str(star): 0 for star in range(1, 6)}
        for rating, count in self.session.exec(
            select(Review.rating, func.count(Review.id)).where(visible).group_by(Review.rating)
        ).all():
            breakdown[str(rating)] = count
        average = self.session.scalar(select(func.avg(Review.rating)).where(visible))

        return {
            "reviews": [self.serialize(r) for r in reviews],
            "total": total,
            "page": page,
            "pages": (total + limit - 1) // limit,
            "stats": {
                "average_rating": round(average or 0, 1),
                "total_reviews": total,
                "rating_breakdown": breakdown,
            },
        }

    # Admin

    def list_reviews(self, page: int, limit: int, search: Optional[str] = None,
                     sort_by: Optional[str] = None, sort_order: str = "desc", status: Optional[str] = None,
                     product_id: Optional[int] = None, user_id: Optional[int] = None) -> dict:
        query = select(Review)
        if search:
            query = query.where(Review.comment.ilike(f"%{search}%"))
        if status == "active":
            query = query.where(Review.is_blocked == False)  # noqa: E712
        elif status == "blocked":
            query = query.where(Review.is_blocked == True)  # noqa: E712
        if product_id:
            query = query.where(Review.product_id == product_id)
        if user_id:
            query = query.where(Review.user_id == user_id)

        column = getattr(Review, sort_by) if sort_by in ADMIN_SORT_FIELDS else Review.created_at
        order_by = asc(column) if sort_order == "asc" else desc(column)
        reviews, meta = paginate(self.session, query, Review.id, page, limit, order_by)
        return {"reviews": [self.serialize(r) for r in reviews], **meta}

    def admin_create_review(self, product_id: int, rating: int, comment: str, images: List[str],
                            user_id: Optional[int] = None, order_id: Optional[int] = None) -> Review:
        product = self.catalog.get_product(str(product_id), include_inactive=True)
        if user_id is not None and not self.session.get(User, user_id):
            raise HTTPException(status_code=404, detail="User not found")
        if user_id is not None and order_id is not None and self._already_reviewed(user_id, product.id, order_id):
            raise HTTPException(status_code=409, detail="You have already reviewed this product for this order.")
        review = Review(
            product_id=product.id,
            user_id=user_id,
            order_id=order_id,
            rating=rating,
            comment=comment,
            images=images,
            is_verified=True,
            is_admin_review=user_id is None
        )
        self.session.add(review)
        self.session.flush()
        self.refresh_product_rating(product.id)
        self.session.commit()
        self.session.refresh(review)
        return review

    def block_review(self, review_id: int, duration: str, reason: Optional[str] = None) -> Review:
        if duration not in BLOCK_DURATIONS:
            raise HTTPException(status_code=400, detail="Invalid block duration")
        review = self.get_review(review_id)
        period = BLOCK_DURATIONS[duration]
        review.is_blocked = True
        review.blocked_until = datetime.utcnow() + period if period else None
        review.block_reason = reason
        return self._save_moderation(review)

    def unblock_review(self, review_id: int) -> Review:
        review = self.get_review(review_id)
        review.is_blocked = False
        review.blocked_until = None
        review.block_reason = None
        return self._save_moderation(review)

    def toggle_pin(self, review_id: int) -> Review:
        review = self.get_review(review_id)
        review.is_pinned = not review.is_pinned
        return self._save_moderation(review)

    def _save_moderation(self, review: Review) -> Review:
        review.updated_at = datetime.utcnow()
        self.session.add(review)
        self.session.flush()
        self.refresh_product_rating(review.product_id)
        self.session.commit()
        self.session.refresh(review)
        return review

    def delete_review(self, review_id: int) -> None:
        review = self.get_review(review_id)
        product_id = review.product_id
        self.session.delete(review)
        self.session.flush()
        self.refresh_product_rating(product_id)
        self.session.commit()
        logger.info("Review %s deleted", review_id)
