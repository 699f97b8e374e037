from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.routers.auth import get_current_user
from storefront.services.review import ReviewService

router = APIRouter()

class ReviewIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    order_id: Optional[int] = Field(default=None, alias="orderId")
    rating: int
    comment: str
    images: List[str] = []

    @field_validator("rating")
    @classmethod
    def rating_range(cls, value: int) -> int:
        if not 1 <= value <= 5:
            raise ValueError("Rating must be between 1 and 5")
        return value

    @field_validator("comment")
    @classmethod
    def comment_length(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 10:
            raise ValueError("Comment must be at least 10 characters long")
        return value

def get_review_service(session: Session = Depends(get_session)) -> ReviewService:
    return ReviewService(session)

@router.get("/product/{id_or_slug}")
def product_reviews(
    id_or_slug: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort: Optional[str] = Query(None, pattern="^(newest|oldest|rating_high|rating_low)$"),
    service: ReviewService = Depends(get_review_service)
):
    return ok(service.product_reviews(id_or_slug, page, limit, sort))

@router.get("/can-review/{id_or_slug}")
def can_review(
    id_or_slug: str,
    order_id: Optional[int] = Query(None, alias="orderId"),
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    return ok(service.can_review(current_user, id_or_slug, order_id))

@router.post("", status_code=201)
def create_review(
    data: ReviewIn,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service)
):
    review = service.create_review(current_user, data.product_id, data.rating, data.comment, data.images, data.order_id)
    return ok(service.serialize(review), "Review submitted")
