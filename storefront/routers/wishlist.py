from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.routers.auth import get_current_user
from storefront.services.wishlist import WishlistService

router = APIRouter()

class WishlistToggle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")

class WishlistMerge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_ids: List[int] = Field(alias="productIds")

def get_wishlist_service(session: Session = Depends(get_session)) -> WishlistService:
    return WishlistService(session)

@router.get("")
def get_wishlist(current_user: User = Depends(get_current_user), service: WishlistService = Depends(get_wishlist_service)):
    return ok(service.get_wishlist(current_user.id))

@router.post("/toggle")
def toggle_wishlist(
    data: WishlistToggle,
    current_user: User = Depends(get_current_user),
    service: WishlistService = Depends(get_wishlist_service)
):
    result = service.toggle(current_user.id, data.product_id)
    return ok(result, "Added to wishlist" if result["added"] else "Removed from wishlist")

@router.post("/merge")
def merge_wishlist(
    data: WishlistMerge,
    current_user: User = Depends(get_current_user),
    service: WishlistService = Depends(get_wishlist_service)
):
    return ok(service.merge(current_user.id, data.product_ids))
