from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.routers.auth import get_current_user
from storefront.services.cart import CartService

router = APIRouter()

class CartLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    variant_name: Optional[str] = Field(default=None, alias="variantName")

class CartItemCreate(CartLine):
    quantity: int = Field(default=1, ge=1)

class CartItemUpdate(CartLine):
    quantity: int

def get_cart_service(session: Session = Depends(get_session)) -> CartService:
    return CartService(session)

@router.get("")
def get_cart(current_user: User = Depends(get_current_user), service: CartService = Depends(get_cart_service)):
    return ok(service.get_cart(current_user.id))

@router.post("/add")
def add_to_cart(
    data: CartItemCreate,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service)
):
    return ok(service.add_to_cart(current_user.id, data.product_id, data.variant_name, data.quantity), "Added to cart")

@router.put("/update")
def update_cart_item(
    data: CartItemUpdate,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service)
):
    """Set a line's quantity; zero or less removes it"""
    return ok(service.update_quantity(current_user.id, data.product_id, data.variant_name, data.quantity))

@router.delete("/remove")
def remove_from_cart(
    data: CartLine,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service)
):
    return ok(service.remove_from_cart(current_user.id, data.product_id, data.variant_name), "Removed from cart")
