from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.routers.auth import get_current_user
from storefront.services.cart import CartService
from storefront.services.coupon import CouponService
from storefront.services.settings import SettingsService

router = APIRouter()

class ApplyCoupon(BaseModel):
    code: str = Field(min_length=1)

def get_coupon_service(session: Session = Depends(get_session)) -> CouponService:
    return CouponService(session)

@router.get("")
def my_coupons(current_user: User = Depends(get_current_user), service: CouponService = Depends(get_coupon_service)):
    return ok(service.my_coupons(current_user))

@router.post("/apply")
def apply_coupon(
    data: ApplyCoupon,
    current_user: User = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service)
):
    """Preview a code against the current cart; nothing is claimed until the order is placed"""
    cart = CartService(service.session).get_cart(current_user.id)
    if not cart["items"]:
        raise HTTPException(status_code=400, detail="Cart is empty")

    result = service.validate(current_user, data.code, [(i["product_id"], i["total"]) for i in cart["items"]])
    subtotal = cart["total_amount"]
    shipping_fee = SettingsService(service.session).get_delivery_settings().shipping_fee_for(subtotal)
    return ok({
        "code": result.coupon.code,
        "discount_type": result.coupon.discount_type,
        "discount_amount": result.discount_amount,
        "eligible_subtotal": result.eligible_subtotal,
        "subtotal": subtotal,
        "shipping_fee": shipping_fee,
        "final_amount": round(max(0.0, subtotal + shipping_fee - result.discount_amount), 2),
    }, "Coupon applied")
