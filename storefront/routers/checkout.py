from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.order import PaymentMethod
from storefront.models.user import User
from storefront.routers.auth import get_current_user
from storefront.services.checkout import CheckoutService
from storefront.services.payment_gateway import RazorpayGateway, get_payment_gateway
from storefront.services.settings import SettingsService

router = APIRouter()

class PlaceOrder(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address_id: int = Field(alias="addressId")
    payment_method: PaymentMethod = Field(default=PaymentMethod.ONLINE, alias="paymentMethod")
    coupon_code: Optional[str] = Field(default=None, alias="couponCode")

def get_checkout_service(
    session: Session = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_payment_gateway)
) -> CheckoutService:
    return CheckoutService(session, gateway)

@router.post("/place-order", status_code=201)
def place_order(
    data: PlaceOrder,
    current_user: User = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service)
):
    result = service.place_order(current_user, data.address_id, data.payment_method, data.coupon_code)
    return ok(result, "Order placed successfully")

@router.get("/settings")
def checkout_settings(session: Session = Depends(get_session)):
    """Delivery charges and enabled payment methods shown on the checkout page"""
    return ok(SettingsService(session).checkout_settings())
