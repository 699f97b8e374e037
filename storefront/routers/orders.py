from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.routers.auth import get_current_user
from storefront.services.checkout import CheckoutService
from storefront.services.order import OrderService, serialize_order
from storefront.services.payment_gateway import RazorpayGateway, get_payment_gateway

router = APIRouter()

class PaymentVerification(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

def get_order_service(
    session: Session = Depends(get_session),
    gateway: RazorpayGateway = Depends(get_payment_gateway)
) -> OrderService:
    return OrderService(session, gateway)

@router.get("")
def list_orders(current_user: User = Depends(get_current_user), service: OrderService = Depends(get_order_service)):
    return ok(service.list_user_orders(current_user.id))

@router.get("/{order_id}")
def get_order(order_id: int, current_user: User = Depends(get_current_user),
              service: OrderService = Depends(get_order_service)):
    return ok(serialize_order(service.get_user_order(order_id, current_user.id)))

@router.post("/verify-payment")
def verify_payment(
    data: PaymentVerification,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    order = service.verify_payment(
        current_user, data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature
    )
    return ok(order, "Payment verified successfully")

@router.post("/retry-payment/{order_id}")
def retry_payment(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    order = service.retry_payment(order_id, current_user)
    # Same payload as checkout so the client can reopen the gateway
    return ok(CheckoutService(service.session, service.gateway).checkout_response(order), "Retry payment initiated")

@router.post("/cancel-order/{order_id}")
def cancel_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    order = service.cancel_order(order_id, current_user)
    return ok(serialize_order(order), "Order cancelled successfully")
