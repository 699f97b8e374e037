from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from storefront.routers.orders import get_order_service
from storefront.services.order import OrderService

router = APIRouter()

@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    service: OrderService = Depends(get_order_service)
):
    """Razorpay event callback; confirms or fails orders the client never reported back on"""
    body = await request.body()
    return service.handle_webhook(body, x_razorpay_signature)
