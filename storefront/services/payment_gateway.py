import logging
from typing import Optional

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError
from fastapi import HTTPException
from requests.exceptions import RequestException

from storefront.core.config import settings

logger = logging.getLogger(__name__)

GATEWAY_ERRORS = (BadRequestError, GatewayError, ServerError, RequestException)

def to_paise(amount: float) -> int:
    return int(round(amount * 100))

class RazorpayGateway:
    """Thin wrapper over the Razorpay client used by checkout and orders"""

    name = "razorpay"

    def __init__(self, key_id: str, key_secret: str, webhook_secret: str):
        self.key_id = key_id
        self.webhook_secret = webhook_secret
        self.client = razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount: float, receipt: str, notes: Optional[dict] = None) -> dict:
        data = {
            "amount": to_paise(amount),
            "currency": settings.CURRENCY,
            "receipt": receipt,
            "payment_capture": 1,
        }
        if notes:
            data["notes"] = notes
        try:
            return self.client.order.create(data=data)
        except GATEWAY_ERRORS as e:
            logger.error("Razorpay order creation failed for %s: %s", receipt, e)
            raise HTTPException(status_code=502, detail="Payment gateway unavailable, please try again")

    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": gateway_order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
            return True
        except SignatureVerificationError:
            return False

    def verify_webhook_signature(self, body: str, signature: str) -> bool:
        try:
            self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
            return True
        except SignatureVerificationError:
            return False

    def refund(self, payment_id: str, amount: float) -> dict:
        try:
            return self.client.payment.refund(payment_id, {"amount": to_paise(amount)})
        except GATEWAY_ERRORS as e:
            logger.error("Razorpay refund failed for payment %s: %s", payment_id, e)
            raise HTTPException(status_code=502, detail="Refund could not be initiated, please try again")

def get_payment_gateway() -> RazorpayGateway:
    return RazorpayGateway(
        settings.RAZORPAY_KEY_ID,
        settings.RAZORPAY_KEY_SECRET,
        settings.RAZORPAY_WEBHOOK_SECRET
    )
