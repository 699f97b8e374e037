import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlmodel import Session

from storefront.core.config import settings
from storefront.models.address import Address
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.product import Product, ProductVariant
from storefront.models.user import User
from storefront.services.cart import CartService
from storefront.services.coupon import CouponService
from storefront.services.inventory import InventoryService
from storefront.services.order import serialize_order
from storefront.services.payment_gateway import RazorpayGateway, to_paise
from storefront.services.settings import SettingsService

logger = logging.getLogger(__name__)

class CheckoutService:
    def __init__(self, session: Session, gateway: RazorpayGateway):
        self.session = session
        self.gateway = gateway
        self.cart = CartService(session)
        self.coupons = CouponService(session)
        self.inventory = InventoryService(session)
        self.settings = SettingsService(session)

    def _check_payment_method(self, payment_method: PaymentMethod) -> None:
        order_settings = self.settings.get_order_settings()
        if payment_method == PaymentMethod.ONLINE and not order_settings.is_online_payment_enabled:
            raise HTTPException(status_code=400, detail="Online payment is currently disabled")
        if payment_method == PaymentMethod.WHATSAPP and not order_settings.is_whatsapp_ordering_enabled:
            raise HTTPException(status_code=400, detail="WhatsApp ordering is currently disabled")

    def place_order(self, user: User, address_id: int, payment_method: PaymentMethod,
                    coupon_code: Optional[str] = None) -> dict:
        """
        Turn the user's cart into an order awaiting payment.

        Prices are taken from current product data, stock is reserved, the coupon
        use is claimed and the cart is cleared. Online orders also get a gateway
        order and a payment window. Nothing is persisted unless every step succeeds.
        """
        lines = self.cart.get_items(user.id)
        if not lines:
            raise HTTPException(status_code=400, detail="Cart is empty")

        address = self.session.get(Address, address_id)
        if not address or address.user_id != user.id:
            raise HTTPException(status_code=404, detail="Address not found")

        self._check_payment_method(payment_method)
        delivery = self.settings.get_delivery_settings()

        try:
            items = []
            for line in lines:
                product = self.session.get(Product, line.product_id)
                variant = self.session.get(ProductVariant, line.variant_id) if line.variant_id else None
                if not product or not product.is_active:
                    raise HTTPException(status_code=400, detail="A product in your cart is no longer available")
                if not variant or variant.product_id != product.id:
                    raise HTTPException(
                        status_code=400,
                        detail=f"Variant {line.variant_name} not found for product {product.name}"
                    )
                items.append(OrderItem(
                    product_id=product.id,
                    variant_id=variant.id,
                    variant_name=variant.size,
                    product_name=product.name,
                    quantity=line.quantity,
                    price=product.unit_price(variant)
                ))

            subtotal = round(sum(i.price * i.quantity for i in items), 2)

            coupon_result = None
            if coupon_code:
                coupon_result = self.coupons.validate(
                    user, coupon_code, [(i.product_id, i.price * i.quantity) for i in items]
                )
            discount = coupon_result.discount_amount if coupon_result else 0.0

            shipping_fee = delivery.shipping_fee_for(subtotal)
            final_amount = round(max(0.0, subtotal + shipping_fee - discount), 2)
            if payment_method == PaymentMethod.ONLINE and final_amount <= 0:
                raise HTTPException(status_code=400, detail="Order total must be greater than zero for online payment")

            order = Order(
                user_id=user.id,
                total_amount=subtotal,
                shipping_fee=shipping_fee,
                discount_amount=discount,
                final_amount=final_amount,
                coupon_id=coupon_result.coupon.id if coupon_result else None,
                discount_code=coupon_result.coupon.code if coupon_result else None,
                shipping_address=address.snapshot(),
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
                order_status=OrderStatus.PAYMENT_PENDING,
                items=items
            )
            self.session.add(order)
            self.session.flush()
            order.order_number = f"SK{order.id:06d}"

            for item in items:
                self.inventory.reserve(item.variant_id, item.quantity, f"{item.product_name} ({item.variant_name})")

            if coupon_result:
                self.coupons.record_usage(coupon_result, user.id, order.id)

            if payment_method == PaymentMethod.ONLINE:
                gateway_order = self.gateway.create_order(
                    final_amount, receipt=order.order_number, notes={"order_id": str(order.id)}
                )
                order.payment_gateway = self.gateway.name
                order.gateway_order_id = gateway_order["id"]
                order.payment_expires_at = datetime.utcnow() + timedelta(minutes=settings.PAYMENT_WINDOW_MINUTES)
                order.add_history(OrderStatus.PAYMENT_PENDING, "Order initiated. Awaiting payment confirmation.")
            else:
                order.add_history(
                    OrderStatus.PAYMENT_PENDING,
                    "Order placed via WhatsApp. Awaiting manual payment confirmation."
                )

            self.cart.clear_cart(user.id, commit=False)
            self.session.add(order)
            self.session.commit()
        except HTTPException:
            self.session.rollback()
            raise

        self.session.refresh(order)
        logger.info("Order %s placed by user %s (%s, %.2f)", order.order_number, user.id, payment_method.value, final_amount)
        return self.checkout_response(order)

    def checkout_response(self, order: Order) -> dict:
        response = {"order": serialize_order(order)}
        if order.payment_method == PaymentMethod.ONLINE and order.gateway_order_id:
            response["payment"] = {
                "key_id": self.gateway.key_id,
                "gateway_order_id": order.gateway_order_id,
                "amount": to_paise(order.final_amount),
                "currency": settings.CURRENCY,
                "expires_at": order.payment_expires_at,
            }
        return response
