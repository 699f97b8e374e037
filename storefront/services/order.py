import json
import logging
from datetime import datetime
from typing import Callable, List, Optional

from fastapi import HTTPException
from sqlalchemy import asc, desc, or_, update
from sqlmodel import Session, select

from storefront.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.transaction import Transaction, TransactionMethod, TransactionStatus, TransactionType
from storefront.models.user import User
from storefront.services.catalog import paginate
from storefront.services.coupon import CouponService
from storefront.services.email import (
    send_delivery_email,
    send_order_cancellation_email,
    send_order_success_email,
    send_shipping_notification_email,
)
from storefront.services.inventory import InventoryService
from storefront.services.order_state import ensure_transition
from storefront.services.payment_gateway import RazorpayGateway
from storefront.services.transaction import TransactionService

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"created_at", "final_amount", "order_status", "payment_status"}

# Only these can still be paid for
UNPAID_STATUSES = (PaymentStatus.PENDING, PaymentStatus.FAILED)

def serialize_order(order: Order) -> dict:
    data = order.model_dump()
    data["items"] = [item.model_dump() for item in order.items]
    return data

def _entity(payload: dict, name: str) -> dict:
    """payload[name]["entity"] from a webhook body, or {} when absent or malformed"""
    wrapper = payload.get(name)
    entity = wrapper.get("entity") if isinstance(wrapper, dict) else None
    return entity if isinstance(entity, dict) else {}

class OrderService:
    def __init__(self, session: Session, gateway: RazorpayGateway):
        self.session = session
        self.gateway = gateway
        self.inventory = InventoryService(session)
        self.coupons = CouponService(session)
        self.transactions = TransactionService(session)

    # Lookups

    def get_order(self, order_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    def get_user_order(self, order_id: int, user_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    def find_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Order]:
        return self.session.exec(select(Order).where(Order.gateway_order_id == gateway_order_id)).first()

    def list_user_orders(self, user_id: int) -> List[dict]:
        orders = self.session.exec(
            select(Order).where(Order.user_id == user_id).order_by(desc(Order.created_at), desc(Order.id))
        ).all()
        return [serialize_order(o) for o in orders]

    # Notifications

    def _notify(self, order: Order, send: Callable, *args) -> None:
        """Mail after commit; a failed mail never fails the order operation"""
        user = self.session.get(User, order.user_id)
        if not user:
            return
        try:
            send(user.email, user.name or "there", order, *args)
        except Exception:
            logger.exception("Failed to send %s for order %s", send.__name__, order.order_number)

    # State changes

    def _transition(self, order: Order, values: dict, **expected) -> bool:
        """
        Write `values` only while the row still holds the `expected` state.

        The sweep, the webhook and user requests all move the same orders from
        separate sessions, so a status read earlier may be stale by now. On a
        lost race the order is reloaded and False is returned.
        """
        statement = update(Order).where(Order.id == order.id)
        for field, allowed in expected.items():
            column = getattr(Order, field)
            if isinstance(allowed, (tuple, list, set, frozenset)):
                statement = statement.where(column.in_(allowed))
            else:
                statement = statement.where(column == allowed)
        result = self.session.exec(statement.values(**values).execution_options(synchronize_session=False))
        if result.rowcount != 1:
            self.session.refresh(order)
            return False
        for field, value in values.items():
            setattr(order, field, value)
        return True

    def _mark_payment_failed(self, order: Order) -> bool:
        return self._transition(
            order,
            {"payment_status": PaymentStatus.FAILED, "updated_at": datetime.utcnow()},
            order_status=OrderStatus.PAYMENT_PENDING,
            payment_status=UNPAID_STATUSES
        )

    # Payment confirmation

    def _confirm_payment(self, order: Order, payment_id: str, method: TransactionMethod,
                         message: str, signature: Optional[str] = None) -> bool:
        """Mark the order paid and move it to processing; caller commits"""
        now = datetime.utcnow()
        values = {
            "payment_status": PaymentStatus.COMPLETED,
            "order_status": OrderStatus.PROCESSING,
            "gateway_payment_id": payment_id,
            "paid_at": now,
            "updated_at": now,
        }
        if signature:
            values["gateway_signature"] = signature
        if not self._transition(order, values, order_status=OrderStatus.PAYMENT_PENDING,
                                payment_status=UNPAID_STATUSES):
            return False
        order.add_history(OrderStatus.PROCESSING, message)

        self.inventory.commit(order)
        self.transactions.record(
            order,
            amount=order.final_amount,
            type=TransactionType.CREDIT,
            method=method,
            transaction_id=payment_id,
            description=f"Payment for order {order.order_number}"
        )
        self.session.add(order)
        return True

    def _refund_orphan_payment(self, order: Order, payment_id: str) -> None:
        """A payment landed on an order that was already cancelled; send it back. Caller commits."""
        claimed = self._transition(
            order,
            {"payment_status": PaymentStatus.REFUNDED, "gateway_payment_id": payment_id,
             "updated_at": datetime.utcnow()},
            order_status=OrderStatus.CANCELLED,
            payment_status=(PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentStatus.CANCELLED)
        )
        if not claimed:
            # Already refunded by a concurrent callback
            return
        refund = self.gateway.refund(payment_id, order.final_amount)
        order.add_history(OrderStatus.CANCELLED, "Payment received after cancellation. Amount refunded.")
        self.transactions.record(
            order,
            amount=order.final_amount,
            type=TransactionType.DEBIT,
            method=TransactionMethod.REFUND,
            transaction_id=refund.get("id") or f"refund_{order.order_number}",
            description=f"Refund for cancelled order {order.order_number}"
        )
        self.session.add(order)
        logger.warning("Refunded late payment %s for cancelled order %s", payment_id, order.order_number)

    def verify_payment(self, user: User, gateway_order_id: str, payment_id: str, signature: str) -> dict:
        order = self.find_by_gateway_order_id(gateway_order_id)
        if not order or order.user_id != user.id:
            raise HTTPException(status_code=404, detail="Order not found")

        # Repeated callbacks for the same payment are harmless
        if order.payment_status == PaymentStatus.COMPLETED:
            return serialize_order(order)

        if not self.gateway.verify_payment_signature(gateway_order_id, payment_id, signature):
            if self._mark_payment_failed(order):
                self.session.commit()
            logger.warning("Signature mismatch for order %s", order.order_number)
            raise HTTPException(status_code=400, detail="Payment verification failed")

        if order.order_status != OrderStatus.CANCELLED and self._confirm_payment(
            order, payment_id, TransactionMethod.ONLINE, "Payment verified successfully", signature=signature
        ):
            self.session.commit()
            self.session.refresh(order)
            logger.info("Payment %s verified for order %s", payment_id, order.order_number)
            self._notify(order, send_order_success_email)
            return serialize_order(order)

        # Cancelled before the payment, or just now by another session
        if order.payment_status == PaymentStatus.COMPLETED:
            return serialize_order(order)
        if order.order_status == OrderStatus.CANCELLED:
            self._refund_orphan_payment(order, payment_id)
            self.session.commit()
            raise HTTPException(
                status_code=400,
                detail="This order was cancelled before the payment completed. The amount will be refunded."
            )
        raise HTTPException(status_code=400, detail="This order is not awaiting payment")

    def retry_payment(self, order_id: int, user: User) -> Order:
        order = self.get_user_order(order_id, user.id)
        if order.payment_method != PaymentMethod.ONLINE:
            raise HTTPException(status_code=400, detail="Only online orders can be paid online")
        if order.order_status != OrderStatus.PAYMENT_PENDING or order.payment_status not in UNPAID_STATUSES:
            raise HTTPException(status_code=400, detail="This order is not awaiting payment")

        if order.payment_window_elapsed():
            if self._cancel(order, "Payment window expired. Order cancelled automatically."):
                self.session.commit()
                self._notify(order, send_order_cancellation_email, "Payment window expired")
                raise HTTPException(status_code=400, detail="Payment window has expired. The order has been cancelled.")
            raise HTTPException(status_code=400, detail="This order is not awaiting payment")

        gateway_order = self.gateway.create_order(
            order.final_amount, receipt=order.order_number, notes={"order_id": str(order.id)}
        )
        reopened = self._transition(
            order,
            {"gateway_order_id": gateway_order["id"], "payment_gateway": self.gateway.name,
             "payment_status": PaymentStatus.PENDING, "updated_at": datetime.utcnow()},
            order_status=OrderStatus.PAYMENT_PENDING,
            payment_status=UNPAID_STATUSES
        )
        if not reopened:
            raise HTTPException(status_code=400, detail="This order is not awaiting payment")
        order.add_history(OrderStatus.PAYMENT_PENDING, "Payment retry initiated.")
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        logger.info("Payment retry for order %s", order.order_number)
        return order

    # Cancellation

    def _cancel(self, order: Order, message: str, is_critical: bool = False) -> bool:
        """
        Cancel an order and undo its side effects. Caller commits.

        Unpaid orders give back their reservation. Paid orders are restocked and
        refunded, through the gateway when the payment came from it. Returns
        False without side effects when another session changed the order first.
        """
        was_paid = order.is_paid
        now = datetime.utcnow()
        claimed = self._transition(
            order,
            {"order_status": OrderStatus.CANCELLED,
             "payment_status": PaymentStatus.REFUNDED if was_paid else PaymentStatus.CANCELLED,
             "cancelled_at": now, "updated_at": now},
            order_status=order.order_status,
            payment_status=order.payment_status
        )
        if not claimed:
            return False

        if was_paid:
            self.inventory.restock(order)
            refund = {}
            if order.payment_method == PaymentMethod.ONLINE and order.payment_gateway == self.gateway.name \
                    and order.gateway_payment_id:
                refund = self.gateway.refund(order.gateway_payment_id, order.final_amount)
            refund_id = refund.get("id") or f"refund_{order.order_number}"
            self.transactions.record(
                order,
                amount=order.final_amount,
                type=TransactionType.DEBIT,
                method=TransactionMethod.REFUND,
                transaction_id=refund_id,
                description=f"Refund for cancelled order {order.order_number}"
            )
            credit = self.session.exec(
                select(Transaction).where(
                    Transaction.order_id == order.id,
                    Transaction.type == TransactionType.CREDIT
                )
            ).first()
            if credit:
                credit.status = TransactionStatus.REFUNDED
                credit.updated_at = now
                self.session.add(credit)
        else:
            self.inventory.release(order)

        self.coupons.release_usage(order)
        order.add_history(OrderStatus.CANCELLED, message, is_critical)
        self.session.add(order)
        logger.info("Order %s cancelled: %s", order.order_number, message)
        return True

    def cancel_order(self, order_id: int, user: User) -> Order:
        order = self.get_user_order(order_id, user.id)
        if order.order_status not in (OrderStatus.PAYMENT_PENDING, OrderStatus.PROCESSING):
            raise HTTPException(
                status_code=400,
                detail=f"Order cannot be cancelled once it is {order.order_status.value}"
            )
        if not self._cancel(order, "Order cancelled by customer."):
            raise HTTPException(status_code=409, detail="Order was updated in the meantime. Please try again.")
        self.session.commit()
        self.session.refresh(order)
        self._notify(order, send_order_cancellation_email, "Cancelled at your request")
        return order

    def expire_stale_orders(self, now: Optional[datetime] = None) -> int:
        """Cancel unpaid online orders whose payment window has elapsed"""
        now = now or datetime.utcnow()
        stale = self.session.exec(
            select(Order).where(
                Order.order_status == OrderStatus.PAYMENT_PENDING,
                Order.payment_method == PaymentMethod.ONLINE,
                Order.payment_status.in_(UNPAID_STATUSES),
                Order.payment_expires_at != None,  # noqa: E711
                Order.payment_expires_at < now
            )
        ).all()
        expired = 0
        for order in stale:
            # Skipped when a payment confirmed it after the select
            if self._cancel(order, "Payment window expired. Order cancelled automatically."):
                expired += 1
        if expired:
            self.session.commit()
            logger.info("Expired %d unpaid orders", expired)
        return expired

    # Gateway webhook

    def handle_webhook(self, body: bytes, signature: Optional[str]) -> dict:
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            text = None
        if not signature or text is None or not self.gateway.verify_webhook_signature(text, signature):
            raise HTTPException(status_code=400, detail="Invalid signature")

        try:
            event = json.loads(text)
        except ValueError:
            raise HTTPException(status_code=400, detail="Malformed webhook payload")
        if not isinstance(event, dict):
            raise HTTPException(status_code=400, detail="Malformed webhook payload")

        event_type = event.get("event")
        payload = event.get("payload")
        if not isinstance(payload, dict):
            payload = {}
        payment = _entity(payload, "payment")
        gateway_order_id = payment.get("order_id") or _entity(payload, "order").get("id")

        order = self.find_by_gateway_order_id(gateway_order_id) if isinstance(gateway_order_id, str) else None
        if not order:
            logger.info("Webhook %s for unknown gateway order %s ignored", event_type, gateway_order_id)
            return {"status": "ignored"}

        if event_type in ("payment.captured", "order.paid"):
            payment_id = payment.get("id")
            if order.payment_status == PaymentStatus.COMPLETED or not payment_id:
                return {"status": "ok"}
            if order.order_status != OrderStatus.CANCELLED and self._confirm_payment(
                order, payment_id, TransactionMethod.ONLINE, "Payment captured by gateway"
            ):
                self.session.commit()
                self.session.refresh(order)
                self._notify(order, send_order_success_email)
                logger.info("Webhook confirmed payment %s for order %s", payment_id, order.order_number)
                return {"status": "ok"}
            if order.order_status == OrderStatus.CANCELLED:
                self._refund_orphan_payment(order, payment_id)
                self.session.commit()
                return {"status": "refunded"}
        elif event_type == "payment.failed":
            if self._mark_payment_failed(order):
                self.session.commit()
        else:
            logger.debug("Unhandled webhook event %s", event_type)
        return {"status": "ok"}

    # Admin

    def admin_list_orders(self, page: int, limit: int, search: Optional[str] = None,
                          status: Optional[str] = None, sort: Optional[str] = None) -> dict:
        query = select(Order)
        if search:
            query = query.where(
                or_(
                    Order.order_number.ilike(f"%{search}%"),
                    Order.gateway_order_id.ilike(f"%{search}%"),
                    Order.user_id.in_(select(User.id).where(
                        or_(User.email.ilike(f"%{search}%"), User.name.ilike(f"%{search}%"))
                    ))
                )
            )
        if status:
            query = query.where(Order.order_status == OrderStatus(status))

        order_by = desc(Order.created_at)
        if sort:
            field, _, direction = sort.partition(":")
            if field in SORTABLE_FIELDS:
                column = getattr(Order, field)
                order_by = desc(column) if direction == "desc" else asc(column)

        orders, meta = paginate(self.session, query, Order.id, page, limit, order_by)
        return {"orders": [serialize_order(o) for o in orders], **meta}

    def update_status(self, order_id: int, status: OrderStatus, is_critical: bool = False,
                      message: Optional[str] = None) -> Order:
        order = self.get_order(order_id)
        ensure_transition(order.order_status, status, is_critical)

        if not message:
            if is_critical:
                message = f"Order status CRITICALLY modified to {status.value} by Admin"
            else:
                message = f"Order marked as {status.value} by Admin"

        if status == OrderStatus.CANCELLED:
            moved = self._cancel(order, message, is_critical)
        else:
            moved = self._transition(
                order,
                {"order_status": status, "updated_at": datetime.utcnow()},
                order_status=order.order_status
            )
            if moved:
                order.add_history(status, message, is_critical)
                self.session.add(order)
        if not moved:
            raise HTTPException(status_code=409, detail="Order was updated in the meantime. Please try again.")

        self.session.commit()
        self.session.refresh(order)
        logger.info("Order %s moved to %s (critical=%s)", order.order_number, status.value, is_critical)

        if status == OrderStatus.SHIPPED:
            self._notify(order, send_shipping_notification_email)
        elif status == OrderStatus.DELIVERED:
            self._notify(order, send_delivery_email)
        elif status == OrderStatus.CANCELLED:
            self._notify(order, send_order_cancellation_email, message)
        return order

    def confirm_manual_payment(self, order_id: int, admin: User, upi_transaction_id: Optional[str] = None,
                               payment_screenshot: Optional[str] = None) -> Order:
        order = self.get_order(order_id)
        if order.order_status != OrderStatus.PAYMENT_PENDING or order.payment_status not in UNPAID_STATUSES:
            raise HTTPException(status_code=400, detail="Only orders awaiting payment can be confirmed")

        transaction_id = upi_transaction_id or f"manual_{order.order_number}"
        if self.session.exec(select(Transaction).where(Transaction.transaction_id == transaction_id)).first():
            raise HTTPException(status_code=409, detail="This transaction ID has already been recorded")

        admin_name = admin.name or admin.email
        message = f"Manual payment confirmed by Admin ({admin_name})."
        if upi_transaction_id:
            message += f" Trans ID: {upi_transaction_id}"

        if not self._confirm_payment(order, transaction_id, TransactionMethod.MANUAL, message):
            raise HTTPException(status_code=409, detail="Order was updated in the meantime. Please try again.")
        order.payment_gateway = "manual"
        order.manual_payment_details = {
            "upi_transaction_id": upi_transaction_id,
            "payment_screenshot": payment_screenshot,
            "verified_by": admin_name,
            "verified_at": datetime.utcnow().isoformat(),
        }
        self.session.commit()
        self.session.refresh(order)
        logger.info("Manual payment confirmed for order %s by admin %s", order.order_number, admin.id)
        self._notify(order, send_order_success_email)
        return order
