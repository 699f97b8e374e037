import json
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from sqlmodel import select

from conftest import WEBHOOK_SECRET, add_to_cart, make_user, auth_headers, place_order, sign
from storefront.models.order import Order, OrderStatus
from storefront.models.product import Product, ProductVariant
from storefront.models.transaction import Transaction, TransactionStatus, TransactionType
from storefront.services.order import OrderService
from storefront.services.order_state import allowed_transitions, ensure_transition


@pytest.fixture(name="online_order")
def online_order_fixture(client, user_headers, product, address):
    add_to_cart(client, user_headers, product.id, "30ml", 2)
    return place_order(client, user_headers, address.id).json()["data"]["order"]


def verify(client, headers, gateway_order_id, payment_id="pay_test_1", signature=None):
    return client.post("/api/users/orders/verify-payment", headers=headers, json={
        "razorpay_order_id": gateway_order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature or sign(f"{gateway_order_id}|{payment_id}"),
    })


def variant_30ml(session):
    session.expire_all()
    return session.exec(select(ProductVariant).where(ProductVariant.size == "30ml")).one()


def pay(client, headers, order):
    response = verify(client, headers, order["gateway_order_id"])
    assert response.status_code == 200
    return response.json()["data"]


def set_status(client, headers, order_id, status, **extra):
    return client.patch(f"/api/admin/orders/{order_id}/status", headers=headers, json={"status": status, **extra})


# Payment verification

def test_verify_payment(client, session, user_headers, online_order):
    data = pay(client, user_headers, online_order)
    assert data["payment_status"] == "completed"
    assert data["order_status"] == "processing"
    assert data["gateway_payment_id"] == "pay_test_1"
    assert data["status_history"][-1]["message"] == "Payment verified successfully"

    variant = variant_30ml(session)
    assert (variant.stock, variant.reserved_stock) == (18, 0)
    assert session.exec(select(Product)).one().sold_count == 2

    credit = session.exec(select(Transaction)).one()
    assert (credit.type, credit.status, credit.amount) == (TransactionType.CREDIT, TransactionStatus.COMPLETED, 1049.0)
    assert credit.transaction_id == "pay_test_1"


def test_verify_payment_is_idempotent(client, session, user_headers, online_order):
    pay(client, user_headers, online_order)
    again = verify(client, user_headers, online_order["gateway_order_id"])
    assert again.status_code == 200
    assert again.json()["data"]["payment_status"] == "completed"

    assert len(session.exec(select(Transaction)).all()) == 1
    assert variant_30ml(session).stock == 18


def test_bad_signature_marks_payment_failed(client, session, user_headers, online_order):
    response = verify(client, user_headers, online_order["gateway_order_id"], signature="forged")
    assert response.status_code == 400
    assert response.json()["error"] == "Payment verification failed"

    order = session.get(Order, online_order["id"])
    session.refresh(order)
    assert order.payment_status == "failed"
    assert order.order_status == OrderStatus.PAYMENT_PENDING
    assert variant_30ml(session).reserved_stock == 2


def test_other_users_cannot_verify(client, session, online_order):
    stranger = auth_headers(session, make_user(session, "stranger@example.com"))
    assert verify(client, stranger, online_order["gateway_order_id"]).status_code == 404


def test_late_payment_on_cancelled_order_is_refunded(client, session, gateway, user_headers, online_order):
    client.post(f"/api/users/orders/cancel-order/{online_order['id']}", headers=user_headers)

    response = verify(client, user_headers, online_order["gateway_order_id"], payment_id="pay_late")
    assert response.status_code == 400
    assert "refunded" in response.json()["error"]
    assert gateway.refunds[0]["payment_id"] == "pay_late"

    order = session.get(Order, online_order["id"])
    session.refresh(order)
    assert order.payment_status == "refunded"
    assert order.order_status == OrderStatus.CANCELLED


# Retry

def test_retry_payment_issues_new_gateway_order(client, session, user_headers, online_order):
    verify(client, user_headers, online_order["gateway_order_id"], signature="forged")

    response = client.post(f"/api/users/orders/retry-payment/{online_order['id']}", headers=user_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["payment"]["gateway_order_id"] == "order_test_2"
    assert data["order"]["payment_status"] == "pending"
    # The window is not extended
    assert data["order"]["payment_expires_at"] == online_order["payment_expires_at"]

    assert pay(client, user_headers, data["order"])["order_status"] == "processing"


def test_retry_after_window_cancels(client, session, user_headers, online_order):
    order = session.get(Order, online_order["id"])
    order.payment_expires_at = datetime.utcnow() - timedelta(seconds=1)
    session.add(order)
    session.commit()

    response = client.post(f"/api/users/orders/retry-payment/{online_order['id']}", headers=user_headers)
    assert response.status_code == 400
    assert "expired" in response.json()["error"]

    session.refresh(order)
    assert order.order_status == OrderStatus.CANCELLED
    assert order.payment_status == "cancelled"
    assert variant_30ml(session).reserved_stock == 0


def test_retry_on_paid_order(client, user_headers, online_order):
    pay(client, user_headers, online_order)
    response = client.post(f"/api/users/orders/retry-payment/{online_order['id']}", headers=user_headers)
    assert response.status_code == 400


# Cancellation

def test_cancel_unpaid_releases_reservation(client, session, gateway, user_headers, online_order):
    response = client.post(f"/api/users/orders/cancel-order/{online_order['id']}", headers=user_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["order_status"] == "cancelled"
    assert data["payment_status"] == "cancelled"
    assert data["cancelled_at"] is not None

    assert variant_30ml(session).reserved_stock == 0
    assert gateway.refunds == []


def test_cancel_paid_order_refunds(client, session, gateway, user_headers, online_order):
    pay(client, user_headers, online_order)

    data = client.post(f"/api/users/orders/cancel-order/{online_order['id']}", headers=user_headers).json()["data"]
    assert data["payment_status"] == "refunded"
    assert gateway.refunds == [{"id": "rfnd_test_1", "payment_id": "pay_test_1", "amount": 104900}]

    variant = variant_30ml(session)
    assert (variant.stock, variant.reserved_stock) == (20, 0)
    assert session.exec(select(Product)).one().sold_count == 0

    ledger = {t.type: t for t in session.exec(select(Transaction)).all()}
    assert ledger[TransactionType.CREDIT].status == TransactionStatus.REFUNDED
    assert ledger[TransactionType.DEBIT].transaction_id == "rfnd_test_1"


def test_refund_without_gateway_id_uses_order_number(client, session, gateway, monkeypatch, user_headers,
                                                   online_order):
    pay(client, user_headers, online_order)
    monkeypatch.setattr(gateway, "refund", lambda payment_id, amount: {})

    client.post(f"/api/users/orders/cancel-order/{online_order['id']}", headers=user_headers)
    debit = session.exec(select(Transaction).where(Transaction.type == TransactionType.DEBIT)).one()
    assert debit.transaction_id == "refund_SK000001"


def test_cannot_cancel_shipped_order(client, admin_headers, user_headers, online_order):
    pay(client, user_headers, online_order)
    set_status(client, admin_headers, online_order["id"], "shipped")

    response = client.post(f"/api/users/orders/cancel-order/{online_order['id']}", headers=user_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Order cannot be cancelled once it is shipped"


def test_expire_stale_orders(session, gateway, client, user_headers, online_order, product, address):
    add_to_cart(client, user_headers, product.id, "50ml", 1)
    fresh = place_order(client, user_headers, address.id).json()["data"]["order"]

    stale = session.get(Order, online_order["id"])
    stale.payment_expires_at = datetime.utcnow() - timedelta(minutes=1)
    session.add(stale)
    session.commit()

    assert OrderService(session, gateway).expire_stale_orders() == 1
    assert session.get(Order, online_order["id"]).order_status == OrderStatus.CANCELLED
    assert session.get(Order, fresh["id"]).order_status == OrderStatus.PAYMENT_PENDING
    assert OrderService(session, gateway).expire_stale_orders() == 0


# Listing

def test_user_order_listing(client, session, user_headers, online_order):
    orders = client.get("/api/users/orders", headers=user_headers).json()["data"]
    assert [o["id"] for o in orders] == [online_order["id"]]

    detail = client.get(f"/api/users/orders/{online_order['id']}", headers=user_headers)
    assert detail.json()["data"]["order_number"] == "SK000001"

    stranger = auth_headers(session, make_user(session, "stranger@example.com"))
    assert client.get(f"/api/users/orders/{online_order['id']}", headers=stranger).status_code == 404


def test_admin_order_listing(client, admin_headers, online_order):
    data = client.get("/api/admin/orders", params={"search": "asha"}, headers=admin_headers).json()["data"]
    assert data["total"] == 1

    data = client.get("/api/admin/orders", params={"status": "shipped"}, headers=admin_headers).json()["data"]
    assert data["total"] == 0

    detail = client.get(f"/api/admin/orders/{online_order['id']}", headers=admin_headers).json()["data"]
    assert detail["customer"]["email"] == "asha@example.com"


# Admin status changes

def test_normal_fulfilment_flow(client, admin_headers, user_headers, online_order):
    pay(client, user_headers, online_order)

    shipped = set_status(client, admin_headers, online_order["id"], "shipped")
    assert shipped.status_code == 200
    assert shipped.json()["data"]["status_history"][-1]["message"] == "Order marked as shipped by Admin"

    delivered = set_status(client, admin_headers, online_order["id"], "delivered").json()["data"]
    assert delivered["order_status"] == "delivered"


def test_pending_order_cannot_be_advanced_by_admin(client, admin_headers, online_order):
    response = set_status(client, admin_headers, online_order["id"], "processing", isCritical=True)
    assert response.status_code == 400


def test_skipping_a_step_needs_critical_override(client, admin_headers, user_headers, online_order):
    pay(client, user_headers, online_order)

    response = set_status(client, admin_headers, online_order["id"], "delivered")
    assert response.status_code == 400
    assert response.json()["error"] == (
        "Cannot change order status from processing to delivered without a critical override"
    )

    response = set_status(client, admin_headers, online_order["id"], "delivered", isCritical=True)
    entry = response.json()["data"]["status_history"][-1]
    assert entry["is_critical"] is True
    assert entry["message"] == "Order status CRITICALLY modified to delivered by Admin"


def test_same_status_is_rejected(client, admin_headers, user_headers, online_order):
    pay(client, user_headers, online_order)
    response = set_status(client, admin_headers, online_order["id"], "processing", isCritical=True)
    assert response.json()["error"] == "Order is already processing"


def test_admin_cancel_of_delivered_order_refunds(client, session, gateway, admin_headers, user_headers, online_order):
    pay(client, user_headers, online_order)
    set_status(client, admin_headers, online_order["id"], "shipped")
    set_status(client, admin_headers, online_order["id"], "delivered")

    assert set_status(client, admin_headers, online_order["id"], "cancelled").status_code == 400
    response = set_status(client, admin_headers, online_order["id"], "cancelled", isCritical=True,
                          message="Returned damaged")
    data = response.json()["data"]
    assert data["payment_status"] == "refunded"
    assert data["status_history"][-1]["message"] == "Returned damaged"
    assert len(gateway.refunds) == 1


@pytest.mark.parametrize("current, target, critical, allowed", [
    (OrderStatus.PAYMENT_PENDING, OrderStatus.CANCELLED, False, True),
    (OrderStatus.PAYMENT_PENDING, OrderStatus.SHIPPED, True, False),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED, False, True),
    (OrderStatus.SHIPPED, OrderStatus.PROCESSING, False, False),
    (OrderStatus.SHIPPED, OrderStatus.PROCESSING, True, True),
    (OrderStatus.DELIVERED, OrderStatus.SHIPPED, True, True),
    (OrderStatus.CANCELLED, OrderStatus.PROCESSING, True, False),
])
def test_transition_table(current, target, critical, allowed):
    assert (target in allowed_transitions(current, critical)) is allowed


def test_nothing_returns_to_payment_pending():
    for status in OrderStatus:
        assert OrderStatus.PAYMENT_PENDING not in allowed_transitions(status, True)
    with pytest.raises(HTTPException):
        ensure_transition(OrderStatus.PROCESSING, OrderStatus.PAYMENT_PENDING, True)


# Manual (UPI) confirmation

def test_manual_payment_for_whatsapp_order(client, session, admin_headers, user_headers, product, address):
    add_to_cart(client, user_headers, product.id, "30ml", 1)
    order = place_order(client, user_headers, address.id, payment_method="whatsapp").json()["data"]["order"]

    response = client.post(f"/api/admin/orders/{order['id']}/confirm-payment", headers=admin_headers,
                           json={"upiTransactionId": "UPI123456", "paymentScreenshot": "https://cdn/s.png"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["order_status"] == "processing"
    assert data["payment_gateway"] == "manual"
    assert data["manual_payment_details"]["verified_by"] == "Ravi"
    assert data["status_history"][-1]["message"] == "Manual payment confirmed by Admin (Ravi). Trans ID: UPI123456"
    assert variant_30ml(session).stock == 19

    add_to_cart(client, user_headers, product.id, "30ml", 1)
    second = place_order(client, user_headers, address.id, payment_method="whatsapp").json()["data"]["order"]
    duplicate = client.post(f"/api/admin/orders/{second['id']}/confirm-payment", headers=admin_headers,
                            json={"upiTransactionId": "UPI123456"})
    assert duplicate.status_code == 409


def test_manual_payment_only_for_unpaid_orders(client, admin_headers, user_headers, online_order):
    pay(client, user_headers, online_order)
    response = client.post(f"/api/admin/orders/{online_order['id']}/confirm-payment", headers=admin_headers, json={})
    assert response.status_code == 400


def test_cancel_manually_paid_order_records_refund(client, session, gateway, admin_headers, user_headers,
                                                   product, address):
    add_to_cart(client, user_headers, product.id, "30ml", 1)
    order = place_order(client, user_headers, address.id, payment_method="whatsapp").json()["data"]["order"]
    client.post(f"/api/admin/orders/{order['id']}/confirm-payment", headers=admin_headers, json={})

    data = set_status(client, admin_headers, order["id"], "cancelled").json()["data"]
    assert data["payment_status"] == "refunded"
    assert gateway.refunds == []
    debit = session.exec(select(Transaction).where(Transaction.type == TransactionType.DEBIT)).one()
    assert debit.transaction_id == "refund_SK000001"


def test_screenshot_upload(client, s3, admin_headers, online_order):
    response = client.post(f"/api/admin/orders/{online_order['id']}/payment-screenshot", headers=admin_headers,
                           files={"file": ("proof.png", b"\x89PNG...", "image/png")})
    assert response.status_code == 200
    assert response.json()["data"]["key"].startswith("payments/")
    assert len(s3.uploads) == 1

    response = client.post(f"/api/admin/orders/{online_order['id']}/payment-screenshot", headers=admin_headers,
                           files={"file": ("proof.txt", b"hello", "text/plain")})
    assert response.status_code == 400


# Webhook

def post_webhook(client, event, secret=WEBHOOK_SECRET):
    body = json.dumps(event)
    return client.post("/api/payments/webhook", content=body,
                       headers={"Content-Type": "application/json", "X-Razorpay-Signature": sign(body, secret)})


def captured(gateway_order_id, payment_id="pay_hook_1"):
    return {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": payment_id, "order_id": gateway_order_id}}},
    }


def test_webhook_confirms_order(client, session, online_order):
    response = post_webhook(client, captured(online_order["gateway_order_id"]))
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

    order = session.get(Order, online_order["id"])
    session.refresh(order)
    assert order.order_status == OrderStatus.PROCESSING
    assert order.gateway_payment_id == "pay_hook_1"

    # Redelivery is harmless
    post_webhook(client, captured(online_order["gateway_order_id"]))
    assert len(session.exec(select(Transaction)).all()) == 1


def test_webhook_payment_failed(client, session, online_order):
    event = {
        "event": "payment.failed",
        "payload": {"payment": {"entity": {"id": "pay_x", "order_id": online_order["gateway_order_id"]}}},
    }
    post_webhook(client, event)
    order = session.get(Order, online_order["id"])
    session.refresh(order)
    assert order.payment_status == "failed"


def test_webhook_rejects_bad_signature(client, online_order):
    response = post_webhook(client, captured(online_order["gateway_order_id"]), secret="wrong")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid signature"


def test_webhook_ignores_unknown_orders(client):
    assert post_webhook(client, captured("order_unknown")).json() == {"status": "ignored"}


def test_webhook_rejects_undecodable_body(client):
    response = client.post("/api/payments/webhook", content=b"\xff\xfe{",
                           headers={"X-Razorpay-Signature": "x"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid signature"


@pytest.mark.parametrize("body", ["[1, 2]", '"payment.captured"', "null"])
def test_webhook_rejects_signed_non_object(client, body):
    response = client.post("/api/payments/webhook", content=body,
                           headers={"X-Razorpay-Signature": sign(body, WEBHOOK_SECRET)})
    assert response.status_code == 400
    assert response.json()["error"] == "Malformed webhook payload"


def test_webhook_tolerates_odd_payload_shapes(client):
    for event in ({"event": "payment.captured", "payload": []},
                  {"event": "payment.captured", "payload": {"payment": "pay_1"}},
                  {"event": "payment.captured", "payload": {"payment": {"entity": None}}}):
        assert post_webhook(client, event).json() == {"status": "ignored"}
