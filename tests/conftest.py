import hashlib
import hmac
import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import storefront.models  # noqa: F401
from storefront.core.rate_limit import limiter
from storefront.db.session import get_session
from storefront.main import app
from storefront.models.address import Address
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.product import Product, ProductVariant
from storefront.models.user import User, UserRole
from storefront.services.auth import AuthService, pwd_context
from storefront.services.payment_gateway import get_payment_gateway, to_paise
from storefront.services.s3 import get_s3_service

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"
PASSWORD = "password123"


def sign(message: str, secret: str = KEY_SECRET) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


class FakeGateway:
    """Records gateway calls and checks signatures the way Razorpay does"""

    name = "razorpay"
    key_id = "rzp_test_key"

    def __init__(self):
        self._ids = itertools.count(1)
        self.created = []
        self.refunds = []

    def create_order(self, amount, receipt, notes=None):
        order = {"id": f"order_test_{next(self._ids)}", "amount": to_paise(amount), "receipt": receipt, "notes": notes}
        self.created.append(order)
        return order

    def verify_payment_signature(self, gateway_order_id, payment_id, signature):
        return hmac.compare_digest(sign(f"{gateway_order_id}|{payment_id}"), signature)

    def verify_webhook_signature(self, body, signature):
        return hmac.compare_digest(sign(body, WEBHOOK_SECRET), signature)

    def refund(self, payment_id, amount):
        refund = {"id": f"rfnd_test_{len(self.refunds) + 1}", "payment_id": payment_id, "amount": to_paise(amount)}
        self.refunds.append(refund)
        return refund


class FakeS3:
    def __init__(self):
        self.uploads = []

    def upload_file(self, file_content, file_name, folder, content_type="image/jpeg"):
        key = f"{folder}/{len(self.uploads) + 1}-{file_name}"
        self.uploads.append((key, file_content, content_type))
        return key

    def get_public_url(self, s3_key):
        return f"https://bucket.example/{s3_key}"


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="gateway")
def gateway_fixture():
    return FakeGateway()


@pytest.fixture(name="s3")
def s3_fixture():
    return FakeS3()


@pytest.fixture(name="client")
def client_fixture(session, gateway, s3):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_s3_service] = lambda: s3
    limiter.reset()
    # Not used as a context manager so the lifespan (real DB, expiry sweep) stays off
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def make_user(session, email, role=UserRole.USER, password=PASSWORD, **kwargs):
    kwargs.setdefault("name", email.split("@")[0].title())
    kwargs.setdefault("is_verified", True)
    user = User(email=email, password_hash=pwd_context.hash(password), role=role, **kwargs)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers(session, user):
    return {"Authorization": f"Bearer {AuthService(session).create_access_token(user)}"}


def make_product(session, name="Vitamin C Serum", variants=(("30ml", 500.0, 20), ("50ml", 800.0, 3)), **kwargs):
    slug = kwargs.pop("slug", name.lower().replace(" ", "-"))
    product = Product(name=name, slug=slug, price=variants[0][1], **kwargs)
    product.variants = [ProductVariant(size=size, price=price, stock=stock) for size, price, stock in variants]
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


def make_order(session, user, product, order_status=OrderStatus.DELIVERED, payment_status=PaymentStatus.COMPLETED,
               amount=500.0, **kwargs):
    """An order already at the given stage, bypassing checkout"""
    order = Order(
        user_id=user.id,
        total_amount=amount,
        final_amount=amount,
        payment_method=PaymentMethod.ONLINE,
        payment_status=payment_status,
        order_status=order_status,
        **kwargs
    )
    order.items = [OrderItem(product_id=product.id, product_name=product.name, variant_name="30ml", quantity=1, price=amount)]
    session.add(order)
    session.commit()
    order.order_number = f"SK{order.id:06d}"
    session.add(order)
    session.commit()
    session.refresh(order)
    return order


@pytest.fixture(name="user")
def user_fixture(session):
    return make_user(session, "asha@example.com")


@pytest.fixture(name="admin")
def admin_fixture(session):
    return make_user(session, "admin@example.com", role=UserRole.ADMIN, name="Ravi")


@pytest.fixture(name="user_headers")
def user_headers_fixture(session, user):
    return auth_headers(session, user)


@pytest.fixture(name="admin_headers")
def admin_headers_fixture(session, admin):
    return auth_headers(session, admin)


@pytest.fixture(name="product")
def product_fixture(session):
    return make_product(session)


@pytest.fixture(name="address")
def address_fixture(session, user):
    address = Address(
        user_id=user.id,
        name="Asha Menon",
        email=user.email,
        phone_number="9876543210",
        street="12 MG Road",
        city="Kochi",
        state="Kerala",
        postal_code="682001",
        is_primary=True
    )
    session.add(address)
    session.commit()
    session.refresh(address)
    return address


def add_to_cart(client, headers, product_id, variant_name=None, quantity=1):
    body = {"productId": product_id, "quantity": quantity}
    if variant_name:
        body["variantName"] = variant_name
    return client.post("/api/users/cart/add", json=body, headers=headers)


def place_order(client, headers, address_id, payment_method="online", coupon_code=None):
    body = {"addressId": address_id, "paymentMethod": payment_method}
    if coupon_code:
        body["couponCode"] = coupon_code
    return client.post("/api/users/checkout/place-order", json=body, headers=headers)
