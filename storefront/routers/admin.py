from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.coupon import CouponType, DiscountType
from storefront.models.order import OrderStatus
from storefront.models.user import User
from storefront.routers.auth import get_admin_user
from storefront.routers.orders import get_order_service
from storefront.routers.reviews import ReviewIn
from storefront.services.catalog import CatalogService, serialize_product
from storefront.services.category import CategoryService
from storefront.services.coupon import CouponService
from storefront.services.customer import CustomerService
from storefront.services.dashboard import DashboardPeriod, DashboardService
from storefront.services.order import OrderService, serialize_order
from storefront.services.promotion import PromotionService
from storefront.services.review import ReviewService
from storefront.services.s3 import S3Service, get_s3_service
from storefront.services.settings import SettingsService
from storefront.services.transaction import TransactionService

router = APIRouter(dependencies=[Depends(get_admin_user)])

ALLOWED_SCREENSHOT_TYPES = {"image/jpeg", "image/png", "image/webp"}
MAX_SCREENSHOT_BYTES = 5 * 1024 * 1024

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

# Request models

class VariantIn(BaseModel):
    size: str = Field(min_length=1)
    price: float = Field(gt=0)
    stock: int = Field(default=0, ge=0)

class ProductCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=2)
    slug: str = Field(pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    short_description: str = Field(default="", alias="shortDescription")
    description: str = ""
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    price: float = Field(gt=0)
    offer_percentage: float = Field(default=0, ge=0, le=99, alias="offerPercentage")
    images: List[str] = []
    is_active: bool = Field(default=True, alias="isActive")
    variants: List[VariantIn] = Field(min_length=1)

class ProductUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=2)
    slug: Optional[str] = Field(default=None, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    short_description: Optional[str] = Field(default=None, alias="shortDescription")
    description: Optional[str] = None
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    price: Optional[float] = Field(default=None, gt=0)
    offer_percentage: Optional[float] = Field(default=None, ge=0, le=99, alias="offerPercentage")
    images: Optional[List[str]] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    variants: Optional[List[VariantIn]] = None

class StockUpdate(BaseModel):
    stock: int = Field(ge=0)

class StatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: OrderStatus
    is_critical: bool = Field(default=False, alias="isCritical")
    message: Optional[str] = None

class ManualPayment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upi_transaction_id: Optional[str] = Field(default=None, alias="upiTransactionId")
    payment_screenshot: Optional[str] = Field(default=None, alias="paymentScreenshot")

class CouponIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    description: Optional[str] = None
    discount_type: DiscountType = Field(alias="discountType")
    discount_value: float = Field(ge=0, alias="discountValue")
    min_order_amount: float = Field(default=0, ge=0, alias="minOrderAmount")
    max_discount_amount: Optional[float] = Field(default=None, ge=0, alias="maxDiscountAmount")
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    usage_limit: int = Field(default=0, ge=0, alias="usageLimit")
    user_limit: int = Field(default=1, ge=1, alias="userLimit")
    coupon_type: CouponType = Field(default=CouponType.ALL, alias="couponType")
    specific_users: List[int] = Field(default_factory=list, alias="specificUsers")
    specific_products: List[int] = Field(default_factory=list, alias="specificProducts")
    registered_after: Optional[datetime] = Field(default=None, alias="registeredAfter")
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("code")
    @classmethod
    def code_format(cls, value: str) -> str:
        value = value.strip().upper()
        if len(value) < 3:
            raise ValueError("Code must be at least 3 characters")
        if not value.isascii() or not value.isalnum():
            raise ValueError("Code must be uppercase alphanumeric")
        return value

    @field_validator("start_date", "end_date", "registered_after")
    @classmethod
    def store_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)

    @model_validator(mode="after")
    def cross_field_rules(self) -> "CouponIn":
        if self.discount_type == DiscountType.PERCENTAGE:
            if not 0 < self.discount_value < 100:
                raise ValueError("Percentage must be between 1 and 99")
            if self.max_discount_amount and self.min_order_amount \
                    and self.min_order_amount <= self.max_discount_amount:
                raise ValueError("Minimum order must be greater than max discount")
        else:
            if self.discount_value <= 0:
                raise ValueError("Discount value must be greater than 0")
            if self.min_order_amount and self.discount_value >= self.min_order_amount:
                raise ValueError("Discount must be less than minimum order amount")
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.coupon_type == CouponType.REGISTERED_AFTER and not self.registered_after:
            raise ValueError("Registration date is required")
        if self.coupon_type == CouponType.SPECIFIC_USERS and not self.specific_users:
            raise ValueError("Select at least one user")
        if self.coupon_type == CouponType.SPECIFIC_PRODUCTS and not self.specific_products:
            raise ValueError("Select at least one product")
        return self

class TargetUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    monthly_target: float = Field(ge=0, alias="monthlyTarget")

class DeliverySettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delivery_charge: float = Field(ge=0, alias="deliveryCharge")
    free_shipping_threshold: float = Field(ge=0, alias="freeShippingThreshold")

class OrderSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_online_payment_enabled: Optional[bool] = Field(default=None, alias="isOnlinePaymentEnabled")
    is_whatsapp_ordering_enabled: Optional[bool] = Field(default=None, alias="isWhatsappOrderingEnabled")
    whatsapp_number: Optional[str] = Field(default=None, pattern=r"^\+?\d{10,13}$", alias="whatsappNumber")

class CategoryIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=2, max_length=50)
    description: str = ""
    offer: float = Field(default=0, ge=0, le=99)
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()

class CategoryUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = None
    offer: Optional[float] = Field(default=None, ge=0, le=99)
    is_active: Optional[bool] = Field(default=None, alias="isActive")

class AdminReviewIn(ReviewIn):
    user_id: Optional[int] = Field(default=None, alias="userId")

class BlockReview(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    review_id: int = Field(alias="reviewId")
    duration: str = Field(pattern="^(day|week|month|permanent)$")
    reason: Optional[str] = None

class FlashSaleEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    offer_percentage: float = Field(default=0, alias="offerPercentage")

class FlashSaleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    products: List[FlashSaleEntry] = []
    is_active: bool = Field(default=True, alias="isActive")
    duration_hours: int = Field(default=24, ge=1, le=720, alias="durationHours")

class FeaturedUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_ids: List[int] = Field(alias="productIds")

def get_catalog_service(session: Session = Depends(get_session)) -> CatalogService:
    return CatalogService(session)

def get_coupon_service(session: Session = Depends(get_session)) -> CouponService:
    return CouponService(session)

def get_dashboard_service(session: Session = Depends(get_session)) -> DashboardService:
    return DashboardService(session)

def get_transaction_service(session: Session = Depends(get_session)) -> TransactionService:
    return TransactionService(session)

def get_settings_service(session: Session = Depends(get_session)) -> SettingsService:
    return SettingsService(session)

def get_customer_service(session: Session = Depends(get_session)) -> CustomerService:
    return CustomerService(session)

def get_category_service(session: Session = Depends(get_session)) -> CategoryService:
    return CategoryService(session)

def get_review_service(session: Session = Depends(get_session)) -> ReviewService:
    return ReviewService(session)

def get_promotion_service(session: Session = Depends(get_session)) -> PromotionService:
    return PromotionService(session)

# Products

@router.get("/products")
def get_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = None,
    service: CatalogService = Depends(get_catalog_service)
):
    return ok(service.admin_list_products(page, limit, search, status))

@router.get("/products/{product_id}")
def get_product(product_id: int, service: CatalogService = Depends(get_catalog_service)):
    return ok(service.with_applied_offer(service.get_product(str(product_id), include_inactive=True)))

@router.post("/products", status_code=201)
def create_product(data: ProductCreate, service: CatalogService = Depends(get_catalog_service)):
    product = service.create_product(
        data.model_dump(exclude={"variants"}),
        [v.model_dump() for v in data.variants]
    )
    return ok(serialize_product(product), "Product created")

@router.put("/products/{product_id}")
def update_product(product_id: int, data: ProductUpdate, service: CatalogService = Depends(get_catalog_service)):
    fields = data.model_dump(exclude_unset=True, exclude={"variants"})
    variants = [v.model_dump() for v in data.variants] if data.variants is not None else None
    return ok(serialize_product(service.update_product(product_id, fields, variants)), "Product updated")

@router.delete("/products/{product_id}")
def delete_product(product_id: int, service: CatalogService = Depends(get_catalog_service)):
    service.deactivate_product(product_id)
    return ok(message="Product deactivated successfully")

@router.put("/products/{product_id}/variants/{variant_id}/stock")
def update_variant_stock(
    product_id: int,
    variant_id: int,
    data: StockUpdate,
    service: CatalogService = Depends(get_catalog_service)
):
    return ok(service.update_variant_stock(product_id, variant_id, data.stock), "Stock updated")

# Orders

@router.get("/orders")
def get_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    sort: Optional[str] = None,
    service: OrderService = Depends(get_order_service)
):
    return ok(service.admin_list_orders(page, limit, search, status.value if status else None, sort))

@router.get("/orders/{order_id}")
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    order = service.get_order(order_id)
    customer = service.session.get(User, order.user_id)
    return ok({**serialize_order(order), "customer": customer.to_public() if customer else None})

@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: int, data: StatusUpdate, service: OrderService = Depends(get_order_service)):
    order = service.update_status(order_id, data.status, data.is_critical, data.message)
    return ok(serialize_order(order), "Order status updated")

@router.post("/orders/{order_id}/confirm-payment")
def confirm_manual_payment(
    order_id: int,
    data: ManualPayment,
    admin: User = Depends(get_admin_user),
    service: OrderService = Depends(get_order_service)
):
    order = service.confirm_manual_payment(order_id, admin, data.upi_transaction_id, data.payment_screenshot)
    return ok(serialize_order(order), "Payment confirmed")

@router.post("/orders/{order_id}/payment-screenshot")
async def upload_payment_screenshot(
    order_id: int,
    file: UploadFile = File(...),
    service: OrderService = Depends(get_order_service),
    s3: S3Service = Depends(get_s3_service)
):
    """Store a UPI screenshot; pass the returned URL to confirm-payment"""
    service.get_order(order_id)
    if file.content_type not in ALLOWED_SCREENSHOT_TYPES:
        raise HTTPException(status_code=400, detail="Only JPEG, PNG or WEBP images are allowed")
    content = await file.read()
    if len(content) > MAX_SCREENSHOT_BYTES:
        raise HTTPException(status_code=400, detail="Screenshot must be 5MB or smaller")

    key = s3.upload_file(content, file.filename or "screenshot.jpg", folder="payments", content_type=file.content_type)
    if not key:
        raise HTTPException(status_code=502, detail="Failed to upload screenshot")
    return ok({"key": key, "url": s3.get_public_url(key)}, "Screenshot uploaded")

# Coupons

@router.get("/coupons")
def get_coupons(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(active|ended|upcoming)$"),
    sort: Optional[str] = None,
    service: CouponService = Depends(get_coupon_service)
):
    return ok(service.list_coupons(page, limit, search, status, sort))

@router.post("/coupons", status_code=201)
def create_coupon(data: CouponIn, service: CouponService = Depends(get_coupon_service)):
    return ok(service.create_coupon(data.model_dump()), "Coupon created")

@router.get("/coupons/{coupon_id}")
def get_coupon(coupon_id: int, service: CouponService = Depends(get_coupon_service)):
    return ok(service.get_coupon(coupon_id))

def _coupon_field_names(data: dict) -> dict:
    """Accept camelCase or snake_case keys, keyed by field name"""
    by_alias = {field.alias: name for name, field in CouponIn.model_fields.items() if field.alias}
    return {by_alias.get(key, key): value for key, value in data.items() if by_alias.get(key, key) in CouponIn.model_fields}

@router.put("/coupons/{coupon_id}")
def update_coupon(coupon_id: int, data: dict = Body(...), service: CouponService = Depends(get_coupon_service)):
    """Partial update; the merged coupon must still pass the creation rules"""
    coupon = service.get_coupon(coupon_id)
    changes = _coupon_field_names(data)
    current = coupon.model_dump(include=set(CouponIn.model_fields))
    try:
        merged = CouponIn.model_validate({**current, **changes})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail="; ".join(err["msg"].removeprefix("Value error, ") for err in e.errors()))
    return ok(service.update_coupon(coupon_id, merged.model_dump(include=set(changes))), "Coupon updated")

@router.delete("/coupons/{coupon_id}")
def delete_coupon(coupon_id: int, service: CouponService = Depends(get_coupon_service)):
    service.delete_coupon(coupon_id)
    return ok(message="Coupon deleted")

@router.get("/coupons/{coupon_id}/stats")
def get_coupon_stats(coupon_id: int, service: CouponService = Depends(get_coupon_service)):
    return ok(service.coupon_stats(coupon_id))

@router.get("/coupons/{coupon_id}/orders")
def get_coupon_orders(
    coupon_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: CouponService = Depends(get_coupon_service)
):
    orders, meta = service.coupon_orders(coupon_id, page, limit)
    return ok({"orders": [serialize_order(o) for o in orders], **meta})

# Dashboard

@router.get("/dashboard/stats")
def get_dashboard_stats(
    customer_period: DashboardPeriod = Query(DashboardPeriod.MONTHLY, alias="customerPeriod"),
    order_period: DashboardPeriod = Query(DashboardPeriod.MONTHLY, alias="orderPeriod"),
    service: DashboardService = Depends(get_dashboard_service)
):
    return ok(service.stats(customer_period, order_period))

@router.get("/dashboard/target")
def get_dashboard_target(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    service: DashboardService = Depends(get_dashboard_service)
):
    now = datetime.utcnow()
    return ok(service.target(month or now.month, year or now.year))

@router.put("/dashboard/target")
def update_dashboard_target(data: TargetUpdate, service: DashboardService = Depends(get_dashboard_service)):
    return ok(service.set_target(data.month, data.year, data.monthly_target), "Target updated")

def _chart_range(start: Optional[datetime], end: Optional[datetime]):
    end = _naive_utc(end) or datetime.utcnow()
    start = _naive_utc(start) or datetime(end.year, 1, 1)
    if start > end:
        raise HTTPException(status_code=400, detail="Start date must be before end date")
    return start, end

@router.get("/dashboard/sales")
def get_sales(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    service: DashboardService = Depends(get_dashboard_service)
):
    return ok(service.sales(*_chart_range(start, end)))

@router.get("/dashboard/customer-performance")
def get_customer_performance(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    service: DashboardService = Depends(get_dashboard_service)
):
    return ok(service.customer_performance(*_chart_range(start, end)))

# Transactions

@router.get("/transactions")
def get_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(pending|completed|failed|refunded)$"),
    type: Optional[str] = Query(None, pattern="^(credit|debit)$"),
    sort: Optional[str] = None,
    service: TransactionService = Depends(get_transaction_service)
):
    return ok(service.list_transactions(page, limit, search, status, type, sort))

@router.get("/transactions/{transaction_id}")
def get_transaction(transaction_id: int, service: TransactionService = Depends(get_transaction_service)):
    return ok(service.get_transaction(transaction_id))

# Settings

@router.get("/settings/delivery")
def get_delivery_settings(service: SettingsService = Depends(get_settings_service)):
    return ok(service.get_delivery_settings())

@router.put("/settings/delivery")
def update_delivery_settings(data: DeliverySettingsUpdate, service: SettingsService = Depends(get_settings_service)):
    row = service.update_delivery_settings(data.delivery_charge, data.free_shipping_threshold)
    return ok(row, "Delivery settings updated")

@router.get("/settings/orders")
def get_order_settings(service: SettingsService = Depends(get_settings_service)):
    return ok(service.get_order_settings())

@router.put("/settings/orders")
def update_order_settings(data: OrderSettingsUpdate, service: SettingsService = Depends(get_settings_service)):
    return ok(service.update_order_settings(data.model_dump(exclude_none=True)), "Order settings updated")

# Customers

@router.get("/customers")
def get_customers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(active|banned)$"),
    sort: Optional[str] = Query(None, pattern="^(newest|oldest|name)$"),
    service: CustomerService = Depends(get_customer_service)
):
    return ok(service.list_customers(page, limit, search, status, sort))

@router.get("/customers/{user_id}")
def get_customer(user_id: int, service: CustomerService = Depends(get_customer_service)):
    return ok(service.customer_detail(user_id))

@router.get("/customers/{user_id}/orders")
def get_customer_orders(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: CustomerService = Depends(get_customer_service)
):
    orders, meta = service.customer_orders(user_id, page, limit)
    return ok({"orders": [serialize_order(o) for o in orders], **meta})

@router.patch("/customers/{user_id}/ban")
def ban_customer(user_id: int, service: CustomerService = Depends(get_customer_service)):
    user = service.set_banned(user_id, True)
    return ok({**user.to_public(), "isActive": user.is_active}, "User banned")

@router.patch("/customers/{user_id}/unban")
def unban_customer(user_id: int, service: CustomerService = Depends(get_customer_service)):
    user = service.set_banned(user_id, False)
    return ok({**user.to_public(), "isActive": user.is_active}, "User unbanned")

# Categories

@router.get("/categories")
def get_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    service: CategoryService = Depends(get_category_service)
):
    return ok(service.list_categories(page, limit, search))

@router.get("/categories/{category_id}")
def get_category(category_id: int, service: CategoryService = Depends(get_category_service)):
    return ok(service.get_category(category_id))

@router.post("/categories", status_code=201)
def create_category(data: CategoryIn, service: CategoryService = Depends(get_category_service)):
    return ok(service.create_category(data.model_dump()), "Category created")

@router.put("/categories/{category_id}")
def update_category(category_id: int, data: CategoryUpdate, service: CategoryService = Depends(get_category_service)):
    return ok(service.update_category(category_id, data.model_dump(exclude_unset=True)), "Category updated")

@router.delete("/categories/{category_id}")
def delete_category(category_id: int, service: CategoryService = Depends(get_category_service)):
    service.delete_category(category_id)
    return ok(message="Category deleted")

# Reviews

@router.get("/reviews")
def get_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    status: Optional[str] = Query(None, pattern="^(active|blocked|all)$"),
    product_id: Optional[int] = Query(None, alias="productId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    service: ReviewService = Depends(get_review_service)
):
    return ok(service.list_reviews(page, limit, search, sort_by, sort_order, status, product_id, user_id))

@router.get("/reviews/product/{product_id}")
def get_product_reviews(
    product_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: ReviewService = Depends(get_review_service)
):
    return ok(service.list_reviews(page, limit, status="all", product_id=product_id))

@router.get("/reviews/user/{user_id}")
def get_user_reviews(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: ReviewService = Depends(get_review_service)
):
    return ok(service.list_reviews(page, limit, status="all", user_id=user_id))

@router.get("/reviews/{review_id}")
def get_review(review_id: int, service: ReviewService = Depends(get_review_service)):
    return ok(service.serialize(service.get_review(review_id)))

@router.post("/reviews", status_code=201)
def create_review(data: AdminReviewIn, service: ReviewService = Depends(get_review_service)):
    review = service.admin_create_review(
        data.product_id, data.rating, data.comment, data.images, data.user_id, data.order_id
    )
    return ok(service.serialize(review), "Review created")

@router.post("/reviews/block")
def block_review(data: BlockReview, service: ReviewService = Depends(get_review_service)):
    review = service.block_review(data.review_id, data.duration, data.reason)
    return ok(service.serialize(review), "Review blocked")

@router.patch("/reviews/{review_id}/unblock")
def unblock_review(review_id: int, service: ReviewService = Depends(get_review_service)):
    return ok(service.serialize(service.unblock_review(review_id)), "Review unblocked")

@router.patch("/reviews/{review_id}/pin")
def toggle_review_pin(review_id: int, service: ReviewService = Depends(get_review_service)):
    review = service.toggle_pin(review_id)
    return ok(service.serialize(review), "Review pinned" if review.is_pinned else "Review unpinned")

@router.delete("/reviews/{review_id}")
def delete_review(review_id: int, service: ReviewService = Depends(get_review_service)):
    service.delete_review(review_id)
    return ok(message="Review deleted")

# Promotions

@router.get("/flash-sale")
def get_flash_sale(service: PromotionService = Depends(get_promotion_service)):
    return ok(service.get_flash_sale(include_inactive=True))

@router.put("/flash-sale")
def update_flash_sale(data: FlashSaleUpdate, service: PromotionService = Depends(get_promotion_service)):
    sale = service.update_flash_sale(
        [entry.model_dump() for entry in data.products], data.is_active, data.duration_hours
    )
    return ok(sale, "Flash sale updated")

@router.get("/featured-products")
def get_featured_products(service: PromotionService = Depends(get_promotion_service)):
    return ok(service.get_featured(active_only=False))

@router.put("/featured-products")
def update_featured_products(data: FeaturedUpdate, service: PromotionService = Depends(get_promotion_service)):
    return ok(service.update_featured(data.product_ids), "Featured products updated")
