import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import asc, desc, func, or_, update
from sqlmodel import Session, select

from storefront.models.coupon import Coupon, CouponType, CouponUsage, DiscountType
from storefront.models.order import Order, OrderStatus, PaymentStatus
from storefront.models.user import User
from storefront.services.catalog import paginate

logger = logging.getLogger(__name__)

# (product_id, line_total) pairs describing what is being bought
CartLines = Iterable[Tuple[int, float]]

SORTABLE_FIELDS = {"created_at", "code", "end_date", "start_date", "usage_count", "discount_value"}

@dataclass
class CouponResult:
    coupon: Coupon
    discount_amount: float
    eligible_subtotal: float

def calculate_discount(coupon: Coupon, eligible_subtotal: float) -> float:
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = eligible_subtotal * coupon.discount_value / 100
        if coupon.max_discount_amount:
            discount = min(discount, coupon.max_discount_amount)
    else:
        discount = min(coupon.discount_value, eligible_subtotal)
    return round(max(discount, 0), 2)

class CouponService:
    def __init__(self, session: Session):
        self.session = session

    def get_by_code(self, code: str) -> Optional[Coupon]:
        return self.session.exec(select(Coupon).where(Coupon.code == code.strip().upper())).first()

    def is_new_user(self, user_id: int) -> bool:
        placed = self.session.scalar(
            select(func.count(Order.id)).where(
                Order.user_id == user_id,
                Order.order_status != OrderStatus.CANCELLED
            )
        )
        return not placed

    def user_usage_count(self, coupon_id: int, user_id: int) -> int:
        return self.session.scalar(
            select(func.count(CouponUsage.id)).where(
                CouponUsage.coupon_id == coupon_id,
                CouponUsage.user_id == user_id
            )
        ) or 0

    def _audience_allows(self, coupon: Coupon, user: User, is_new_user: bool) -> bool:
        if coupon.coupon_type == CouponType.NEW_USERS:
            return is_new_user
        if coupon.coupon_type == CouponType.SPECIFIC_USERS:
            return user.id in (coupon.specific_users or [])
        if coupon.coupon_type == CouponType.REGISTERED_AFTER:
            return bool(coupon.registered_after) and user.created_at >= coupon.registered_after
        return True

    def validate(self, user: User, code: str, lines: CartLines) -> CouponResult:
        """Check a code against the user and cart; raises 400 with the reason"""
        lines = list(lines)
        coupon = self.get_by_code(code)
        if not coupon:
            raise HTTPException(status_code=400, detail="Invalid coupon code")

        now = datetime.utcnow()
        if not coupon.is_active:
            raise HTTPException(status_code=400, detail="Coupon is inactive")
        if now < coupon.start_date:
            raise HTTPException(status_code=400, detail="Coupon is not active yet")
        if now > coupon.end_date:
            raise HTTPException(status_code=400, detail="Coupon has expired")
        if coupon.is_exhausted:
            raise HTTPException(status_code=400, detail="Coupon usage limit reached")
        if coupon.user_limit and self.user_usage_count(coupon.id, user.id) >= coupon.user_limit:
            raise HTTPException(status_code=400, detail="You have already used this coupon")
        if not self._audience_allows(coupon, user, self.is_new_user(user.id)):
            raise HTTPException(status_code=400, detail="This coupon is not applicable to your account")

        subtotal = round(sum(total for _, total in lines), 2)
        if subtotal < (coupon.min_order_amount or 0):
            raise HTTPException(
                status_code=400,
                detail=f"Minimum order amount of {coupon.min_order_amount:.2f} required"
            )

        eligible = subtotal
        if coupon.coupon_type == CouponType.SPECIFIC_PRODUCTS:
            targets = set(coupon.specific_products or [])
            eligible = round(sum(total for product_id, total in lines if product_id in targets), 2)
            if eligible <= 0:
                raise HTTPException(status_code=400, detail="Coupon is not applicable to the products in your cart")

        return CouponResult(coupon=coupon, discount_amount=calculate_discount(coupon, eligible), eligible_subtotal=eligible)

    def record_usage(self, result: CouponResult, user_id: int, order_id: int) -> None:
        """Claim one use of the coupon; caller commits"""
        claimed = self.session.exec(
            update(Coupon)
            .where(Coupon.id == result.coupon.id)
            .where(or_(Coupon.usage_limit == 0, Coupon.usage_count < Coupon.usage_limit))
            .values(usage_count=Coupon.usage_count + 1)
        )
        if claimed.rowcount != 1:
            raise HTTPException(status_code=400, detail="Coupon usage limit reached")
        self.session.add(CouponUsage(
            coupon_id=result.coupon.id,
            user_id=user_id,
            order_id=order_id,
            discount_applied=result.discount_amount
        ))

    def release_usage(self, order: Order) -> None:
        """Give back the use claimed by a cancelled order; caller commits"""
        if not order.coupon_id:
            return
        usage = self.session.exec(
            select(CouponUsage).where(CouponUsage.order_id == order.id, CouponUsage.coupon_id == order.coupon_id)
        ).first()
        if not usage:
            return
        self.session.delete(usage)
        self.session.exec(
            update(Coupon)
            .where(Coupon.id == order.coupon_id, Coupon.usage_count > 0)
            .values(usage_count=Coupon.usage_count - 1)
        )
        logger.info("Released coupon %s from order %s", order.coupon_id, order.id)

    # User facing

    def my_coupons(self, user: User) -> dict:
        now = datetime.utcnow()
        is_new = self.is_new_user(user.id)
        active, ended = [], []
        for coupon in self.session.exec(select(Coupon).order_by(desc(Coupon.created_at))).all():
            if not self._audience_allows(coupon, user, is_new):
                continue
            used_up = bool(coupon.user_limit) and self.user_usage_count(coupon.id, user.id) >= coupon.user_limit
            if coupon.end_date < now or not coupon.is_active or coupon.is_exhausted or used_up:
                ended.append(coupon)
            else:
                active.append(coupon)
        return {"active": active, "ended": ended}

    # Admin

    def list_coupons(self, page: int, limit: int, search: Optional[str] = None,
                     status: Optional[str] = None, sort: Optional[str] = None) -> dict:
        query = select(Coupon)
        now = datetime.utcnow()
        if search:
            query = query.where(Coupon.code.ilike(f"%{search}%"))
        if status == "active":
            query = query.where(Coupon.is_active == True, Coupon.start_date <= now, Coupon.end_date >= now)  # noqa: E712
        elif status == "ended":
            query = query.where(or_(Coupon.is_active == False, Coupon.end_date < now))  # noqa: E712
        elif status == "upcoming":
            query = query.where(Coupon.is_active == True, Coupon.start_date > now)  # noqa: E712

        order_by = desc(Coupon.created_at)
        if sort:
            field, _, direction = sort.partition(":")
            if field in SORTABLE_FIELDS:
                column = getattr(Coupon, field)
                order_by = desc(column) if direction == "desc" else asc(column)

        coupons, meta = paginate(self.session, query, Coupon.id, page, limit, order_by)
        return {"coupons": coupons, **meta}

    def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = self.session.get(Coupon, coupon_id)
        if not coupon:
            raise HTTPException(status_code=404, detail="Coupon not found")
        return coupon

    def _ensure_unique_code(self, code: str, coupon_id: Optional[int] = None) -> None:
        existing = self.get_by_code(code)
        if existing and existing.id != coupon_id:
            raise HTTPException(status_code=409, detail="Coupon code already exists")

    def create_coupon(self, data: dict) -> Coupon:
        data["code"] = data["code"].upper()
        self._ensure_unique_code(data["code"])
        coupon = Coupon(**data)
        self.session.add(coupon)
        self.session.commit()
        self.session.refresh(coupon)
        logger.info("Coupon %s created", coupon.code)
        return coupon

    def update_coupon(self, coupon_id: int, data: dict) -> Coupon:
        coupon = self.get_coupon(coupon_id)
        if data.get("code"):
            data["code"] = data["code"].upper()
            self._ensure_unique_code(data["code"], coupon.id)
        for key, value in data.items():
            setattr(coupon, key, value)
        if coupon.end_date <= coupon.start_date:
            raise HTTPException(status_code=400, detail="End date must be after start date")
        coupon.updated_at = datetime.utcnow()
        self.session.add(coupon)
        self.session.commit()
        self.session.refresh(coupon)
        return coupon

    def delete_coupon(self, coupon_id: int) -> None:
        coupon = self.get_coupon(coupon_id)
        if self.session.exec(select(CouponUsage).where(CouponUsage.coupon_id == coupon.id)).first():
            # Orders still reference it
            coupon.is_active = False
            coupon.updated_at = datetime.utcnow()
            self.session.add(coupon)
        else:
            self.session.delete(coupon)
        self.session.commit()

    def coupon_stats(self, coupon_id: int) -> dict:
        coupon = self.get_coupon(coupon_id)
        row = self.session.exec(
            select(func.count(Order.id), func.sum(Order.discount_amount), func.sum(Order.final_amount))
            .where(Order.coupon_id == coupon.id, Order.order_status != OrderStatus.CANCELLED)
        ).one()
        paid = self.session.scalar(
            select(func.count(Order.id)).where(
                Order.coupon_id == coupon.id,
                Order.payment_status == PaymentStatus.COMPLETED
            )
        ) or 0
        return {
            "total_orders": row[0] or 0,
            "paid_orders": paid,
            "total_discount": round(row[1] or 0, 2),
            "total_revenue": round(row[2] or 0, 2),
            "usage_count": coupon.usage_count,
            "usage_limit": coupon.usage_limit,
        }

    def coupon_orders(self, coupon_id: int, page: int, limit: int) -> Tuple[List[Order], dict]:
        coupon = self.get_coupon(coupon_id)
        query = select(Order).where(Order.coupon_id == coupon.id)
        return paginate(self.session, query, Order.id, page, limit, desc(Order.created_at))
