import logging
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import asc, desc, func, or_
from sqlmodel import Session, select

from storefront.models.address import Address
from storefront.models.coupon import Coupon, CouponUsage
from storefront.models.order import Order, PaymentStatus
from storefront.models.user import User, UserRole
from storefront.services.cart import CartService
from storefront.services.catalog import paginate
from storefront.services.coupon import CouponService
from storefront.services.order import serialize_order

logger = logging.getLogger(__name__)

CUSTOMER_SORTS = {
    "newest": desc(User.created_at),
    "oldest": asc(User.created_at),
    "name": asc(User.name),
}

class CustomerService:
    """Admin view over shopper accounts"""

    def __init__(self, session: Session):
        self.session = session

    def _summary(self, user: User) -> dict:
        orders = self.session.scalar(select(func.count(Order.id)).where(Order.user_id == user.id)) or 0
        return {**user.to_public(), "isActive": user.is_active, "totalOrders": orders}

    def list_customers(self, page: int, limit: int, search: Optional[str] = None,
                       status: Optional[str] = None, sort: Optional[str] = None) -> dict:
        query = select(User).where(User.role == UserRole.USER)
        if search:
            query = query.where(
                or_(
                    User.name.ilike(f"%{search}%"),
                    User.email.ilike(f"%{search}%"),
                    User.phone.ilike(f"%{search}%")
                )
            )
        if status:
            query = query.where(User.is_active == (status == "active"))
        order_by = CUSTOMER_SORTS.get(sort or "newest", CUSTOMER_SORTS["newest"])
        users, meta = paginate(self.session, query, User.id, page, limit, order_by)
        return {"customers": [self._summary(u) for u in users], **meta}

    def get_customer(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    def _used_coupons(self, user_id: int) -> List[dict]:
        rows = self.session.exec(
            select(CouponUsage, Coupon.code)
            .join(Coupon, Coupon.id == CouponUsage.coupon_id)
            .where(CouponUsage.user_id == user_id)
            .order_by(desc(CouponUsage.used_at))
        ).all()
        return [
            {"code": code, "discount_amount": usage.discount_applied, "order_id": usage.order_id, "date": usage.used_at}
            for usage, code in rows
        ]

    def _stats(self, user_id: int) -> dict:
        total_orders, last_order = self.session.exec(
            select(func.count(Order.id), func.max(Order.created_at)).where(Order.user_id == user_id)
        ).one()
        paid_orders, total_spent = self.session.exec(
            select(func.count(Order.id), func.sum(Order.final_amount))
            .where(Order.user_id == user_id, Order.payment_status == PaymentStatus.COMPLETED)
        ).one()
        total_spent = round(total_spent or 0, 2)
        return {
            "total_orders": total_orders or 0,
            "total_spent": total_spent,
            "avg_order_value": round(total_spent / paid_orders, 2) if paid_orders else 0,
            "last_order_date": last_order,
        }

    def customer_detail(self, user_id: int) -> dict:
        user = self.get_customer(user_id)
        orders = self.session.exec(
            select(Order).where(Order.user_id == user.id).order_by(desc(Order.created_at), desc(Order.id))
        ).all()
        addresses = self.session.exec(select(Address).where(Address.user_id == user.id)).all()
        return {
            "user": {**user.to_public(), "isActive": user.is_active},
            "orders": [serialize_order(o) for o in orders],
            "addresses": addresses,
            "cart": CartService(self.session).get_cart(user.id),
            "coupons": {
                "available": CouponService(self.session).my_coupons(user)["active"],
                "used": self._used_coupons(user.id),
            },
            "stats": self._stats(user.id),
        }

    def customer_orders(self, user_id: int, page: int, limit: int) -> Tuple[List[Order], dict]:
        user = self.get_customer(user_id)
        query = select(Order).where(Order.user_id == user.id)
        return paginate(self.session, query, Order.id, page, limit, desc(Order.created_at))

    def set_banned(self, user_id: int, banned: bool) -> User:
        user = self.get_customer(user_id)
        if user.role == UserRole.ADMIN:
            raise HTTPException(status_code=403, detail="Cannot ban an admin")
        user.is_active = not banned
        if banned:
            # Signs the user out everywhere
            user.token_version += 1
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info("User %s %s", user.id, "banned" if banned else "unbanned")
        return user
