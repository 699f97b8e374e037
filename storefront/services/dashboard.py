from collections import OrderedDict
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, select

from storefront.models.dashboard import DashboardTarget
from storefront.models.order import Order, PaymentStatus
from storefront.models.user import User, UserRole

class DashboardPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

def _month_start(year: int, month: int) -> datetime:
    # month may run past either end of the year
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1)

def period_ranges(period: DashboardPeriod, now: datetime) -> Tuple[datetime, datetime, datetime]:
    """(current_start, previous_start, previous_end) for a calendar period; weeks start on Sunday"""
    if period == DashboardPeriod.WEEKLY:
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        current_start = today - timedelta(days=(now.weekday() + 1) % 7)
        previous_start = current_start - timedelta(days=7)
    elif period == DashboardPeriod.MONTHLY:
        current_start = _month_start(now.year, now.month)
        previous_start = _month_start(now.year, now.month - 1)
    elif period == DashboardPeriod.QUARTERLY:
        quarter_month = (now.month - 1) // 3 * 3 + 1
        current_start = _month_start(now.year, quarter_month)
        previous_start = _month_start(now.year, quarter_month - 3)
    else:
        current_start = datetime(now.year, 1, 1)
        previous_start = datetime(now.year - 1, 1, 1)
    return current_start, previous_start, current_start - timedelta(microseconds=1)

def growth(current: int, previous: int) -> float:
    if previous > 0:
        value = (current - previous) / previous * 100
    elif current > 0:
        value = 100.0
    else:
        value = 0.0
    return round(value, 2)

def bucket_label(moment: datetime, by_day: bool) -> str:
    return moment.strftime("%d %b") if by_day else moment.strftime("%b %Y")

class DashboardService:
    def __init__(self, session: Session):
        self.session = session

    def customer_count(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        query = select(func.count(User.id)).where(User.role != UserRole.ADMIN, User.is_verified == True)  # noqa: E712
        if start:
            query = query.where(User.created_at >= start)
        if end:
            query = query.where(User.created_at <= end)
        return self.session.scalar(query) or 0

    def order_count(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        query = select(func.count(Order.id))
        if start:
            query = query.where(Order.created_at >= start)
        if end:
            query = query.where(Order.created_at <= end)
        return self.session.scalar(query) or 0

    def stats(self, customer_period: DashboardPeriod, order_period: DashboardPeriod,
              now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()

        current_start, previous_start, previous_end = period_ranges(customer_period, now)
        customer_growth = growth(
            self.customer_count(current_start, now),
            self.customer_count(previous_start, previous_end)
        )

        current_start, previous_start, previous_end = period_ranges(order_period, now)
        order_growth = growth(
            self.order_count(current_start, now),
            self.order_count(previous_start, previous_end)
        )

        return {
            "customer_stats": {
                "total_customers": self.customer_count(),
                "growth_percentage": customer_growth,
                "is_growth_positive": customer_growth >= 0,
            },
            "order_stats": {
                "total_orders": self.order_count(),
                "growth_percentage": order_growth,
                "is_growth_positive": order_growth >= 0,
            },
        }

    # Monthly target

    def _revenue(self, start: datetime, end: datetime) -> float:
        total = self.session.scalar(
            select(func.sum(Order.final_amount)).where(
                Order.payment_status == PaymentStatus.COMPLETED,
                Order.created_at >= start,
                Order.created_at <= end
            )
        )
        return round(total or 0, 2)

    def target(self, month: int, year: int) -> dict:
        row = self.session.exec(
            select(DashboardTarget).where(DashboardTarget.month == month, DashboardTarget.year == year)
        ).first()
        monthly_target = row.monthly_target if row else 0
        start = _month_start(year, month)
        revenue = self._revenue(start, _month_start(year, month + 1) - timedelta(microseconds=1))
        progress = round(revenue / monthly_target * 100, 2) if monthly_target > 0 else 0
        return {
            "month": month,
            "year": year,
            "monthly_target": monthly_target,
            "current_revenue": revenue,
            "progress_percentage": progress,
        }

    def set_target(self, month: int, year: int, monthly_target: float) -> dict:
        row = self.session.exec(
            select(DashboardTarget).where(DashboardTarget.month == month, DashboardTarget.year == year)
        ).first()
        if row:
            row.monthly_target = monthly_target
            row.updated_at = datetime.utcnow()
        else:
            row = DashboardTarget(month=month, year=year, monthly_target=monthly_target)
        self.session.add(row)
        self.session.commit()
        return self.target(month, year)

    # Charts

    def _orders_between(self, start: datetime, end: datetime) -> List[Order]:
        return self.session.exec(
            select(Order)
            .where(Order.created_at >= start, Order.created_at <= end)
            .order_by(Order.created_at)
        ).all()

    @staticmethod
    def _by_day(start: datetime, end: datetime) -> bool:
        return (end - start).days <= 31

    def sales(self, start: datetime, end: datetime) -> List[dict]:
        """Completed sales and order counts per day, or per month for spans over 31 days"""
        by_day = self._by_day(start, end)
        buckets: Dict[str, dict] = OrderedDict()
        for order in self._orders_between(start, end):
            label = bucket_label(order.created_at, by_day)
            bucket = buckets.setdefault(label, {"label": label, "total_sales": 0.0, "order_count": 0})
            bucket["order_count"] += 1
            if order.payment_status == PaymentStatus.COMPLETED:
                bucket["total_sales"] = round(bucket["total_sales"] + order.final_amount, 2)
        return list(buckets.values())

    def customer_performance(self, start: datetime, end: datetime) -> List[dict]:
        """New vs returning paying customers per bucket, by each user's first paid order"""
        by_day = self._by_day(start, end)
        paid = self.session.exec(
            select(Order.user_id, Order.created_at)
            .where(Order.payment_status == PaymentStatus.COMPLETED, Order.created_at <= end)
            .order_by(Order.created_at)
        ).all()

        seen = set()
        buckets: Dict[str, dict] = OrderedDict()
        for user_id, created_at in paid:
            first = user_id not in seen
            seen.add(user_id)
            if created_at < start:
                continue
            label = bucket_label(created_at, by_day)
            bucket = buckets.setdefault(label, {"label": label, "acquisition": 0, "retention": 0})
            bucket["acquisition" if first else "retention"] += 1
        return list(buckets.values())
