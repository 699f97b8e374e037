from datetime import datetime

from sqlmodel import Session, select

from storefront.core.config import settings
from storefront.models.settings import DeliverySettings, OrderSettings

class SettingsService:
    """Store-wide delivery and ordering switches, one row each"""

    def __init__(self, session: Session):
        self.session = session

    def get_delivery_settings(self) -> DeliverySettings:
        row = self.session.exec(select(DeliverySettings)).first()
        if not row:
            row = DeliverySettings(
                delivery_charge=settings.DEFAULT_DELIVERY_CHARGE,
                free_shipping_threshold=settings.DEFAULT_FREE_SHIPPING_THRESHOLD
            )
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def update_delivery_settings(self, delivery_charge: float, free_shipping_threshold: float) -> DeliverySettings:
        row = self.get_delivery_settings()
        row.delivery_charge = delivery_charge
        row.free_shipping_threshold = free_shipping_threshold
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def get_order_settings(self) -> OrderSettings:
        row = self.session.exec(select(OrderSettings)).first()
        if not row:
            row = OrderSettings(whatsapp_number=settings.DEFAULT_WHATSAPP_NUMBER)
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def update_order_settings(self, data: dict) -> OrderSettings:
        row = self.get_order_settings()
        for key, value in data.items():
            setattr(row, key, value)
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def checkout_settings(self) -> dict:
        delivery = self.get_delivery_settings()
        orders = self.get_order_settings()
        return {
            "delivery_charge": delivery.delivery_charge,
            "free_shipping_threshold": delivery.free_shipping_threshold,
            "is_online_payment_enabled": orders.is_online_payment_enabled,
            "is_whatsapp_ordering_enabled": orders.is_whatsapp_ordering_enabled,
            "whatsapp_number": orders.whatsapp_number,
        }
