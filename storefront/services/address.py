from datetime import datetime
from typing import List

from fastapi import HTTPException
from sqlalchemy import update
from sqlmodel import Session, select

from storefront.models.address import Address

MAX_ADDRESSES = 5

class AddressService:
    def __init__(self, session: Session):
        self.session = session

    def list_addresses(self, user_id: int) -> List[Address]:
        return self.session.exec(
            select(Address).where(Address.user_id == user_id).order_by(Address.is_primary.desc(), Address.id)
        ).all()

    def get_address(self, user_id: int, address_id: int) -> Address:
        address = self.session.get(Address, address_id)
        if not address or address.user_id != user_id:
            raise HTTPException(status_code=404, detail="Address not found")
        return address

    def _reset_primary(self, user_id: int) -> None:
        self.session.exec(update(Address).where(Address.user_id == user_id).values(is_primary=False))

    def add_address(self, user_id: int, data: dict) -> Address:
        count = len(self.list_addresses(user_id))
        if count >= MAX_ADDRESSES:
            raise HTTPException(
                status_code=400,
                detail=f"Maximum {MAX_ADDRESSES} addresses allowed per user. Please delete an address to add a new one."
            )

        address = Address(user_id=user_id, **data)
        if address.is_primary:
            self._reset_primary(user_id)
        elif count == 0:
            address.is_primary = True

        self.session.add(address)
        self.session.commit()
        self.session.refresh(address)
        return address

    def update_address(self, user_id: int, address_id: int, data: dict) -> Address:
        address = self.get_address(user_id, address_id)
        if data.get("is_primary"):
            self._reset_primary(user_id)
        for key, value in data.items():
            setattr(address, key, value)
        address.updated_at = datetime.utcnow()
        self.session.add(address)
        self.session.commit()
        self.session.refresh(address)
        return address

    def set_primary(self, user_id: int, address_id: int) -> Address:
        return self.update_address(user_id, address_id, {"is_primary": True})

    def delete_address(self, user_id: int, address_id: int) -> None:
        address = self.get_address(user_id, address_id)
        was_primary = address.is_primary
        self.session.delete(address)
        self.session.commit()

        if was_primary:
            remaining = self.list_addresses(user_id)
            if remaining:
                remaining[0].is_primary = True
                self.session.add(remaining[0])
                self.session.commit()
