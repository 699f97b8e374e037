from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.routers.auth import get_current_user
from storefront.services.address import AddressService

router = APIRouter()

class AddressCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=2)
    email: str
    phone_number: str = Field(alias="phoneNumber", pattern=r"^\+?\d{10,13}$")
    street: str
    city: str
    state: str
    postal_code: str = Field(alias="postalCode", pattern=r"^\d{6}$")
    country: str = "India"
    type: str = "Home"
    is_primary: bool = Field(default=False, alias="isPrimary")

class AddressUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", pattern=r"^\+?\d{10,13}$")
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode", pattern=r"^\d{6}$")
    country: Optional[str] = None
    type: Optional[str] = None
    is_primary: Optional[bool] = Field(default=None, alias="isPrimary")

def get_address_service(session: Session = Depends(get_session)) -> AddressService:
    return AddressService(session)

@router.get("")
def list_addresses(current_user: User = Depends(get_current_user), service: AddressService = Depends(get_address_service)):
    return ok(service.list_addresses(current_user.id))

@router.post("")
def add_address(
    data: AddressCreate,
    current_user: User = Depends(get_current_user),
    service: AddressService = Depends(get_address_service)
):
    return ok(service.add_address(current_user.id, data.model_dump()), "Address added")

@router.get("/{address_id}")
def get_address(address_id: int, current_user: User = Depends(get_current_user),
                service: AddressService = Depends(get_address_service)):
    return ok(service.get_address(current_user.id, address_id))

@router.put("/{address_id}")
def update_address(
    address_id: int,
    data: AddressUpdate,
    current_user: User = Depends(get_current_user),
    service: AddressService = Depends(get_address_service)
):
    return ok(service.update_address(current_user.id, address_id, data.model_dump(exclude_unset=True)), "Address updated")

@router.patch("/{address_id}/primary")
def set_primary_address(address_id: int, current_user: User = Depends(get_current_user),
                        service: AddressService = Depends(get_address_service)):
    return ok(service.set_primary(current_user.id, address_id))

@router.delete("/{address_id}")
def delete_address(address_id: int, current_user: User = Depends(get_current_user),
                   service: AddressService = Depends(get_address_service)):
    service.delete_address(current_user.id, address_id)
    return ok(message="Address deleted")
