from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.services.catalog import CatalogService, serialize_product

router = APIRouter()

def get_catalog_service(session: Session = Depends(get_session)) -> CatalogService:
    return CatalogService(session)

@router.get("")
def read_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[int] = None,
    service: CatalogService = Depends(get_catalog_service)
):
    return ok(service.list_products(page, limit, search, category))

@router.get("/{id_or_slug}")
def read_product(id_or_slug: str, service: CatalogService = Depends(get_catalog_service)):
    return ok(serialize_product(service.get_product(id_or_slug)))
