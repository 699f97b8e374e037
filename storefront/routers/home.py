from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.core.responses import ok
from storefront.db.session import get_session
from storefront.services.category import CategoryService
from storefront.services.promotion import PromotionService

router = APIRouter()

def get_promotion_service(session: Session = Depends(get_session)) -> PromotionService:
    return PromotionService(session)

@router.get("/home")
def get_home(service: PromotionService = Depends(get_promotion_service)):
    """New arrivals, featured products, the running flash sale and active categories"""
    return ok(service.home_feed())

@router.get("/categories")
def get_categories(session: Session = Depends(get_session)):
    return ok(CategoryService(session).active_categories())

@router.get("/flash-sale")
def get_flash_sale(service: PromotionService = Depends(get_promotion_service)):
    return ok(service.get_flash_sale())

@router.get("/featured-products")
def get_featured_products(service: PromotionService = Depends(get_promotion_service)):
    return ok(service.get_featured())
