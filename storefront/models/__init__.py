# Import all models to register them with SQLModel
from storefront.models.user import User, UserRole
from storefront.models.address import Address
from storefront.models.product import Product, ProductVariant
from storefront.models.cart import CartItem
from storefront.models.wishlist import WishlistItem
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.coupon import Coupon, CouponUsage, CouponType, DiscountType
from storefront.models.transaction import Transaction, TransactionType, TransactionStatus, TransactionMethod
from storefront.models.dashboard import DashboardTarget
from storefront.models.settings import DeliverySettings, OrderSettings
from storefront.models.category import Category
from storefront.models.review import Review
from storefront.models.promotion import FlashSale, FeaturedProducts

__all__ = [
    "User",
    "UserRole",
    "Address",
    "Product",
    "ProductVariant",
    "CartItem",
    "WishlistItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Coupon",
    "CouponUsage",
    "CouponType",
    "DiscountType",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "TransactionMethod",
    "DashboardTarget",
    "DeliverySettings",
    "OrderSettings",
    "Category",
    "Review",
    "FlashSale",
    "FeaturedProducts",
]
