import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from sqlmodel import Session

from storefront.core.config import settings
from storefront.core.errors import register_exception_handlers
from storefront.core.logging import configure_logging
from storefront.core.rate_limit import limiter, rate_limit_exceeded_handler
from storefront.db.session import create_db_and_tables, engine
from storefront.services.order import OrderService
from storefront.services.payment_gateway import get_payment_gateway

logger = logging.getLogger(__name__)

def expire_stale_orders() -> int:
    with Session(engine) as session:
        return OrderService(session, get_payment_gateway()).expire_stale_orders()

async def order_expiry_loop(interval: int):
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(expire_stale_orders)
        except Exception:
            logger.exception("Order expiry sweep failed")

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    create_db_and_tables()
    sweeper = None
    if settings.ORDER_EXPIRY_SWEEP_SECONDS > 0:
        sweeper = asyncio.create_task(order_expiry_loop(settings.ORDER_EXPIRY_SWEEP_SECONDS))
    logger.info("%s started", settings.PROJECT_NAME)
    yield
    if sweeper:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
    description="API for the Sking skincare storefront"
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)

@app.get("/")
def read_root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}. Visit /docs for Swagger UI."}

from storefront.routers import (  # noqa: E402
    addresses, admin, auth, cart, checkout, coupons, home, orders, payment, products, reviews, wishlist
)

app.include_router(auth.router, prefix="/api/users/auth", tags=["auth"])
app.include_router(products.router, prefix="/api/users/products", tags=["products"])
app.include_router(cart.router, prefix="/api/users/cart", tags=["cart"])
app.include_router(wishlist.router, prefix="/api/users/wishlist", tags=["wishlist"])
app.include_router(addresses.router, prefix="/api/users/addresses", tags=["addresses"])
app.include_router(checkout.router, prefix="/api/users/checkout", tags=["checkout"])
app.include_router(orders.router, prefix="/api/users/orders", tags=["orders"])
app.include_router(coupons.router, prefix="/api/users/coupons", tags=["coupons"])
app.include_router(reviews.router, prefix="/api/users/reviews", tags=["reviews"])
app.include_router(home.router, prefix="/api/users", tags=["home"])
app.include_router(payment.router, prefix="/api/payments", tags=["payment"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
