from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from storefront.core.config import settings

AUTH_LIMIT_MESSAGE = "Too many attempts, please try again after 15 minutes"
OTP_LIMIT_MESSAGE = "Too many OTP requests, please try again later"

# Fixed-window counters keyed by client IP
limiter = Limiter(
    key_func=get_remote_address,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)

# Each scope is one counter shared by every endpoint it decorates
auth_limit = limiter.shared_limit(settings.AUTH_RATE_LIMIT, scope="auth", error_message=AUTH_LIMIT_MESSAGE)
otp_limit = limiter.shared_limit(settings.OTP_RATE_LIMIT, scope="otp", error_message=OTP_LIMIT_MESSAGE)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"success": False, "error": exc.detail})
