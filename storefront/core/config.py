from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    PROJECT_NAME: str = "Sking Storefront API"
    DATABASE_URL: str = "sqlite:///./sking.db"
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:3000"

    # JWT
    JWT_ACCESS_SECRET: str = "access_secret_change_me_in_production"
    JWT_REFRESH_SECRET: str = "refresh_secret_change_me_in_production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    OTP_EXPIRE_MINUTES: int = 10

    # Rate limiting (fixed windows per client IP)
    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT: str = "10/15minutes"
    OTP_RATE_LIMIT: str = "5/hour"

    # Razorpay
    RAZORPAY_KEY_ID: str = "rzp_test_placeholder"
    RAZORPAY_KEY_SECRET: str = "rzp_secret_placeholder"
    RAZORPAY_WEBHOOK_SECRET: str = "webhook_secret"
    CURRENCY: str = "INR"

    # Checkout
    PAYMENT_WINDOW_MINUTES: int = 15
    ORDER_EXPIRY_SWEEP_SECONDS: int = 60  # 0 disables the background sweep
    CART_MAX_LINES: int = 10
    CART_MAX_QUANTITY: int = 10
    DEFAULT_DELIVERY_CHARGE: float = 49.0
    DEFAULT_FREE_SHIPPING_THRESHOLD: float = 1000.0
    DEFAULT_WHATSAPP_NUMBER: str = "+918848886919"

    # Mail
    MAIL_ENABLED: bool = False
    MAIL_USERNAME: str = Field("orders@sking.in", validation_alias="MAIL_USERNAME")
    MAIL_PASSWORD: str = Field("", validation_alias="APP_PASSWORD")
    MAIL_FROM: str = Field("orders@sking.in", validation_alias="MAIL_FROM")
    MAIL_PORT: int = Field(465, validation_alias="MAIL_PORT")
    MAIL_SERVER: str = Field("smtp.zoho.in", validation_alias="MAIL_SERVER")
    MAIL_SSL: bool = Field(True, validation_alias="MAIL_SSL")

    # AWS S3
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "ap-south-1"
    S3_BUCKET: str = "sking-uploads"

    @property
    def S3_BASE_URL(self) -> str:
        return f"https://{self.S3_BUCKET}.s3.{self.AWS_REGION}.amazonaws.com"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
