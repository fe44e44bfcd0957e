from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Document store
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"

    # Catalog service (stock and SKU lookups)
    CATALOG_API_BASE_URL: str = "http://localhost:8080"

    # Session (signs the cookie carrying the shopper session id)
    SESSION_SECRET_KEY: str

    # Shop
    SHOP_NAME: str = "SadhanaCart"
    DEFAULT_SHIPPING_STATE: str = "Karnataka"

    # Cart
    MAX_UNITS_PER_ITEM: int = 5
    CART_STORAGE_KEY: str = "shoppingCart"

    # Currency
    CURRENCY: str = "INR"
    CURRENCY_SYMBOL: str = "₹"

    # Payment gateway
    PAYMENT_GATEWAY_NAME: str = "Razorpay"
    RAZORPAY_API_BASE_URL: str = "https://api.razorpay.com/v1"
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    PAYMENT_TIMEOUT_SECONDS: Optional[float] = None
    PAYMENT_HANDLE_TTL_SECONDS: float = 1800

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
