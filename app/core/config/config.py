from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Конфигурация приложения из .env и другие настройки"""

    # Основные настройки
    app_name: str = "Sneaker Auction API"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 3
    debug: bool = False

    # Database
    database_url: str = "sqlite://db.sqlite3"

    # App Security
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # CORS settings
    CORS_ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Auctions (amounts are integer cents)
    bid_increment: int = 100
    auction_duration_days: int = 10

    # Shipping
    carrier_timeout_seconds: float = 15.0
    shipping_fallback_on_label_failure: bool = False

    # FedEx
    FEDEX_CLIENT_ID: Optional[str] = None
    FEDEX_CLIENT_SECRET: Optional[str] = None
    FEDEX_ACCOUNT_NUMBER: Optional[str] = None
    FEDEX_METER_NUMBER: Optional[str] = None
    FEDEX_BASE_URL: str = "https://apis-sandbox.fedex.com"

    # UPS
    UPS_CLIENT_ID: Optional[str] = None
    UPS_CLIENT_SECRET: Optional[str] = None
    UPS_ACCOUNT_NUMBER: Optional[str] = None
    UPS_ACCESS_LICENSE_NUMBER: Optional[str] = None
    UPS_BASE_URL: str = "https://wwwcie.ups.com"

    # Ship-from address
    SHIP_FROM_NAME: Optional[str] = None
    SHIP_FROM_ADDRESS1: Optional[str] = None
    SHIP_FROM_ADDRESS2: Optional[str] = None
    SHIP_FROM_CITY: Optional[str] = None
    SHIP_FROM_STATE: Optional[str] = None
    SHIP_FROM_ZIP: Optional[str] = None
    SHIP_FROM_COUNTRY: str = "US"
    SHIP_FROM_PHONE: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def ship_from_configured(self) -> bool:
        return all([
            self.SHIP_FROM_NAME,
            self.SHIP_FROM_ADDRESS1,
            self.SHIP_FROM_CITY,
            self.SHIP_FROM_STATE,
            self.SHIP_FROM_ZIP,
        ])


settings = Settings()
