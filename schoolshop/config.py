from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

_backend_root = Path(__file__).resolve().parents[1]
load_dotenv(_backend_root / ".env", override=False)


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite:///./schoolshop.db"
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_CONNECT_TIMEOUT_SECONDS: int = 10
    # Applied per session on PostgreSQL; 0 disables it.
    DB_STATEMENT_TIMEOUT_MS: int = 30000

    # Comma separated.
    BACKEND_CORS_ORIGINS: str = ""

    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str | None = "authenticated"

    MEDIA_STORAGE_ENDPOINT: str | None = None
    MEDIA_STORAGE_REGION: str = "eu-central-1"
    MEDIA_STORAGE_ACCESS_KEY: str | None = None
    MEDIA_STORAGE_SECRET_KEY: str | None = None
    MEDIA_STORAGE_PRINT_BUCKET: str = "print-files"
    MEDIA_STORAGE_IMAGE_BUCKET: str = "product-images"
    # Public object URLs are rendered as <base>/storage/v1/object/public/<bucket>/<path>.
    MEDIA_STORAGE_PUBLIC_BASE_URL: str | None = None
    MEDIA_STORAGE_TIMEOUT_SECONDS: float = 15.0
    MEDIA_STORAGE_FORCE_PATH_STYLE: bool = True

    SHOPIFY_ADMIN_API_VERSION: str = "2025-10"
    SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = 20.0
    SHOPIFY_DEFAULT_VENDOR: str = "Schulshop"

    SHOP_DEFAULT_CURRENCY: str = "EUR"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def public_storage_base_url(self) -> str | None:
        base = self.MEDIA_STORAGE_PUBLIC_BASE_URL or self.MEDIA_STORAGE_ENDPOINT
        return base.rstrip("/") if base else None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
