# Environment and settings
# pydantic-settings reads .env = core/config.py

from typing import Literal, Optional
from pydantic import SecretStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# model_config.env_file=".env" only matters when uvicorn runs directly on the host (no Docker):
# it then reads backend/.env

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
    )

    # ========= project config =========
    PROJECT_NAME: str = "AI Search Booster"
    ENVIRONMENT: str = "dev"
    API_PREFIX: str = "/api"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"


    # ========= Database =========
    # shop sessions + rollback audit log; everything else lives in Shopify metafields
    DATABASE_URL: str = Field(
        default="postgresql+psycopg://asb_user:asb_pass@db:5432/asb_dev",
        alias="DATABASE_URL"
    )


    # ========= Redis (per-resource locks) =========
    # empty -> process-local locks (single worker only)
    REDIS_URL: Optional[str] = Field(None, alias="REDIS_URL")
    RESOURCE_LOCK_PREFIX: str = Field("asb:lock", alias="RESOURCE_LOCK_PREFIX")
    RESOURCE_LOCK_TTL_SEC: int = Field(120, ge=5, alias="RESOURCE_LOCK_TTL_SEC")     # lock auto-expires if the holder dies
    RESOURCE_LOCK_WAIT_SEC: float = Field(10.0, ge=0, alias="RESOURCE_LOCK_WAIT_SEC")  # then 409


    # ========= Shopify API Config =========
    SHOPIFY_SHOP: str = Field("aisearch-dev.myshopify.com", alias="SHOPIFY_SHOP")
    SHOPIFY_ADMIN_TOKEN: Optional[SecretStr] = Field(None, alias="SHOPIFY_ADMIN_TOKEN")   # fallback when the shop has no stored session
    SHOPIFY_API_VERSION: str = Field("2025-07", alias="SHOPIFY_API_VERSION")

    # network / HTTP layer
    SHOPIFY_HTTP_TIMEOUT: int = Field(30, alias="SHOPIFY_HTTP_TIMEOUT")
    SHOPIFY_HTTP_RETRIES: int = Field(3, alias="SHOPIFY_HTTP_RETRIES")
    SHOPIFY_HTTP_BACKOFF_MS: int = Field(200, alias="SHOPIFY_HTTP_BACKOFF_MS")
    SHOPIFY_METAFIELDS_PAGE: int = Field(100, ge=1, le=250, alias="SHOPIFY_METAFIELDS_PAGE")


    # ========= LLM provider =========
    # provider selection is static: "auto" = openai if its key is set, else anthropic
    LLM_PROVIDER: Literal["auto", "openai", "anthropic"] = Field("auto", alias="LLM_PROVIDER")
    OPENAI_API_KEY: Optional[SecretStr] = Field(None, alias="OPENAI_API_KEY")
    OPENAI_MODEL: str = Field("gpt-4o-mini", alias="OPENAI_MODEL")
    ANTHROPIC_API_KEY: Optional[SecretStr] = Field(None, alias="ANTHROPIC_API_KEY")
    ANTHROPIC_MODEL: str = Field("claude-3-5-haiku-20241022", alias="ANTHROPIC_MODEL")
    LLM_TIMEOUT_SEC: float = Field(45.0, gt=0, alias="LLM_TIMEOUT_SEC")
    LLM_MAX_TOKENS: int = Field(1500, ge=100, alias="LLM_MAX_TOKENS")
    LLM_TEMPERATURE: float = Field(0.4, ge=0, le=2, alias="LLM_TEMPERATURE")
    LLM_MOCK_MODE: bool = Field(False, alias="LLM_MOCK_MODE")     # True -> never call a provider


    # ========= Draft / publish workflow =========
    METAFIELD_NAMESPACE: str = Field("asb", alias="METAFIELD_NAMESPACE")
    VERSIONING_ENABLED: bool = Field(True, alias="VERSIONING_ENABLED")
    PUBLISH_UPDATES_RESOURCE: bool = Field(True, alias="PUBLISH_UPDATES_RESOURCE")    # push optimized title/body onto the product/article
    CLEAR_DRAFT_ON_PUBLISH: bool = Field(False, alias="CLEAR_DRAFT_ON_PUBLISH")
    METAFIELD_WRITE_RETRIES: int = Field(1, ge=0, le=5, alias="METAFIELD_WRITE_RETRIES")
    STRICT_WRITES: bool = Field(False, alias="STRICT_WRITES")    # True -> partial writes raise instead of degraded success


    # ========= Usage plan =========
    # monthly optimization quota per shop; Free 5 / Basic 100 / Pro 500 / Custom 999
    USAGE_LIMIT_ENABLED: bool = Field(True, alias="USAGE_LIMIT_ENABLED")
    USAGE_PLAN: Literal["Free", "Basic", "Pro", "Custom"] = Field("Pro", alias="USAGE_PLAN")


    # ========= Rollback =========
    AUTO_ROLLBACK_ENABLED: bool = Field(True, alias="AUTO_ROLLBACK_ENABLED")
    ROLLBACK_RISK_THRESHOLD: float = Field(0.7, ge=0, le=1, alias="ROLLBACK_RISK_THRESHOLD")


settings = Settings()  # environment only (including .env)
