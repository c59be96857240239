"""
Configuration management for the EcoProducts storefront backend.

Loads settings from .env via pydantic-settings.

Notes:
    - VALID_PINCODES is a comma-separated allow-list for local-resident delivery
    - ORDER_PERSISTENCE_BACKEND selects where checkout sessions send orders
      ("database" = in-process, "rest" = POST to ORDER_API_URL)
    - validate_production_settings() enforces strict CORS and real secrets in production
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

from domain.constants import DEFAULT_BULK_MINIMUM_QUANTITY

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/ecoproducts.db"

    # ── Checkout Rules ──────────────────────────────────────────────
    valid_pincodes: str = "517646,517645,517644,517643,517642,517641"
    delivery_region: str = "Sri City"
    bulk_minimum_quantity: int = DEFAULT_BULK_MINIMUM_QUANTITY

    # ── Order Persistence ───────────────────────────────────────────
    order_persistence_backend: str = "database"   # "database" | "rest"
    order_api_url: str = "http://localhost:8000"
    order_submit_timeout_seconds: float = 10.0
    checkout_session_ttl_minutes: int = 120

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── Admin Auth (JWT) ────────────────────────────────────────────
    admin_api_key: str = ""
    jwt_secret: str = ""
    jwt_issuer: str = "ecoproducts-api"
    jwt_access_ttl_minutes: int = 30

    # ── Rate Limits ─────────────────────────────────────────────────
    orders_rate_limit: int = 10
    orders_rate_window_seconds: int = 60

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def valid_pincodes_list(self) -> List[str]:
        """Parse the delivery pincode allow-list, skipping blanks."""
        return [code.strip() for code in self.valid_pincodes.split(",") if code.strip()]

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.order_persistence_backend not in ("database", "rest"):
            raise ValueError(
                "ORDER_PERSISTENCE_BACKEND must be 'database' or 'rest', "
                f"got {self.order_persistence_backend!r}"
            )

        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign admin access tokens."
                )
            if not self.admin_api_key:
                raise ValueError(
                    "ADMIN_API_KEY must be set in production. "
                    "Without it no admin token can be issued."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if not self.admin_api_key:
                warnings.append("ADMIN_API_KEY not set (admin endpoints unusable)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(w)


# Global settings instance
settings = Settings()
