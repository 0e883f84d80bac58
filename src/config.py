"""Application configuration using Pydantic Settings."""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

# ===========================================
# Product Branding
# ===========================================
PRODUCT_NAME = "Meshfolio"
PRODUCT_TAGLINE = "Every exchange and wallet, one portfolio."
PRODUCT_VERSION = "1.0.0"
PRODUCT_DESCRIPTION = "Link accounts through Mesh, see everything, move assets with Managed Transfers."


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Mesh Connect API
    mesh_api_url: str = "https://integration-api.meshconnect.com"
    mesh_client_id: str = ""
    mesh_client_secret: str = ""

    # Outbound HTTP (seconds, httpx default when unset)
    http_timeout_seconds: float = 30.0

    # Local account registry (CLI)
    database_url: str = "sqlite:///./meshfolio.db"

    # Logging
    log_level: str = "INFO"

    # API rate limit for link token creation
    linktoken_rate_limit: str = "30/minute"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def is_sandbox_key(self) -> bool:
        """True when the client secret is a sandbox key."""
        return self.mesh_client_secret.startswith("sk_sand_")

    @property
    def is_production_url(self) -> bool:
        """True when pointed at the production Mesh host."""
        return "integration-api.meshconnect.com" in self.mesh_api_url

    def is_mesh_configured(self) -> bool:
        """Check if Mesh credentials are present."""
        return bool(self.mesh_api_url and self.mesh_client_id and self.mesh_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str) -> None:
    """Root logging setup shared by the API server and the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
