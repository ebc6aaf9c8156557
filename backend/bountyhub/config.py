"""Application configuration via environment variables."""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from bountyhub.errors import ConfigurationError

PLACEHOLDER_PREFIXES = ("your-", "your_", "change_me", "changeme", "replace-me", "<")

REQUIRED_SETTINGS = (
    "DATABASE_URL",
    "CLERK_SECRET_KEY",
    "CLERK_WEBHOOK_SECRET",
    "ETH_RPC_URL",
    "SERVICE_PRIVATE_KEY",
    "DEFAULT_PAYOUT_ADDRESS",
    "TOKEN_CONTRACT_ADDRESS",
    "ESCROW_CONTRACT_ADDRESS",
    "WEBHOOK_CALLBACK_URL",
    "CORS_ORIGINS",
)


def is_placeholder(value: Optional[str]) -> bool:
    """True for empty values and the usual ``.env.example`` stand-ins."""
    if value is None:
        return True
    stripped = value.strip()
    if not stripped:
        return True
    return stripped.lower().startswith(PLACEHOLDER_PREFIXES)


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DATABASE_URL: str = "sqlite:///./bountyhub.db"

    # Identity provider (Clerk)
    CLERK_SECRET_KEY: str = ""
    CLERK_WEBHOOK_SECRET: str = ""
    CLERK_API_URL: str = "https://api.clerk.com/v1"

    # GitHub
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_WEBHOOK_SECRET: str = ""
    WEBHOOK_CALLBACK_URL: str = ""

    # Ledger
    ETH_RPC_URL: str = ""
    SERVICE_PRIVATE_KEY: str = ""
    DEFAULT_PAYOUT_ADDRESS: str = ""
    TOKEN_CONTRACT_ADDRESS: str = ""
    ESCROW_CONTRACT_ADDRESS: str = ""
    TOKEN_SYMBOL: str = "GTK"
    TOKEN_DECIMALS: int = 18

    # Timeouts (seconds)
    HTTP_TIMEOUT_SECONDS: float = 15.0
    LEDGER_REQUEST_TIMEOUT_SECONDS: float = 30.0
    LEDGER_TX_TIMEOUT_SECONDS: int = 120

    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def ledger_configured(self) -> bool:
        return not any(
            is_placeholder(getattr(self, name))
            for name in ("ETH_RPC_URL", "SERVICE_PRIVATE_KEY", "TOKEN_CONTRACT_ADDRESS", "ESCROW_CONTRACT_ADDRESS")
        )

    def missing_required(self) -> list[str]:
        return [name for name in REQUIRED_SETTINGS if is_placeholder(getattr(self, name))]

    def check_required(self) -> None:
        """Raise ConfigurationError when any required setting is absent or a placeholder."""
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                "Missing or placeholder configuration: " + ", ".join(missing)
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
