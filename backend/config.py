"""Application configuration using pydantic-settings."""

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./badges.db"

    # Chain (Sui JSON-RPC)
    SUI_RPC_URL: str = "https://fullnode.testnet.sui.io:443"
    CHAIN_FINALITY_TIMEOUT_SECONDS: float = 120.0
    CHAIN_GAS_BUDGET: int = 10_000_000
    VERIFY_CHAIN_TRANSACTIONS: bool = True

    # Inventory / marketplace
    TOKEN_LOCK_TTL_SECONDS: int = 600
    LISTING_RESERVATION_TTL_MINUTES: int = 60
    LISTING_PRICE_DECIMALS: int = 4

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("CHAIN_FINALITY_TIMEOUT_SECONDS")
    @classmethod
    def validate_finality_timeout(cls, v: float) -> float:
        """Chain waits must be long enough to cover finality."""
        if v < 30:
            raise ValueError(
                f"CHAIN_FINALITY_TIMEOUT_SECONDS must be at least 30, got {v!r}"
            )
        return v

    @model_validator(mode="after")
    def validate_lock_ttl(self) -> "Settings":
        """A token lease must outlive the longest chain wait."""
        if self.TOKEN_LOCK_TTL_SECONDS <= self.CHAIN_FINALITY_TIMEOUT_SECONDS:
            raise ValueError(
                "TOKEN_LOCK_TTL_SECONDS must exceed CHAIN_FINALITY_TIMEOUT_SECONDS "
                f"({self.TOKEN_LOCK_TTL_SECONDS} <= {self.CHAIN_FINALITY_TIMEOUT_SECONDS})"
            )
        return self

    @field_validator("LOG_LEVEL", "CHAIN_LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str, info: ValidationInfo) -> str:
        """Normalize a level name to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"{info.field_name} must be one of {valid}, got {v!r}")
        return v.upper()

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CHAIN_LOG_LEVEL: str = "INFO"


settings = Settings()
