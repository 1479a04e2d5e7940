"""Configuration management for split-ledger."""

from decimal import Decimal
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import LedgerConfig
from .money import ExactDecimal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPLIT_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Currency display and split precision
    currency_code: str = "USD"
    currency_symbol: str = "$"
    minor_unit_scale: int = Field(default=2, ge=0, le=8)

    # Nets within this distance of zero classify as settled
    balance_epsilon: ExactDecimal = Field(default=Decimal("0.001"), ge=0)

    # Whose point of view the CLI takes ("you")
    user_id: str = "You"

    # Database path
    database_path: Path = Path.home() / ".split_ledger" / "ledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def ledger_config(self) -> LedgerConfig:
        """The explicit configuration value handed to the ledger core."""
        return LedgerConfig(
            currency_code=self.currency_code,
            currency_symbol=self.currency_symbol,
            minor_unit_scale=self.minor_unit_scale,
            balance_epsilon=self.balance_epsilon,
        )


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the SPLIT_LEDGER_* variables in "
            f"your environment or .env file.\n"
            f"Error: {e}"
        ) from e
