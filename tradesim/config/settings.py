"""
Application settings using Pydantic Settings.

Loads configuration from environment variables with validation.
"""

from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are loaded from .env file or environment variables.
    Every field has a default so the simulator starts without a .env file.
    """

    # App Configuration
    APP_NAME: str = Field(default="Tradesim Trading Bot")
    APP_VERSION: str = Field(default="1.0.0")
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=True)

    # Server
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="colored")

    # CORS
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])

    # Portfolio
    CASH_SYMBOL: str = Field(default="USD")
    TRADING_FEE_RATE: Decimal = Field(default=Decimal("0.001"))
    INITIAL_BALANCES: Dict[str, Decimal] = Field(default={
        "USD": Decimal("10000"),
        "BTC": Decimal("0.5"),
        "ETH": Decimal("3.2"),
        "SOL": Decimal("10"),
        "ADA": Decimal("1000"),
        "DOT": Decimal("50"),
    })

    # Market simulation
    INITIAL_PRICES: Dict[str, Decimal] = Field(default={
        "BTC": Decimal("45234.56"),
        "ETH": Decimal("2345.67"),
        "SOL": Decimal("98.76"),
        "ADA": Decimal("0.45"),
        "DOT": Decimal("7.89"),
    })
    PRICE_VOLATILITY: Decimal = Field(default=Decimal("0.002"))
    SLIPPAGE_RATE: Decimal = Field(default=Decimal("0"))

    # Trade defaults
    DEFAULT_TAKE_PROFIT_PERCENT: Decimal = Field(default=Decimal("10"))
    DEFAULT_STOP_LOSS_PERCENT: Decimal = Field(default=Decimal("5"))
    DEFAULT_SIGNAL_CONFIDENCE: Decimal = Field(default=Decimal("70"))

    # Close evaluation
    SIGNAL_MIN_AGE_MINUTES: int = Field(default=60)
    SIGNAL_CLOSE_CONFIDENCE: Decimal = Field(default=Decimal("70"))
    MAX_POSITION_AGE_HOURS: Optional[float] = Field(default=None)

    # Sweep
    SWEEP_ENABLED: bool = Field(default=True)
    SWEEP_INTERVAL_SECONDS: float = Field(default=30.0)
    HISTORY_RESPONSE_LIMIT: int = Field(default=50)

    # Prediction oracle
    ORACLE_PROVIDER: str = Field(default="openrouter")
    ORACLE_MODEL: str = Field(default="anthropic/claude-3-haiku")
    ORACLE_API_KEY: str = Field(default="")
    ORACLE_TIMEOUT_SECONDS: float = Field(default=5.0)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v) -> List[str]:
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        elif isinstance(v, list):
            return v
        return []

    @field_validator("TRADING_FEE_RATE", "SLIPPAGE_RATE", "PRICE_VOLATILITY")
    @classmethod
    def validate_non_negative_rate(cls, v: Decimal) -> Decimal:
        """Validate rates are not negative."""
        if v < 0:
            raise ValueError("rates must not be negative")
        return v

    @field_validator("SWEEP_INTERVAL_SECONDS", "ORACLE_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Validate intervals and timeouts are positive."""
        if v <= 0:
            raise ValueError("intervals and timeouts must be positive")
        return v

    @field_validator("HISTORY_RESPONSE_LIMIT")
    @classmethod
    def validate_history_limit(cls, v: int) -> int:
        """Validate history limit is positive."""
        if v <= 0:
            raise ValueError("HISTORY_RESPONSE_LIMIT must be positive")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings instance (lazy loading)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
