"""Application configuration using pydantic-settings."""

from decimal import Decimal
from typing import Any

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Load credential fields from the system keychain via ``keyring``.

    Only fields whose uppercase name appears in
    :data:`~services.credential_manager.CREDENTIAL_KEYS` are looked up.
    All other fields return ``None`` so the next source in the chain
    handles them.
    """

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        env_name = field_name.upper()
        if env_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        value = get_credential(env_name)
        return value, field_name, False

    def __call__(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for field_name, field_info in self.settings_cls.model_fields.items():
            value, key, is_complex = self.get_field_value(field_info, field_name)
            if value is not None:
                d[key] = value
        return d


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            KeychainSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    # Database
    DATABASE_URL: str = "sqlite:///./portfolio.db"

    # Binance API credentials (optional - required for exchange sync)
    BINANCE_API_KEY: str = ""
    BINANCE_API_SECRET: str = ""
    BINANCE_BASE_URL: str = "https://api.binance.com"
    BINANCE_RECV_WINDOW: int = 10000
    BINANCE_TIMEOUT: float = 30.0

    # CoinGecko (optional - fallback price source, works without a key)
    COINGECKO_API_KEY: str = ""

    # Reconciliation
    SYNC_PORTFOLIO_NAME: str = "Binance Portfolio"
    QUOTE_ASSET: str = "USDT"
    DUST_THRESHOLD: Decimal = Decimal("0.00000001")

    # Single-user mode: requests without an X-User-Id header act as this user
    DEFAULT_USER_ID: str = "00000000-0000-0000-0000-000000000001"
    DEFAULT_USER_EMAIL: str = "demo@example.com"
    DEFAULT_USER_NAME: str = "Demo User"

    @field_validator("BINANCE_API_KEY", "BINANCE_API_SECRET", mode="before")
    @classmethod
    def strip_credential(cls, v: str) -> str:
        """Strip whitespace that sneaks in when keys are pasted into ``.env``."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("QUOTE_ASSET", mode="before")
    @classmethod
    def normalize_quote_asset(cls, v: str) -> str:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
