# config.py

import logging
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.common_types import Currency

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables and .env file.

    Material and process tables are not configured here; they come from the
    settings store file (see ``settings_file``).
    """
    model_config = SettingsConfigDict(
        env_prefix='PRINT_ESTIMATOR_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # Logging Configuration
    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")

    # Settings store JSON; None uses the packaged defaults
    settings_file: Optional[str] = Field(None, description="Path to a settings store JSON file.")

    default_currency: Currency = Field(Currency.USD, description="Currency used when a quote does not name one.")

    @field_validator('log_level')
    @classmethod
    def log_level_must_be_valid(cls, v: str) -> str:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of {valid_levels}')
        return v.upper()


def setup_logging(level: Optional[str] = None) -> None:
    """Configures the root logger once for the CLI (or any embedding script)."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    logger.debug(f"Logging configured. Level: {level or settings.log_level}, "
                 f"Default currency: {settings.default_currency.value}")
    if settings.settings_file:
        logger.info(f"Using settings store file: {settings.settings_file}")


# --- Singleton Instance ---
settings = Settings()
