"""Configuration management with pydantic-settings for the CAPI client.

Loads from (in order of precedence):
1. Environment variables (highest priority)
2. .env file in the working directory
3. VCAP_APPLICATION, when running inside a Cloud Foundry container
4. Default values (lowest priority)
"""

import json
import logging
import os
from functools import lru_cache
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("capi.config")

__all__ = [
    "VCAP_APPLICATION_ENV",
    "CapiConfig",
    "get_config",
    "load_vcap_application",
    "reset_config",
]

VCAP_APPLICATION_ENV = "VCAP_APPLICATION"

# VCAP_APPLICATION key -> config field it can supply
_VCAP_FIELDS = {
    "cf_api": "capi_address",
    "application_id": "capi_app_guid",
    "space_id": "capi_space_guid",
}


def load_vcap_application() -> dict[str, Any]:
    """Parse the VCAP_APPLICATION environment variable.

    Returns:
        Decoded JSON object, or {} when unset or unparsable.
    """
    raw = os.environ.get(VCAP_APPLICATION_ENV, "")
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning("vcap_application_invalid", extra={"error": str(e)})
        return {}
    return data if isinstance(data, dict) else {}


class CapiConfig(BaseSettings):
    """Configuration for the CAPI client and its command line.

    Attributes:
        capi_address: Cloud Controller base address (rewritten to http by the client)
        capi_app_guid: Default application guid for app scoped operations
        capi_space_guid: Space guid used to resolve application names
        capi_task_poll_interval: Seconds between task status checks
        capi_connect_timeout: Transport connect timeout in seconds
        capi_read_timeout: Transport read timeout in seconds
        capi_write_timeout: Transport write timeout in seconds
        capi_pool_timeout: Transport pool acquisition timeout in seconds
        log_level: Logging level from CAPI_LOG_LEVEL (or LOG_LEVEL)
        log_format: json or text from CAPI_LOG_FORMAT (or LOG_FORMAT)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    capi_address: str = Field(
        default="",
        description="Cloud Controller API address (e.g., https://api.sys.example.com)",
    )

    capi_app_guid: str = Field(
        default="",
        description="Default application guid",
    )

    capi_space_guid: str = Field(
        default="",
        description="Space guid used by application name lookups",
    )

    capi_task_poll_interval: float = Field(
        default=1.0,
        gt=0.0,
        le=300.0,
        description="Fixed interval in seconds between task status checks",
    )

    capi_connect_timeout: float = Field(default=5.0, gt=0.0)
    capi_read_timeout: float = Field(default=30.0, gt=0.0)
    capi_write_timeout: float = Field(default=5.0, gt=0.0)
    capi_pool_timeout: float = Field(default=5.0, gt=0.0)

    # CAPI_ prefixed names first, matching configure_logging()
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("capi_log_level", "log_level"),
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    log_format: str = Field(
        default="json",
        validation_alias=AliasChoices("capi_log_format", "log_format"),
        pattern="^(json|text)$",
        description="Log format: json (production), text (development)",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("log_format", mode="before")
    @classmethod
    def lower_log_format(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="before")
    @classmethod
    def fill_from_vcap_application(cls, data: Any) -> Any:
        """Fill unset address and guids from VCAP_APPLICATION."""
        if not isinstance(data, dict):
            return data
        vcap = load_vcap_application()
        if not vcap:
            return data
        for vcap_key, field_name in _VCAP_FIELDS.items():
            if not data.get(field_name) and vcap.get(vcap_key):
                data[field_name] = vcap[vcap_key]
        return data


@lru_cache(maxsize=1)
def get_config() -> CapiConfig:
    """Get global configuration singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    return CapiConfig()


def reset_config() -> None:
    """Reset configuration singleton. Intended for tests."""
    get_config.cache_clear()
