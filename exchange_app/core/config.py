"""
Configuration module for the exchange desk backend.

The Settings object centralizes environment-driven configuration with strict
typing and validation rules so that the rest of the codebase can rely on a
single source of truth.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Literal, cast
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    AliasChoices,
    AnyHttpUrl,
    Field,
    SecretStr,
    ValidationInfo,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from exchange_app.core.telegram import INIT_DATA_DEFAULT_MAX_AGE_SECONDS


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    project_name: str = Field(default="Exchange Desk Backend", alias="PROJECT_NAME")
    environment: Literal["local", "test", "staging", "production"] = Field(
        default="local",
        alias="APP_ENV",
    )
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api", alias="API_V1_PREFIX")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    telegram_bot_token: SecretStr = Field(
        alias="TELEGRAM_BOT_TOKEN",
        validation_alias=AliasChoices("TELEGRAM_BOT_TOKEN", "BOT_TOKEN"),
    )
    backend_domain: str | None = Field(
        default=None,
        alias="BACKEND_DOMAIN",
        description="Public backend domain without scheme (used for the Telegram webhook).",
    )
    webapp_url: str | None = Field(
        default=None,
        alias="WEBAPP_URL",
        description="Public HTTPS URL of the Mini App opened from the /start button.",
    )

    owner_tg_id: int | None = Field(default=None, alias="OWNER_TG_ID")
    raw_owner_tg_ids: str | None = Field(
        default=None,
        alias="OWNER_TG_IDS",
        description="Comma-separated list or JSON array of owner Telegram ids.",
    )
    admin_web_key: SecretStr | None = Field(
        default=None,
        alias="ADMIN_WEB_KEY",
        description="Shared key for the standalone admin dashboard (X-Admin-Key header).",
    )
    group_chat_id: int | None = Field(
        default=None,
        alias="GROUP_CHAT_ID",
        description="Fallback group chat for exchange requests when /setgroup was not used.",
    )

    store_path: Path = Field(default=Path("data/store.json"), alias="STORE_PATH")
    webapp_dist_dir: Path = Field(default=Path("webapp/dist"), alias="WEBAPP_DIST_DIR")

    init_data_max_age_seconds: int = Field(
        default=INIT_DATA_DEFAULT_MAX_AGE_SECONDS,
        alias="INIT_DATA_MAX_AGE_SECONDS",
        description="How long Telegram initData stays valid after auth_date.",
    )
    business_timezone: str = Field(default="Asia/Ho_Chi_Minh", alias="BUSINESS_TIMEZONE")

    market_refresh_seconds: int = Field(default=15 * 60, alias="MARKET_REFRESH_SECONDS")
    market_http_timeout: float = Field(default=8.0, alias="MARKET_HTTP_TIMEOUT")
    market_worker_enabled: bool = Field(
        default=False,
        alias="MARKET_WORKER_ENABLED",
        description="Warm the market rates cache in the background.",
    )

    production_app_origin: AnyHttpUrl | None = Field(
        default=None,
        alias="PRODUCTION_APP_ORIGIN",
    )
    raw_backend_cors_origins: str | None = Field(
        default=None,
        alias="BACKEND_CORS_ORIGINS",
        description="Comma-separated list or JSON array of localhost origins (http://localhost:PORT).",
    )
    max_request_bytes: int = Field(
        default=2 * 1_048_576,
        alias="MAX_REQUEST_BYTES",
        description="Upper bound for request bodies in bytes (default 2 MiB).",
    )

    @field_validator("telegram_bot_token", mode="after")
    @classmethod
    def _validate_secret(cls, secret: SecretStr, info: ValidationInfo) -> SecretStr:
        if not secret.get_secret_value().strip():
            field = (info.field_name or "value").upper()
            raise ValueError(f"{field} must not be empty.")
        return secret

    @field_validator("admin_web_key", mode="after")
    @classmethod
    def _blank_admin_key_disables(cls, secret: SecretStr | None) -> SecretStr | None:
        if secret is None or not secret.get_secret_value().strip():
            return None
        return secret

    @field_validator("init_data_max_age_seconds", "market_refresh_seconds", "max_request_bytes")
    @classmethod
    def _validate_positive(cls, value: int, info: ValidationInfo) -> int:
        if value <= 0:
            field = (info.field_name or "value").upper()
            raise ValueError(f"{field} must be a positive integer.")
        return value

    @field_validator("market_http_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("MARKET_HTTP_TIMEOUT must be positive.")
        return value

    @field_validator("business_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"BUSINESS_TIMEZONE '{value}' is not a known IANA zone.") from exc
        return value

    @field_validator("raw_owner_tg_ids")
    @classmethod
    def _validate_owner_ids(cls, value: str | None) -> str | None:
        cls.parse_owner_ids(value)
        return value

    @field_validator("webapp_url")
    @classmethod
    def _normalize_webapp_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        candidate = value.strip()
        if not candidate:
            return None
        if not candidate.lower().startswith(("http://", "https://")):
            candidate = f"https://{candidate}"
        return candidate

    @field_validator("backend_domain")
    @classmethod
    def _validate_backend_domain(cls, value: str | None) -> str | None:
        if value is None:
            return None
        candidate = value.strip().lower()
        if not candidate:
            return None
        if candidate.startswith("http://") or candidate.startswith("https://"):
            raise ValueError("BACKEND_DOMAIN must be provided without scheme.")
        if "/" in candidate:
            raise ValueError("BACKEND_DOMAIN must not include path segments.")
        return candidate

    @computed_field(return_type=frozenset[int])
    def owner_ids(self) -> frozenset[int]:
        """
        Return the set of Telegram ids treated as owners.

        OWNER_TG_IDS wins when it is non-empty; otherwise OWNER_TG_ID is used.
        With neither configured nobody is an owner.
        """
        parsed = self.parse_owner_ids(self.raw_owner_tg_ids)
        if parsed:
            return frozenset(parsed)
        if self.owner_tg_id:
            return frozenset({self.owner_tg_id})
        return frozenset()

    @staticmethod
    def parse_owner_ids(value: str | None) -> list[int]:
        """Parse a comma-separated string or JSON array into owner ids."""
        if value is None:
            return []
        normalized = value.strip()
        if not normalized:
            return []
        items: list[object]
        if normalized.startswith("["):
            try:
                parsed = json.loads(normalized)
            except json.JSONDecodeError as exc:
                raise ValueError("OWNER_TG_IDS is not a valid JSON array.") from exc
            if not isinstance(parsed, list):
                raise ValueError("OWNER_TG_IDS must be a JSON array.")
            items = parsed
        else:
            items = [part for part in normalized.split(",") if part.strip()]

        owner_ids: list[int] = []
        for item in items:
            try:
                owner_ids.append(int(str(item).strip()))
            except ValueError as exc:
                raise ValueError(f"OWNER_TG_IDS entry '{item}' is not an integer.") from exc
        return owner_ids

    _LOCAL_CORS_ENVIRONMENTS = frozenset({"local", "test"})

    @computed_field(return_type=list[str])
    def backend_cors_origins(self) -> list[str]:
        """
        Return validated localhost origins for local/test development.

        Production/staging environments ignore BACKEND_CORS_ORIGINS entirely to
        avoid misconfiguration on deployed servers.
        """
        if self.environment not in self._LOCAL_CORS_ENVIRONMENTS:
            return []

        parsed = self._parse_backend_cors_origins(self.raw_backend_cors_origins)
        return [self._validate_localhost_origin(origin) for origin in parsed]

    @staticmethod
    def _parse_backend_cors_origins(value: str | None) -> list[str]:
        if value is None:
            return []
        normalized = value.strip()
        if not normalized:
            return []
        if normalized.startswith("["):
            try:
                parsed = json.loads(normalized)
                if isinstance(parsed, list):
                    return [
                        str(origin).strip().rstrip("/") for origin in parsed if str(origin).strip()
                    ]
            except json.JSONDecodeError:
                pass
        return [origin.strip().rstrip("/") for origin in normalized.split(",") if origin.strip()]

    @property
    def cors_origins(self) -> list[str]:
        """
        Compile the effective list of CORS origins.

        Always includes the Telegram WebApp origin and the production app origin.
        Localhost origins are opt-in via BACKEND_CORS_ORIGINS.
        """
        origins = {"https://webapp.telegram.org"}
        cors_base = cast(list[str], self.backend_cors_origins)
        origins.update({origin.rstrip("/") for origin in cors_base})

        if self.production_app_origin:
            origins.add(str(self.production_app_origin).rstrip("/"))

        return sorted(origins)

    @staticmethod
    def _validate_localhost_origin(origin: str) -> str:
        normalized = origin.strip().rstrip("/")
        if not normalized:
            raise ValueError("CORS origin entries must be non-empty strings.")
        if not normalized.startswith("http://localhost"):
            raise ValueError(
                "BACKEND_CORS_ORIGINS only accepts http://localhost:* origins and is honored "
                "only when APP_ENV is 'local' or 'test'. Configure PRODUCTION_APP_ORIGIN for "
                "deployed domains."
            )
        return normalized

    @property
    def timezone(self) -> ZoneInfo:
        """Return the business timezone used for 'today' and request timestamps."""
        return ZoneInfo(self.business_timezone)

    @property
    def telegram_webhook_base_url(self) -> str | None:
        """Return the webhook base URL derived from BACKEND_DOMAIN."""
        if self.backend_domain:
            return f"https://{self.backend_domain}".rstrip("/")
        return None


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance so configuration is evaluated once."""
    # BaseSettings loads required values from env/.env during instantiation.
    return Settings()  # type: ignore[call-arg]


settings = get_settings()
