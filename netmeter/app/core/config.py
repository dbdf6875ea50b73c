"""Configuration for the network usage engine using pydantic-settings."""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent


class AppEnv(StrEnum):
    DEV = "dev"
    PRODUCTION = "production"


class TomlSettingsSource(PydanticBaseSettingsSource):
    def __init__(self, settings_cls: type[BaseSettings], toml_file: str | Path):
        super().__init__(settings_cls)
        self.toml_file = Path(toml_file)

    def get_field_value(self, field_name: str, field_data: Any) -> tuple[Any, str, bool]:
        # Not used in this source style
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        if not self.toml_file.exists():
            return {}

        import tomllib

        try:
            with open(self.toml_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            return {}

        if not isinstance(data, dict):
            return {}

        flattened = {}

        # [aggregation] section
        aggregation = data.get("aggregation", {})
        if isinstance(aggregation, dict):
            if "max_workers" in aggregation:
                flattened["max_concurrent_queries"] = aggregation["max_workers"]
            if "query_timeout" in aggregation:
                flattened["query_timeout_seconds"] = aggregation["query_timeout"]
            if "icon_size" in aggregation:
                flattened["icon_size"] = aggregation["icon_size"]

        # [periods] section
        periods = data.get("periods", {})
        if isinstance(periods, dict):
            if "month_max_count" in periods:
                flattened["month_max_count"] = periods["month_max_count"]
            if "timezone" in periods:
                flattened["timezone"] = periods["timezone"]

        # [api] section
        api = data.get("api", {})
        if isinstance(api, dict):
            for key in ("allowed_origins", "trusted_hosts"):
                if key in api:
                    flattened[key] = api[key]

        # Top level keys
        for k, v in data.items():
            if k not in {"aggregation", "periods", "api"}:
                flattened[k] = v

        return flattened


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # --- Environment ---
    app_env: AppEnv = Field(
        default=AppEnv.PRODUCTION,
        validation_alias=AliasChoices("NETMETER_APP_ENV", "APP_ENV", "ENV"),
    )

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_env(cls, v: Any) -> AppEnv:
        if v is None:
            return AppEnv.PRODUCTION
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in {"dev", "development", "local", "localhost"}:
                return AppEnv.DEV
        return AppEnv.PRODUCTION

    @field_validator("allowed_origins", "trusted_hosts", mode="before")
    @classmethod
    def parse_list(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v_stripped = v.strip()
            if not v_stripped:
                return []
            if v_stripped.startswith("[") and v_stripped.endswith("]"):
                import json
                try:
                    return json.loads(v_stripped)
                except ValueError:
                    pass
            return [x.strip() for x in v_stripped.split(",") if x.strip()]
        return v or []

    @property
    def is_dev(self) -> bool:
        return self.app_env == AppEnv.DEV

    # --- Project Paths ---
    project_root: Path = PROJECT_ROOT
    snapshot_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("NETMETER_SNAPSHOT", "NETMETER_SNAPSHOT_PATH"),
    )

    # --- API ---
    allowed_origins: Any = Field(default_factory=list, validation_alias="NETMETER_ALLOWED_ORIGINS")
    trusted_hosts: Any = Field(default_factory=list, validation_alias="NETMETER_TRUSTED_HOSTS")

    # --- Aggregation ---
    max_concurrent_queries: int = Field(default=4, ge=1, validation_alias="NETMETER_MAX_WORKERS")
    query_timeout_seconds: float = Field(default=10.0, gt=0, validation_alias="NETMETER_QUERY_TIMEOUT")
    icon_size: int = Field(default=64, ge=1, validation_alias="NETMETER_ICON_SIZE")

    # --- Periods ---
    month_max_count: int = Field(default=12, ge=1, validation_alias="NETMETER_MONTH_MAX_COUNT")
    timezone: str | None = Field(default=None, validation_alias="NETMETER_TIMEZONE")

    # --- Tethering pseudo-entry ---
    tethering_package_id: str = "com.android.tethering"
    tethering_display_name: str = "Tethering / Hotspot"

    def __init__(self, **values: Any) -> None:
        super().__init__(**values)
        if not self.is_dev:
            if not self.trusted_hosts:
                self.trusted_hosts = ["localhost", "127.0.0.1"]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Order of precedence:
        # 1. Constructor arguments
        # 2. Environment variables
        # 3. .env file
        # 4. config/netmeter.toml
        # 5. Secrets
        toml_path = os.getenv("NETMETER_SETTINGS_FILE")
        if not toml_path:
            toml_path = str(PROJECT_ROOT / "config" / "netmeter.toml")

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlSettingsSource(settings_cls, toml_file=toml_path),
            file_secret_settings,
        )


settings = Settings()
