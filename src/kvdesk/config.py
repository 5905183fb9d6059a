# Configuration - environment driven settings for kvdesk.
# Created: 2026-10-18
#
# Values come from KVDESK_* environment variables, then the .env file and
# settings.json in the config directory (~/.kvdesk or $KVDESK_HOME).

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from kvdesk.cloudflare.common import API_URL
from kvdesk.cloudflare.credentials import Credentials, Service, UserAuthKey, UserAuthToken

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"


def get_config_dir() -> Path:
    """Get/create the config directory (``~/.kvdesk`` or $KVDESK_HOME)."""
    d = Path(os.environ.get("KVDESK_HOME", Path.home() / ".kvdesk")).expanduser()
    d.mkdir(parents=True, exist_ok=True)
    return d


class Settings(BaseSettings):
    """kvdesk settings."""

    model_config = SettingsConfigDict(env_prefix="KVDESK_", extra="ignore")

    api_url: str = Field(default=API_URL, description="Cloudflare API base URL")
    account_id: str | None = None

    api_token: SecretStr | None = None
    auth_email: str | None = None
    auth_key: SecretStr | None = None
    service_key: SecretStr | None = None

    request_timeout: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Files are looked up per instance so KVDESK_HOME is honoured.
        config_dir = get_config_dir()
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(settings_cls, env_file=config_dir / ".env"),
            JsonConfigSettingsSource(settings_cls, json_file=config_dir / SETTINGS_FILE),
            file_secret_settings,
        )

    def credentials(self) -> Credentials | None:
        """Resolve configured credentials.

        Resolution order:
        1. api_token
        2. auth_email + auth_key
        3. service_key
        """
        if self.api_token:
            return UserAuthToken(token=self.api_token)
        if self.auth_email and self.auth_key:
            return UserAuthKey(email=self.auth_email, key=self.auth_key)
        if self.service_key:
            return Service(key=self.service_key)
        return None

    def save(self) -> Path:
        """Persist the non-secret settings to ``settings.json``.

        Secrets are never written; they stay in the environment or ``.env``.
        """
        path = get_config_dir() / SETTINGS_FILE
        data = self.model_dump(
            mode="json",
            include={"api_url", "account_id", "request_timeout", "log_level"},
        )
        path.write_text(json.dumps(data, indent=2))
        logger.info("Saved settings to %s", path)
        return path


@lru_cache
def get_settings() -> Settings:
    return Settings()
