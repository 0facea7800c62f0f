"""
toolvalet configuration.

Settings come from a YAML file with ${VAR} environment substitution,
validated with pydantic. Without a file, defaults plus a handful of
environment variables are used.

Example config.yaml:

    identity:
      backend: outbound
      base_url: https://api.descope.com
      project_id: ${IDENTITY_PROJECT_ID}
      management_key: ${IDENTITY_MANAGEMENT_KEY}
    crm_api_url: https://crm.example.com/api
    redirect_url: https://app.example.com/oauth/callback
    workflows_path: workflows/
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from .auth.catalog import DEFAULT_PROVIDERS, ProviderCatalog
from .constants import DEFAULT_HTTP_TIMEOUT
from .integrations.http import IntegrationConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TOOLVALET_CONFIG"

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")

# Settings field -> environment variable consulted when the field is not set
ENV_FALLBACKS = {
    "crm_api_url": "CRM_API_URL",
    "redirect_url": "OAUTH_REDIRECT_URL",
}
IDENTITY_ENV_FALLBACKS = {
    "base_url": "IDENTITY_BASE_URL",
    "project_id": "IDENTITY_PROJECT_ID",
    "management_key": "IDENTITY_MANAGEMENT_KEY",
}


class ConfigError(Exception):
    """Raised when the configuration file is missing, unreadable or invalid"""
    pass


class IdentitySettings(BaseModel):
    backend: Literal["outbound", "memory"] = "memory"
    base_url: str = "https://api.descope.com"
    project_id: str = ""
    management_key: str = ""
    authorize_base_url: str = "https://auth.example.com/oauth/authorize"


class ProviderConfig(BaseModel):
    id: str
    name: str = ""
    default_scopes: List[str] = Field(default_factory=list)


def _default_providers() -> List[ProviderConfig]:
    return [
        ProviderConfig(id=p.id, name=p.name, default_scopes=sorted(p.default_scopes))
        for p in DEFAULT_PROVIDERS
    ]


class Settings(BaseModel):
    """Validated toolvalet settings"""

    identity: IdentitySettings = Field(default_factory=IdentitySettings)
    crm_api_url: str = ""
    google_calendar_api_url: str = "https://www.googleapis.com/calendar/v3"
    google_docs_api_url: str = "https://docs.googleapis.com/v1"
    google_drive_api_url: str = "https://www.googleapis.com/drive/v3"
    slack_api_url: str = "https://slack.com/api"
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)
    redirect_url: str = "http://localhost:8000/oauth/callback"
    providers: List[ProviderConfig] = Field(default_factory=_default_providers)
    workflows_path: Optional[str] = None

    def catalog(self) -> ProviderCatalog:
        return ProviderCatalog.from_dicts(p.model_dump() for p in self.providers)

    def integration_config(self, transport=None) -> IntegrationConfig:
        return IntegrationConfig(
            crm_api_url=self.crm_api_url,
            google_calendar_api_url=self.google_calendar_api_url,
            google_docs_api_url=self.google_docs_api_url,
            google_drive_api_url=self.google_drive_api_url,
            slack_api_url=self.slack_api_url,
            timeout=self.http_timeout,
            transport=transport,
        )


def _substitute_env(raw: str, source: str) -> str:
    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{source}')"
            )
        return value

    return _ENV_PATTERN.sub(_replace_env, raw)


def _load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """Read YAML config file with ${VAR} environment variable substitution."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read config file '{path}': {e}") from e

    try:
        data = yaml.safe_load(_substitute_env(raw, str(path)))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file '{path}': {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping")
    return data


def _apply_env_fallbacks(data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data)
    for key, env_var in ENV_FALLBACKS.items():
        if not data.get(key) and os.environ.get(env_var):
            data[key] = os.environ[env_var]

    identity = dict(data.get("identity") or {})
    for key, env_var in IDENTITY_ENV_FALLBACKS.items():
        if not identity.get(key) and os.environ.get(env_var):
            identity[key] = os.environ[env_var]
    if identity:
        data["identity"] = identity
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from ``path``, ``$TOOLVALET_CONFIG``, or defaults.

    An explicitly given path must exist. The environment path is used only
    when it points at an existing file.

    Raises:
        ConfigError: Unreadable file, unset ${VAR}, or invalid values
    """
    data: Dict[str, Any] = {}
    if path is not None:
        data = _load_config(path)
        source = str(path)
    else:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path and Path(env_path).is_file():
            data = _load_config(env_path)
            source = env_path
        else:
            if env_path:
                logger.warning(f"{CONFIG_ENV_VAR}={env_path} does not exist, using defaults")
            source = "<defaults>"

    try:
        settings = Settings.model_validate(_apply_env_fallbacks(data))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {source}: {e}") from e

    logger.info(f"Loaded settings from {source} (identity backend: {settings.identity.backend})")
    return settings
