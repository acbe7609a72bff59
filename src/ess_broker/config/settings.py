"""Configuration model for the provider.

Public API (the "studs"):
    ProviderConfig: Settings for the control plane, cluster sessions and timeouts
    load_config: Build a ProviderConfig from a YAML file and the environment
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

# Data-driven mapping: config field -> environment variable
_ENV_MAP: dict[str, str] = {
    "url": "ESS_PROVIDER_URL",
    "version": "ESS_PROVIDER_VERSION",
    "api_key": "ESS_PROVIDER_APIKEY",
    "user_agent": "ESS_PROVIDER_USERAGENT",
    "seed": "ESS_PROVIDER_SEED",
    "resync_delay_seconds": "ESS_PROVIDER_RESYNC_DELAY",
    "provision_timeout_seconds": "ESS_PROVIDER_PROVISION_TIMEOUT",
    "operation_timeout_seconds": "ESS_PROVIDER_OPERATION_TIMEOUT",
    "request_timeout_seconds": "ESS_PROVIDER_REQUEST_TIMEOUT",
    "verify_tls": "ESS_PROVIDER_VERIFY_TLS",
}

_REQUIRED_FIELDS = ("url", "api_key", "seed")

# Short key spellings accepted in config files
_FILE_KEYS: dict[str, str] = {
    "apikey": "api_key",
    "useragent": "user_agent",
}


class ProviderConfig(BaseModel):
    """Settings for the provider.

    Attributes:
        url: Control plane base URL (without the /api/<version> suffix)
        version: Control plane API version
        api_key: Control plane API key
        user_agent: User-Agent prefix sent to the control plane
        seed: Shared secret all credentials are derived from
        resync_delay_seconds: Wait after a password reset before using it.
            The reset is not visible cluster-wide immediately; too short a
            value makes the resync flaky under slow propagation.
        provision_timeout_seconds: Deadline for a provision call
        operation_timeout_seconds: Deadline for the other verbs
        request_timeout_seconds: Per-request HTTP timeout
        verify_tls: Verify TLS certificates of the control plane and clusters
        admin_ui_kind: Resource kind whose endpoint becomes the dashboard URL
        admin_ui_ref_id: Ref ID of the dashboard resource
        search_ref_id: Ref ID of the Elasticsearch resource
    """

    url: str = Field(..., description="Control plane base URL")
    version: str = Field("v1", description="Control plane API version")
    api_key: SecretStr = Field(..., description="Control plane API key")
    user_agent: str = Field("ess-servicebroker", description="User-Agent prefix")
    seed: SecretStr = Field(..., description="Credential derivation seed")
    resync_delay_seconds: float = Field(5.0, ge=0, description="Password reset settle delay")
    provision_timeout_seconds: float = Field(30.0, gt=0, description="Provision deadline")
    operation_timeout_seconds: float = Field(60.0, gt=0, description="Deadline for other verbs")
    request_timeout_seconds: float = Field(30.0, gt=0, description="HTTP request timeout")
    verify_tls: bool = Field(True, description="Verify TLS certificates")
    admin_ui_kind: str = Field("kibana", description="Dashboard resource kind")
    admin_ui_ref_id: str = Field("main-kibana", description="Dashboard resource ref ID")
    search_ref_id: str = Field("main-elasticsearch", description="Elasticsearch ref ID")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate url is http(s) and strip any trailing slash."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"url must start with 'https://' or 'http://': {v!r}")
        return v.rstrip("/")

    @property
    def api_url(self) -> str:
        return f"{self.url}/api/{self.version}"

    @classmethod
    def from_env(cls, base: dict[str, Any] | None = None) -> "ProviderConfig":
        """Create ProviderConfig from environment variables.

        Environment variables (ESS_PROVIDER_URL, ESS_PROVIDER_APIKEY,
        ESS_PROVIDER_SEED, ...) override values in ``base``.

        Args:
            base: Values read from a config file, if any

        Returns:
            ProviderConfig instance

        Raises:
            ValueError: If a required setting is missing
        """
        kwargs: dict[str, Any] = dict(base or {})
        for field, env_var in _ENV_MAP.items():
            value = os.environ.get(env_var)
            if value is not None:
                kwargs[field] = value

        for field in _REQUIRED_FIELDS:
            if not kwargs.get(field):
                raise ValueError(
                    f"provider.{field} must be set in the config file or via {_ENV_MAP[field]}"
                )

        return cls(**kwargs)


def load_config(path: Path | str | None = None) -> ProviderConfig:
    """Load provider settings from a YAML file, overlaid by the environment.

    The file holds the settings under a top-level ``provider`` key::

        provider:
          url: https://api.elastic-cloud.com
          apikey: ...
          seed: ...

    Args:
        path: Path to the YAML config file, or None to use the environment only

    Returns:
        ProviderConfig instance

    Raises:
        FileNotFoundError: If path is given but does not exist
        ValueError: If the file is not a mapping or required settings are missing
    """
    base: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("Config file must contain a YAML mapping")
        section = data.get("provider", {}) or {}
        if not isinstance(section, dict):
            raise ValueError("'provider' section must be a mapping")
        base = {_FILE_KEYS.get(k, k): v for k, v in section.items()}

    return ProviderConfig.from_env(base)


__all__ = ["ProviderConfig", "load_config"]
