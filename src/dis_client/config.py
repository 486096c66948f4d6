"""
Client configuration.

Values come from keyword arguments / a plain dict, then ``DIS_*`` environment
variables, then an optional ``.env`` file.
"""

from __future__ import annotations

import importlib
from typing import Any, Callable, Optional, Union
from urllib.parse import urlparse

from loguru import logger
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .backoff import BackoffProfile
from .errors import DISClientError


class DISConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DIS_", env_file=".env", extra="ignore")

    endpoint: Optional[str] = None
    manager_endpoint: Optional[str] = None  # stream management; defaults to endpoint
    project_id: Optional[str] = None
    region: Optional[str] = None
    security_token: Optional[str] = None
    timeout_s: float = 30.0

    # ---- put-records retry ----
    records_retries: int = 20
    backoff_initial_interval_ms: int = 100
    backoff_multiplier: float = 2.0
    backoff_max_interval_ms: int = 30_000
    backoff_max_elapsed_ms: Optional[int] = None

    # ---- payload encryption ----
    data_encrypt_enabled: bool = False
    data_password: Optional[str] = None

    # "package.module:callable" taking and returning a DISConfig
    config_provider: Optional[str] = None

    @model_validator(mode="after")
    def _defaults(self):
        if self.records_retries < 0:
            raise ValueError("records_retries must be >= 0")
        if not self.manager_endpoint:
            self.manager_endpoint = self.endpoint
        return self

    @property
    def encrypt_enabled(self) -> bool:
        return self.data_encrypt_enabled and bool(self.data_password)

    def backoff_profile(self) -> BackoffProfile:
        return BackoffProfile(
            initial_interval_ms=self.backoff_initial_interval_ms,
            multiplier=self.backoff_multiplier,
            max_interval_ms=self.backoff_max_interval_ms,
            max_elapsed_ms=self.backoff_max_elapsed_ms,
        )

    def check(self) -> None:
        """Raise DISClientError if the client can not be built from this config."""
        if not self.region:
            raise DISClientError("region can not be null.")
        if not self.project_id:
            raise DISClientError("project id can not be null.")
        if not self.endpoint:
            raise DISClientError("endpoint can not be null.")
        for ep in (self.endpoint, self.manager_endpoint):
            if not is_valid_endpoint(ep):
                raise DISClientError(f"invalid endpoint: {ep}")


def is_valid_endpoint(endpoint: Optional[str]) -> bool:
    if not endpoint:
        return False
    parsed = urlparse(endpoint)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _load_provider(path: str) -> Callable[[DISConfig], DISConfig]:
    module_name, _, attr = path.partition(":")
    if not attr:
        module_name, _, attr = path.rpartition(".")
    return getattr(importlib.import_module(module_name), attr)


def apply_config_provider(cfg: DISConfig) -> DISConfig:
    """Let a user-supplied provider rewrite the config (e.g. decrypt secrets)."""
    if not cfg.config_provider:
        return cfg
    try:
        provider = _load_provider(cfg.config_provider)
        updated = provider(cfg)
    except Exception as e:
        raise DISClientError(
            f"Failed to call config provider [{cfg.config_provider}], error [{e}]"
        ) from e
    if not isinstance(updated, DISConfig):
        raise DISClientError(f"config provider [{cfg.config_provider}] must return a DISConfig")
    logger.debug(f"Config updated by provider {cfg.config_provider}")
    return updated


def build_config(config: Union[DISConfig, dict[str, Any], None] = None) -> DISConfig:
    if isinstance(config, DISConfig):
        cfg = config
    else:
        cfg = DISConfig(**(config or {}))
    return apply_config_provider(cfg)

