# -*- coding: utf-8 -*-
"""Process configuration.

Values come from, highest priority first: explicit overrides (command line
flags), ``ADAM_*`` environment variables, the TOML file
(``~/.config/adam.toml`` unless ``ADAM_CONFIG`` or ``config_file`` says
otherwise) and the defaults below.
"""

import logging
import os
from contextvars import ContextVar
from typing import Optional, Union

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .cache import BACKENDS, open_cache
from .filestore import FileStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = os.path.join("~", ".config", "adam.toml")

ID_CACHE_NAME = "ids"
HASH_CACHE_NAME = "sha256sum"

_CONFIG_FILE_OVERRIDE: ContextVar[Optional[str]] = ContextVar(
    "adam_config_file", default=None)


def config_file() -> str:
    """Return the path of the TOML configuration file in effect."""
    path = (_CONFIG_FILE_OVERRIDE.get()
            or os.environ.get("ADAM_CONFIG")
            or DEFAULT_CONFIG_FILE)
    return os.path.expanduser(path)


class Settings(BaseSettings):
    """Settings of one adam server."""

    model_config = SettingsConfigDict(
        env_prefix="ADAM_",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8080
    base_dir: str = os.path.join("~", ".adam")
    cache_dir: str = os.path.join("~", ".cache", "adam")
    cache_backend: str = "sqlite"
    workers: int = 8
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings,
                                   env_settings, dotenv_settings,
                                   file_secret_settings):
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=config_file()),
        )

    @field_validator("port", mode="before")
    @classmethod
    def _strip_port_colon(cls, value: Union[int, str]):
        # Accept the ":8080" listen-address form as well as a bare number.
        if isinstance(value, str):
            value = value.strip().lstrip(":")
        return value

    @field_validator("base_dir", "cache_dir")
    @classmethod
    def _expand_path(cls, value: str) -> str:
        return os.path.abspath(os.path.expanduser(value))

    @field_validator("cache_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in BACKENDS:
            raise ValueError("cache_backend must be one of {0}"
                             .format(", ".join(sorted(BACKENDS))))
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def id_cache_location(self) -> str:
        return os.path.join(self.cache_dir, ID_CACHE_NAME)

    @property
    def hash_cache_location(self) -> str:
        return os.path.join(self.cache_dir, HASH_CACHE_NAME)


def load_settings(config_file: Optional[str] = None, **overrides) -> Settings:
    """Build :class:`Settings`. Overrides set to ``None`` are ignored so that
    unset command line flags fall through to the other sources.
    """
    overrides = {key: value for key, value in overrides.items()
                 if value is not None}

    token = _CONFIG_FILE_OVERRIDE.set(config_file)
    try:
        return Settings(**overrides)
    finally:
        _CONFIG_FILE_OVERRIDE.reset(token)


def build_store(settings: Settings) -> FileStore:
    """Create the directories named by `settings` and the store over them."""
    os.makedirs(settings.base_dir, mode=0o755, exist_ok=True)
    os.makedirs(settings.cache_dir, mode=0o755, exist_ok=True)

    logger.info("base directory: %s", settings.base_dir)
    logger.info("%s caches in: %s", settings.cache_backend, settings.cache_dir)

    return FileStore(
        settings.base_dir,
        id_cache=open_cache(settings.cache_backend, settings.id_cache_location),
        hash_cache=open_cache(settings.cache_backend, settings.hash_cache_location),
        workers=settings.workers,
    )
