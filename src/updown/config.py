from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import UpdownError

LOG = logging.getLogger(__name__)

CONFIG_FILENAME = ".restic.yaml"


class _ScalarTextLoader(yaml.SafeLoader):
    """Safe loader that keeps numbers, booleans and dates as their source text."""


def _construct_text(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> str:
    return loader.construct_scalar(node)


for _tag in ("bool", "int", "float", "timestamp"):
    _ScalarTextLoader.add_constructor(f"tag:yaml.org,2002:{_tag}", _construct_text)


class ConfigurationError(UpdownError):
    """Raised when a directory's configuration cannot be used."""

    def __init__(self, message: str, path: Path, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.path = path
        self.cause = cause


class ConfigUnreadable(ConfigurationError):
    """Raised when the configuration file is missing or cannot be read."""


class ConfigMalformed(ConfigurationError):
    """Raised when the configuration file is not a valid document."""


class Configuration(BaseModel):
    """Per-directory overrides. Unset fields never override anything."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    host: Optional[str] = Field(default=None, description="Host label recorded with snapshots.")
    remote: Optional[str] = Field(default=None, description="Repository location.")
    excludes: Optional[List[str]] = Field(default=None, description="Exclude patterns for backups.")

    @field_validator("host", "remote")
    @classmethod
    def _empty_string_is_unset(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_validator("excludes")
    @classmethod
    def _empty_list_is_unset(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return value or None


def config_path(directory: Path) -> Path:
    return Path(directory) / CONFIG_FILENAME


def load_config(directory: Path, *, missing_ok: bool = False) -> Configuration:
    """Read and validate the configuration file inside ``directory``.

    With ``missing_ok`` an absent file yields an empty configuration; every
    other read failure is still raised as :class:`ConfigUnreadable`.
    """
    path = config_path(directory)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        if missing_ok:
            LOG.info("No configuration found at %s; using defaults", path)
            return Configuration()
        raise ConfigUnreadable(f"error while reading config {path}: {exc}", path, exc) from exc
    except OSError as exc:
        raise ConfigUnreadable(f"error while reading config {path}: {exc}", path, exc) from exc

    try:
        raw = yaml.load(text, Loader=_ScalarTextLoader)
    except yaml.YAMLError as exc:
        raise ConfigMalformed(f"error while parsing config {path}: {exc}", path, exc) from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigMalformed(
            f"error while parsing config {path}: expected a mapping, got {type(raw).__name__}",
            path,
        )

    try:
        config = Configuration.model_validate(raw)
    except ValidationError as exc:
        raise ConfigMalformed(f"error while parsing config {path}: {exc}", path, exc) from exc

    LOG.info("Loaded configuration from %s", path)
    return config
