# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/winboot/config/loader.py

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import InputValidationError
from .models import BootstrapperConfig

log = logging.getLogger("winboot")

CONFIG_ENV_VAR = "WINBOOT_CONFIG"


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_config_file(path: str | Path | None) -> Path | None:
    if path:
        return Path(path)

    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.debug("%s=%s does not exist, skipping", CONFIG_ENV_VAR, env)
    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    try:
        raw = path.read_text()
    except OSError as exc:
        raise InputValidationError(f"could not read config file {path}: {exc}") from exc
    expanded = os.path.expandvars(raw)
    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as exc:
        raise InputValidationError(f"config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise InputValidationError(f"config file {path} must contain a mapping")
    return data


def load_config(path: str | Path | None = None, overrides: dict | None = None) -> BootstrapperConfig:
    """
    Build the bootstrapper configuration.

    Values come from, lowest precedence first:
      1. model defaults
      2. a YAML file given by *path* or the ``WINBOOT_CONFIG`` env var
      3. *overrides* (CLI options); ``None`` and ``""`` never overwrite
    """
    data: dict = {}
    config_path = _find_config_file(path)
    if config_path:
        log.debug("Loading config from %s", config_path)
        data = _load_yaml(config_path)

    _deep_merge(data, overrides or {})

    try:
        return BootstrapperConfig.model_validate(data)
    except ValidationError as exc:
        raise InputValidationError(f"invalid configuration: {exc}") from exc
