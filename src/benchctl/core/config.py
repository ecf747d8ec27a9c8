# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Config loading for benchmark runs.

load_config() is the only place that reads the config file. Everything after
it works on the resulting immutable RunConfig.
"""

import copy
import logging
from pathlib import Path
from typing import Any

import yaml
from marshmallow import ValidationError

from .errors import ConfigurationError
from .schema import RunConfig

logger = logging.getLogger(__name__)


def merge_overrides(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge overrides into a copy of base.

    Nested dicts are merged key by key; any other value replaces the base
    value. None values in overrides are ignored so unset CLI flags do not
    clobber the file.
    """
    result = copy.deepcopy(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_overrides(result[key], value)
        else:
            result[key] = value
    return result


def load_config_dict(data: dict[str, Any]) -> RunConfig:
    """Build and validate a RunConfig from an already-parsed mapping."""
    try:
        config = RunConfig.Schema().load(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e.messages}") from e

    config.validate()
    return config


def load_config(path: Path, overrides: dict[str, Any] | None = None) -> RunConfig:
    """Load a YAML run configuration.

    Args:
        path: Path to the YAML file
        overrides: Values (typically from the CLI) merged over the file

    Returns:
        Validated RunConfig

    Raises:
        ConfigurationError: file missing, unparseable or invalid
        ConfigurationMissing: a required setting is not defined
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"File {path} does not exist, terminating.")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must be a mapping, got {type(data).__name__}")

    if overrides:
        data = merge_overrides(data, overrides)

    # Relative resources are looked up next to the config file
    resources_dir = data.get("resources_dir")
    if resources_dir is None:
        data["resources_dir"] = str(path.parent.resolve())
    elif not Path(resources_dir).is_absolute():
        data["resources_dir"] = str((path.parent / resources_dir).resolve())

    config = load_config_dict(data)
    logger.debug("Loaded config from %s: %d servers, %d drivers", path, len(config.servers), len(config.drivers))
    return config
