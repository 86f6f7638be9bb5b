from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml

from .models import BotConfig
from .validator import validate_config, ConfigValidationError


DEFAULT_CONFIG_FILE = "config.yaml"
CONFIG_ENV_VAR = "CONFIG_PATH"


def get_config_path() -> str:
    """
    Resolve the config path, preferring an explicit environment override.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    return DEFAULT_CONFIG_FILE


def _load_raw_config(path: str | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    try:
        with open(cfg_path, encoding="utf-8") as f:
            if Path(cfg_path).suffix.lower() == ".json":
                data = json.load(f) or {}
            else:
                data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logging.error("Config file not found: %s", cfg_path)
        sys.exit(1)
    except json.JSONDecodeError as e:
        logging.error("JSON parsing error in %s: %s", cfg_path, e)
        sys.exit(1)
    except yaml.YAMLError as e:
        logging.error("YAML parsing error in %s: %s", cfg_path, e)
        sys.exit(1)

    if not isinstance(data, dict):
        logging.error("Config root must be a mapping, got %s", type(data).__name__)
        sys.exit(1)

    return data


def get_config(path: str | None = None) -> BotConfig:
    """
    Public helper for loading configuration.

    - Respects CONFIG_PATH if set.
    - Accepts YAML, or JSON when the file ends in `.json`.
    - Performs comprehensive validation.
    - Exits with error code 1 if validation fails.
    - Returns the frozen BotConfig; it is read once and never reloaded.
    """
    cfg_path = path or get_config_path()
    cfg = _load_raw_config(cfg_path)

    try:
        validate_config(cfg, cfg_path)
    except ConfigValidationError:
        sys.exit(1)

    return BotConfig.from_dict(cfg)
