"""
Configuration validator for config.yaml / config.json.

Validates structure, field types, and common misconfigurations.
"""

from __future__ import annotations

import logging
from typing import Any


logger = logging.getLogger(__name__)

KNOWN_FEATURES = ("chat_single", "chat_thread", "regenerate_button", "delete_button", "view_system_instruction")
ID_LIST_KEYS = ("owner_ids", "staff_users", "staff_roles", "blacklist_roles")
BOOL_KEYS = ("staff_can_bypass_feature_restrictions", "allow_collaboration", "auto_create_commands")
PER_MODEL_LIMIT_KEYS = ("max_input_chars_per_model", "max_completion_tokens_per_model")


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(cfg: dict[str, Any], config_path: str = "config.yaml") -> None:
    """
    Comprehensive validation of the bot configuration.

    Raises ConfigValidationError if validation fails.
    Logs detailed error messages before raising.

    Args:
        cfg: The loaded config dictionary
        config_path: Path to config file (for error messages)

    Raises:
        ConfigValidationError: If validation fails
    """
    errors = []
    warnings = []

    # ── Check root structure ────────────────────────────────────────────────
    if not isinstance(cfg, dict):
        errors.append(f"Config root must be a mapping, got {type(cfg).__name__}")
        cfg = {}

    # ── Credentials ─────────────────────────────────────────────────────────
    for key in ("bot_token", "openai_api_key", "openai_base_url", "default_model", "terms", "consent_database"):
        if key in cfg and cfg[key] is not None and not isinstance(cfg[key], str):
            errors.append(f"'{key}' must be a string, got {type(cfg[key]).__name__}")

    # ── Id lists ────────────────────────────────────────────────────────────
    for key in ID_LIST_KEYS:
        if key in cfg:
            ids = cfg[key]
            if not isinstance(ids, list):
                errors.append(f"'{key}' must be a list, got {type(ids).__name__}")
                continue
            for i, value in enumerate(ids):
                if isinstance(value, bool) or not isinstance(value, (int, str)) or not str(value).isdigit():
                    errors.append(f"'{key}[{i}]' must be a Discord id, got {value!r}")

    # ── Plain booleans ──────────────────────────────────────────────────────
    for key in BOOL_KEYS:
        if key in cfg and not isinstance(cfg[key], bool):
            errors.append(f"'{key}' must be boolean, got {type(cfg[key]).__name__}")

    # ── Numeric limits ──────────────────────────────────────────────────────
    if cfg.get("global_user_cooldown") is not None:
        cooldown = cfg["global_user_cooldown"]
        if not _is_number(cooldown) or cooldown < 0:
            errors.append(f"'global_user_cooldown' must be a non-negative number of milliseconds, got {cooldown!r}")

    if "max_thread_followup_length" in cfg:
        length = cfg["max_thread_followup_length"]
        if not isinstance(length, int) or isinstance(length, bool) or length < 1:
            errors.append(f"'max_thread_followup_length' must be a positive integer, got {length!r}")

    # ── Validate features section ───────────────────────────────────────────
    if "features" in cfg:
        features = cfg["features"]
        if not isinstance(features, dict):
            errors.append(f"'features' must be a mapping, got {type(features).__name__}")
        else:
            for name, value in features.items():
                if name not in KNOWN_FEATURES:
                    warnings.append(
                        f"Unknown feature '{name}' is ignored. "
                        f"Known features: {', '.join(KNOWN_FEATURES)}"
                    )
                elif not isinstance(value, bool):
                    errors.append(f"Feature '{name}' must be boolean, got {type(value).__name__}")

    # ── Validate dev_config section ─────────────────────────────────────────
    if "dev_config" in cfg:
        dev = cfg["dev_config"]
        if not isinstance(dev, dict):
            errors.append(f"'dev_config' must be a mapping, got {type(dev).__name__}")
        else:
            for key in ("enabled", "debug_discord_messages", "debug_logs"):
                if key in dev and not isinstance(dev[key], bool):
                    errors.append(f"'dev_config.{key}' must be boolean, got {type(dev[key]).__name__}")

    # ── Validate selectable_models ──────────────────────────────────────────
    if "selectable_models" in cfg:
        models = cfg["selectable_models"]
        if not isinstance(models, list):
            errors.append(
                f"'selectable_models' must be a list, got {type(models).__name__}. "
                f"Use: selectable_models:\n  - \"gpt-4o\"\n  - \"gpt-4o-mini\""
            )
        else:
            if len(models) > 25:
                errors.append(f"'selectable_models' supports at most 25 entries, got {len(models)}")
            for i, model in enumerate(models):
                if isinstance(model, dict):
                    if not isinstance(model.get("name"), str) or not model.get("name"):
                        errors.append(f"'selectable_models[{i}]' is missing a 'name' string")
                elif not isinstance(model, str) or not model:
                    errors.append(
                        f"'selectable_models[{i}]' must be a string or mapping, "
                        f"got {type(model).__name__}"
                    )

    # ── Validate selectable_system_instructions ─────────────────────────────
    if "selectable_system_instructions" in cfg:
        instructions = cfg["selectable_system_instructions"]
        if not isinstance(instructions, list):
            errors.append(
                f"'selectable_system_instructions' must be a list, got {type(instructions).__name__}"
            )
        else:
            seen: set[str] = set()
            for i, instruction in enumerate(instructions):
                if not isinstance(instruction, dict):
                    errors.append(
                        f"'selectable_system_instructions[{i}]' must be a mapping, "
                        f"got {type(instruction).__name__}"
                    )
                    continue
                name = instruction.get("name")
                if not isinstance(name, str) or not name:
                    errors.append(f"'selectable_system_instructions[{i}]' is missing a 'name' string")
                    continue
                if name.lower() == "default":
                    errors.append(
                        f"'selectable_system_instructions[{i}]' uses the reserved name 'default'"
                    )
                if name.lower() in seen:
                    errors.append(f"Duplicate system instruction name '{name}' (names are case-insensitive)")
                seen.add(name.lower())
                if not isinstance(instruction.get("system_instruction"), str):
                    warnings.append(f"System instruction '{name}' has no 'system_instruction' text")
            if len(instructions) > 24:
                warnings.append(
                    f"Only the first 24 of {len(instructions)} system instructions are offered as choices"
                )

    # ── Validate generation_parameters section ──────────────────────────────
    if "generation_parameters" in cfg:
        params = cfg["generation_parameters"]
        if not isinstance(params, dict):
            errors.append(
                f"'generation_parameters' must be a mapping, got {type(params).__name__}"
            )
        else:
            if "moderate_prompts" in params and not isinstance(params["moderate_prompts"], bool):
                errors.append("'generation_parameters.moderate_prompts' must be boolean")
            if params.get("default_system_instruction") is not None and not isinstance(
                params["default_system_instruction"], str
            ):
                errors.append("'generation_parameters.default_system_instruction' must be a string")
            for key in ("temperature", "top_p", "presence_penalty", "frequency_penalty"):
                if params.get(key) is not None and not _is_number(params[key]):
                    errors.append(f"'generation_parameters.{key}' must be a number, got {params[key]!r}")
            for key in PER_MODEL_LIMIT_KEYS:
                if key not in params:
                    continue
                limits = params[key]
                if not isinstance(limits, dict):
                    errors.append(
                        f"'generation_parameters.{key}' must be a mapping, "
                        f"got {type(limits).__name__}"
                    )
                    continue
                for model_name, limit in limits.items():
                    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
                        errors.append(
                            f"'generation_parameters.{key}.{model_name}' must be a positive integer, "
                            f"got {limit!r}"
                        )

    # ── Log warnings ────────────────────────────────────────────────────────
    for warning in warnings:
        logger.warning("Config warning: %s", warning)

    # ── Log errors and exit if any ──────────────────────────────────────────
    if errors:
        logger.error("=" * 70)
        logger.error("CONFIG VALIDATION FAILED (%s)", config_path)
        logger.error("=" * 70)
        for i, error in enumerate(errors, 1):
            logger.error("[%d] %s", i, error)
        logger.error("=" * 70)
        logger.error("Please fix the errors above and restart the bot.")
        logger.error("=" * 70)
        raise ConfigValidationError(f"Config validation failed with {len(errors)} error(s)")
