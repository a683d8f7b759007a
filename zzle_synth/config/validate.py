"""
Configuration validation and normalization for zzle_synth.

Provides utilities for validating configuration ranges, merging overrides,
and normalizing configurations.
"""

from __future__ import annotations

import copy
from typing import Any, Optional

from pydantic import ValidationError

from .schema import (
    CONFIG_VERSION,
    PresetName,
    ProjectConfig,
)
from .presets import get_preset


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors or []


class ConfigVersionError(Exception):
    """Raised when configuration version is incompatible."""

    def __init__(self, found_version: str, expected_version: str):
        super().__init__(
            f"Configuration version mismatch: found {found_version}, "
            f"expected {expected_version}"
        )
        self.found_version = found_version
        self.expected_version = expected_version


def validate_config(config: ProjectConfig | dict[str, Any]) -> ProjectConfig:
    """
    Validate a configuration and return a ProjectConfig.

    Args:
        config: ProjectConfig instance or dictionary

    Returns:
        Validated ProjectConfig

    Raises:
        ConfigValidationError: If validation fails
        ConfigVersionError: If version is incompatible
    """
    if isinstance(config, dict):
        try:
            config = ProjectConfig.model_validate(config)
        except ValidationError as e:
            errors = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s)",
                errors=errors,
            )

    if not is_version_compatible(config.config_version):
        raise ConfigVersionError(config.config_version, CONFIG_VERSION)

    semantic_errors = _validate_semantic_constraints(config)
    if semantic_errors:
        raise ConfigValidationError(
            f"Semantic validation failed with {len(semantic_errors)} error(s)",
            errors=semantic_errors,
        )

    return config


def is_version_compatible(version: str) -> bool:
    """
    Check if a configuration version is compatible with current schema.

    Major versions must match; the minor version may not be newer.
    """
    try:
        current_parts = CONFIG_VERSION.split(".")
        check_parts = version.split(".")

        if len(check_parts) != 3:
            return False
        if current_parts[0] != check_parts[0]:
            return False
        if int(check_parts[1]) > int(current_parts[1]):
            return False
        return True
    except (ValueError, IndexError):
        return False


def _validate_semantic_constraints(config: ProjectConfig) -> list[dict]:
    """
    Validate constraints that span several dials.

    Returns:
        List of error dictionaries (empty if valid)
    """
    errors = []

    if config.adaptive.initial_step_cap > config.vm.max_steps:
        errors.append({
            "loc": ["adaptive", "initial_step_cap"],
            "msg": "initial_step_cap must not exceed vm.max_steps",
            "type": "semantic_error",
        })

    if config.search.strategy == "adaptive_deepening":
        if config.adaptive.instruction_weight < config.vm.max_steps:
            errors.append({
                "loc": ["adaptive", "instruction_weight"],
                "msg": "instruction_weight should be >= vm.max_steps so smaller tiers are searched first",
                "type": "semantic_warning",
            })

    if config.search.strategy == "beam_search" and config.search.max_total_instructions:
        if config.search.beam_max_depth > config.search.max_total_instructions:
            errors.append({
                "loc": ["search", "beam_max_depth"],
                "msg": "beam_max_depth must not exceed max_total_instructions",
                "type": "semantic_error",
            })

    return errors


def merge_configs(
    base: ProjectConfig,
    overrides: dict[str, Any],
    validate: bool = True,
) -> ProjectConfig:
    """
    Merge overrides onto a base configuration.

    Args:
        base: Base configuration to start from
        overrides: Dictionary of values to override
        validate: Whether to validate the merged result

    Returns:
        New ProjectConfig with merged values

    Raises:
        ConfigValidationError: If validation fails (when validate=True)
    """
    merged = _deep_merge(base.model_dump(), overrides)

    if overrides:
        merged["preset"] = PresetName.CUSTOM.value

    if validate:
        return validate_config(merged)
    return ProjectConfig.model_validate(merged)


def _deep_merge(base: dict, overrides: dict) -> dict:
    result = copy.deepcopy(base)

    for key, value in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def normalize_config(config: ProjectConfig) -> ProjectConfig:
    """
    Normalize a configuration to ensure consistency.

    Args:
        config: Configuration to normalize

    Returns:
        Normalized configuration
    """
    data = config.model_dump()
    data["config_version"] = CONFIG_VERSION

    # Beam search can never grow past the total instruction cap.
    cap = data["search"]["max_total_instructions"]
    if cap is not None:
        data["search"]["beam_max_depth"] = min(data["search"]["beam_max_depth"], cap)

    return ProjectConfig.model_validate(data)


def create_config(
    preset: PresetName | str = PresetName.BALANCED,
    overrides: Optional[dict[str, Any]] = None,
    validate: bool = True,
    normalize: bool = True,
) -> ProjectConfig:
    """
    Create a configuration from a preset with optional overrides.

    Args:
        preset: Base preset to start from
        overrides: Optional dictionary of overrides
        validate: Whether to validate the config
        normalize: Whether to normalize the config

    Returns:
        ProjectConfig instance

    Example:
        ```python
        config = create_config(
            preset="fast",
            overrides={"vm": {"max_steps": 2000}}
        )
        ```
    """
    base = get_preset(preset)

    if overrides:
        config = merge_configs(base, overrides, validate=validate)
    else:
        config = base
        if validate:
            config = validate_config(config)

    if normalize:
        config = normalize_config(config)

    return config


def diff_configs(
    config1: ProjectConfig,
    config2: ProjectConfig,
) -> dict[str, Any]:
    """
    Compute the difference between two configurations.

    Returns:
        Nested dictionary of {"from": ..., "to": ...} for every changed value
    """
    return _diff_dicts(config1.model_dump(), config2.model_dump())


def _diff_dicts(dict1: dict, dict2: dict) -> dict:
    diff = {}

    for key in set(dict1.keys()) | set(dict2.keys()):
        if key not in dict1:
            diff[key] = {"added": dict2[key]}
        elif key not in dict2:
            diff[key] = {"removed": dict1[key]}
        elif isinstance(dict1[key], dict) and isinstance(dict2[key], dict):
            nested_diff = _diff_dicts(dict1[key], dict2[key])
            if nested_diff:
                diff[key] = nested_diff
        elif dict1[key] != dict2[key]:
            diff[key] = {"from": dict1[key], "to": dict2[key]}

    return diff
