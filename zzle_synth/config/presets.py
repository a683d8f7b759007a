"""
Configuration presets for zzle_synth.

Defines Fast, Balanced, and Thorough presets for different time budgets.
"""

from __future__ import annotations

from typing import Any

from .schema import (
    CONFIG_VERSION,
    PresetName,
    ProjectConfig,
    SearchDials,
    VMDials,
    AdaptiveDials,
    PerformanceDials,
)


def get_fast_preset() -> ProjectConfig:
    """
    Fast preset for quick sweeps over many levels.

    Tradeoffs:
    - Short timeout and step cap
    - Constraint-guided ordering to reach likely solutions sooner
    """
    return ProjectConfig(
        config_version=CONFIG_VERSION,
        preset=PresetName.FAST,
        description="Short time budget for sweeping many levels",
        search=SearchDials(
            strategy="constraint_guided_dfs",
            use_pruning=True,
            beam_width=50,
            beam_max_depth=6,
        ),
        vm=VMDials(
            max_steps=500,
            stack_limit=100,
            loop_detection=True,
            stack_preview=5,
        ),
        adaptive=AdaptiveDials(
            initial_step_cap=50,
            step_increment=50,
            instruction_weight=1000,
            death_ratio_threshold=0.3,
        ),
        performance=PerformanceDials(
            timeout_seconds=5.0,
            check_interval=200,
        ),
    )


def get_balanced_preset() -> ProjectConfig:
    """
    Balanced preset; the default.

    Plain iterative deepening, which returns instruction-minimal programs.
    """
    return ProjectConfig(
        config_version=CONFIG_VERSION,
        preset=PresetName.BALANCED,
        description="Exhaustive deepening with a moderate time budget",
        search=SearchDials(
            strategy="exhaustive_deepening",
            use_pruning=True,
            beam_width=100,
            beam_max_depth=8,
        ),
        vm=VMDials(
            max_steps=1000,
            stack_limit=100,
            loop_detection=True,
            stack_preview=5,
        ),
        adaptive=AdaptiveDials(
            initial_step_cap=50,
            step_increment=50,
            instruction_weight=1000,
            death_ratio_threshold=0.3,
        ),
        performance=PerformanceDials(
            timeout_seconds=30.0,
            check_interval=500,
        ),
    )


def get_thorough_preset() -> ProjectConfig:
    """
    Thorough preset for hard levels.

    Tradeoffs:
    - Long timeout and a generous step cap
    - Adaptive deepening so long-running loops get more steps
    """
    return ProjectConfig(
        config_version=CONFIG_VERSION,
        preset=PresetName.THOROUGH,
        description="Adaptive deepening with a long time budget",
        search=SearchDials(
            strategy="adaptive_deepening",
            use_pruning=True,
            beam_width=500,
            beam_max_depth=12,
        ),
        vm=VMDials(
            max_steps=2000,
            stack_limit=100,
            loop_detection=True,
            stack_preview=8,
        ),
        adaptive=AdaptiveDials(
            initial_step_cap=100,
            step_increment=100,
            instruction_weight=10000,
            death_ratio_threshold=0.3,
        ),
        performance=PerformanceDials(
            timeout_seconds=300.0,
            check_interval=1000,
        ),
    )


PRESETS = {
    PresetName.FAST: get_fast_preset,
    PresetName.BALANCED: get_balanced_preset,
    PresetName.THOROUGH: get_thorough_preset,
}


def get_preset(name: PresetName | str) -> ProjectConfig:
    """
    Get a preset configuration by name.

    Args:
        name: Preset name (fast, balanced, thorough)

    Returns:
        ProjectConfig for the preset

    Raises:
        ValueError: If preset name is invalid
    """
    if isinstance(name, str):
        try:
            name = PresetName(name.lower())
        except ValueError:
            valid = [p.value for p in PRESETS]
            raise ValueError(f"Invalid preset '{name}'. Valid presets: {valid}")

    if name not in PRESETS:
        raise ValueError(f"No preset factory for {name}")

    return PRESETS[name]()


def list_presets() -> list[dict[str, Any]]:
    """List all available presets with their descriptions."""
    return [
        {
            "name": name.value,
            "description": factory().description,
            "strategy": factory().search.strategy,
        }
        for name, factory in PRESETS.items()
    ]
