"""
zzle_synth configuration system.

Quick Start:
    ```python
    from zzle_synth.config import create_config
    from zzle_synth.cre.synthesizer import SynthesisConfig, solve_level

    config = create_config(preset="thorough", overrides={"vm": {"max_steps": 5000}})
    result = solve_level(level, SynthesisConfig.from_project_config(config))
    ```

Available Presets:
    - fast: constraint-guided search, 5 second budget
    - balanced: exhaustive deepening, 30 second budget
    - thorough: adaptive deepening, 5 minute budget
"""

from .schema import (
    CONFIG_VERSION,
    PresetName,
    ProjectConfig,
    SearchDials,
    VMDials,
    AdaptiveDials,
    PerformanceDials,
    ConfigDict,
)

from .presets import (
    get_preset,
    get_fast_preset,
    get_balanced_preset,
    get_thorough_preset,
    list_presets,
    PRESETS,
)

from .validate import (
    ConfigValidationError,
    ConfigVersionError,
    validate_config,
    merge_configs,
    normalize_config,
    create_config,
    diff_configs,
    is_version_compatible,
)

__all__ = [
    # Version
    "CONFIG_VERSION",
    # Schema
    "PresetName",
    "ProjectConfig",
    "SearchDials",
    "VMDials",
    "AdaptiveDials",
    "PerformanceDials",
    "ConfigDict",
    # Presets
    "get_preset",
    "get_fast_preset",
    "get_balanced_preset",
    "get_thorough_preset",
    "list_presets",
    "PRESETS",
    # Validation
    "ConfigValidationError",
    "ConfigVersionError",
    "validate_config",
    "merge_configs",
    "normalize_config",
    "create_config",
    "diff_configs",
    "is_version_compatible",
]
