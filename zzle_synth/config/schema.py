"""
Configuration schema for zzle_synth solver settings.

Provides pydantic models for tuning the speed vs completeness tradeoff
of the synthesis engine.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


# Current config schema version
CONFIG_VERSION = "1.0.0"

VALID_STRATEGIES = {
    "exhaustive_deepening",
    "constraint_guided_dfs",
    "adaptive_deepening",
    "beam_search",
}


class PresetName(str, Enum):
    """Available configuration presets."""
    FAST = "fast"
    BALANCED = "balanced"
    THOROUGH = "thorough"
    CUSTOM = "custom"


class SearchDials(BaseModel):
    """
    Configuration for the program search.

    Controls which strategy runs and how much of the program space it covers.
    """

    strategy: str = Field(
        default="exhaustive_deepening",
        description="Search strategy: exhaustive_deepening, constraint_guided_dfs, "
                    "adaptive_deepening, beam_search"
    )

    use_pruning: bool = Field(
        default=True,
        description="Reject dominated instruction sequences before running them"
    )

    max_total_instructions: Optional[int] = Field(
        default=None,
        ge=1,
        le=36,
        description="Cap on total instructions searched (None = sum of function budgets)"
    )

    beam_width: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Programs kept per depth by beam search"
    )

    beam_max_depth: int = Field(
        default=8,
        ge=1,
        le=36,
        description="Maximum program size explored by beam search"
    )

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        if v not in VALID_STRATEGIES:
            raise ValueError(f"strategy must be one of {sorted(VALID_STRATEGIES)}")
        return v


class VMDials(BaseModel):
    """
    Configuration for the instruction interpreter.

    Controls how long a single candidate may run before it is abandoned.
    """

    max_steps: int = Field(
        default=1000,
        ge=10,
        le=100000,
        description="Step cap for one program run"
    )

    stack_limit: int = Field(
        default=100,
        ge=10,
        le=10000,
        description="Pending instructions allowed before a stack overflow"
    )

    loop_detection: bool = Field(
        default=True,
        description="End runs that revisit an identical state"
    )

    stack_preview: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Stack-head instructions included in state keys"
    )


class AdaptiveDials(BaseModel):
    """
    Configuration for adaptive step-cap widening.

    Only used by the adaptive_deepening strategy.
    """

    initial_step_cap: int = Field(
        default=50,
        ge=1,
        le=100000,
        description="Step cap used the first time a tier is searched"
    )

    step_increment: int = Field(
        default=50,
        ge=1,
        le=10000,
        description="Step cap increase when a tier is widened"
    )

    instruction_weight: int = Field(
        default=1000,
        ge=1,
        le=1000000,
        description="Cost of one extra instruction relative to one extra step"
    )

    death_ratio_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Share of step-limited runs above which a tier is widened"
    )


class PerformanceDials(BaseModel):
    """
    Configuration for time budget and reporting.
    """

    timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=86400.0,
        description="Wall-clock budget for one level"
    )

    check_interval: int = Field(
        default=500,
        ge=1,
        le=1000000,
        description="Candidates tested between deadline and cancellation checks"
    )

    write_traces: bool = Field(
        default=False,
        description="Write JSONL solve traces"
    )

    trace_dir: str = Field(
        default="traces",
        description="Directory for trace files"
    )


class ProjectConfig(BaseModel):
    """
    Top-level solver configuration.

    Aggregates all dial configurations with versioning and metadata.
    """

    config_version: str = Field(
        default=CONFIG_VERSION,
        description="Schema version for this configuration"
    )

    preset: PresetName = Field(
        default=PresetName.BALANCED,
        description="Base preset (values can be overridden)"
    )

    description: Optional[str] = Field(
        default=None,
        description="Optional description of this configuration"
    )

    search: SearchDials = Field(
        default_factory=SearchDials,
        description="Program search configuration"
    )

    vm: VMDials = Field(
        default_factory=VMDials,
        description="Interpreter configuration"
    )

    adaptive: AdaptiveDials = Field(
        default_factory=AdaptiveDials,
        description="Adaptive deepening configuration"
    )

    performance: PerformanceDials = Field(
        default_factory=PerformanceDials,
        description="Time budget and reporting configuration"
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectConfig":
        """Create from dictionary."""
        return cls.model_validate(data)

    def merge_with(self, overrides: dict[str, Any]) -> "ProjectConfig":
        """
        Create a new config by merging overrides onto this config.

        Args:
            overrides: Dictionary of values to override

        Returns:
            New ProjectConfig with merged values
        """
        from .validate import merge_configs
        return merge_configs(self, overrides)


ConfigDict = dict[str, Any]
