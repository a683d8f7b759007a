"""CRE (candidate search engine) module."""

from .constraints import Constraints, DEFAULT_RULES, propagate, check_sequence
from .generator import CandidateGenerator, GeneratorStats
from .synthesizer import (
    Synthesizer,
    SynthesisConfig,
    SearchResult,
    SearchStatus,
    SearchStrategy,
    EngineState,
    Solution,
    CancellationToken,
    IterativeDeepeningSynthesizer,
    ConstraintGuidedSynthesizer,
    AdaptiveDeepeningSynthesizer,
    BeamSearchSynthesizer,
    create_synthesizer,
    solve_level,
)

__all__ = [
    # Constraints
    "Constraints",
    "DEFAULT_RULES",
    "propagate",
    "check_sequence",
    # Generator
    "CandidateGenerator",
    "GeneratorStats",
    # Synthesizer
    "Synthesizer",
    "SynthesisConfig",
    "SearchResult",
    "SearchStatus",
    "SearchStrategy",
    "EngineState",
    "Solution",
    "CancellationToken",
    "IterativeDeepeningSynthesizer",
    "ConstraintGuidedSynthesizer",
    "AdaptiveDeepeningSynthesizer",
    "BeamSearchSynthesizer",
    "create_synthesizer",
    "solve_level",
]
