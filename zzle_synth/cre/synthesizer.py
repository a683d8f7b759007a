"""
Program synthesizer - searches for a program that collects every star.

All strategies share the interpreter, the candidate representation and the
pruning rules; they differ only in the order candidates are tried.
"""

import heapq
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, TYPE_CHECKING

from ..core.types import LevelSpec, validate_level
from ..dsl.hashing import dedupe_by_key
from ..dsl.instructions import Instruction, InstructionSet, Program
from ..dsl.interpreter import Interpreter, RunOutcome, RunStatus
from .constraints import DEFAULT_RULES, check_sequence, propagate
from .generator import CandidateGenerator

if TYPE_CHECKING:
    from ..config.schema import ProjectConfig
    from ..core.trace import JSONLTraceWriter, SolveTrace

logger = logging.getLogger(__name__)


class SearchStrategy(str, Enum):
    """Available search strategies."""
    EXHAUSTIVE_DEEPENING = "exhaustive_deepening"
    CONSTRAINT_GUIDED_DFS = "constraint_guided_dfs"
    ADAPTIVE_DEEPENING = "adaptive_deepening"
    BEAM_SEARCH = "beam_search"


class SearchStatus(Enum):
    """How a search ended."""
    SOLVED = "solved"
    EXHAUSTED = "exhausted"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class EngineState(Enum):
    """Lifecycle of a synthesizer."""
    IDLE = "idle"
    SEARCHING = "searching"
    SOLVED = "solved"
    EXHAUSTED = "exhausted"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


_FINAL_STATES = {
    SearchStatus.SOLVED: EngineState.SOLVED,
    SearchStatus.EXHAUSTED: EngineState.EXHAUSTED,
    SearchStatus.TIMEOUT: EngineState.TIMED_OUT,
    SearchStatus.CANCELLED: EngineState.CANCELLED,
}


@dataclass
class SynthesisConfig:
    """Configuration for synthesis."""
    strategy: SearchStrategy = SearchStrategy.EXHAUSTIVE_DEEPENING
    # Interpreter settings
    max_steps: int = 1000
    stack_limit: int = 100
    loop_detection: bool = True
    stack_preview: int = 5
    # Search settings
    use_pruning: bool = True
    max_total_instructions: Optional[int] = None  # None = sum of function budgets
    timeout_seconds: Optional[float] = 30.0  # None = no deadline
    check_interval: int = 500  # candidates between deadline/cancel checks
    # Adaptive deepening
    initial_step_cap: int = 50
    step_increment: int = 50
    instruction_weight: int = 1000
    death_ratio_threshold: float = 0.3
    # Beam search
    beam_width: int = 100
    beam_max_depth: int = 8
    # Traces
    write_traces: bool = False
    trace_dir: str = "traces"

    @classmethod
    def from_project_config(cls, config: "ProjectConfig") -> "SynthesisConfig":
        """Flatten a pydantic ProjectConfig into engine settings."""
        return cls(
            strategy=SearchStrategy(config.search.strategy),
            max_steps=config.vm.max_steps,
            stack_limit=config.vm.stack_limit,
            loop_detection=config.vm.loop_detection,
            stack_preview=config.vm.stack_preview,
            use_pruning=config.search.use_pruning,
            max_total_instructions=config.search.max_total_instructions,
            timeout_seconds=config.performance.timeout_seconds,
            check_interval=config.performance.check_interval,
            initial_step_cap=config.adaptive.initial_step_cap,
            step_increment=config.adaptive.step_increment,
            instruction_weight=config.adaptive.instruction_weight,
            death_ratio_threshold=config.adaptive.death_ratio_threshold,
            beam_width=config.search.beam_width,
            beam_max_depth=config.search.beam_max_depth,
            write_traces=config.performance.write_traces,
            trace_dir=config.performance.trace_dir,
        )


@dataclass
class Solution:
    """A verified winning program."""
    program: Program
    steps: int
    instruction_count: int
    candidates_tested: int

    @property
    def program_source(self) -> str:
        return self.program.to_source()


@dataclass
class SearchResult:
    """Result from synthesis. Failures are statuses, never exceptions."""
    status: SearchStatus
    solution: Optional[Solution] = None
    candidates_tested: int = 0
    candidates_pruned: int = 0
    depth_reached: int = 0
    outcome_counts: Dict[str, int] = field(default_factory=dict)
    synthesis_time_ms: float = 0.0
    strategy: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """True if a solution is available (a timeout may still carry one)."""
        return self.solution is not None

    @property
    def program_source(self) -> Optional[str]:
        return self.solution.program_source if self.solution else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "success": self.success,
            "program": self.program_source,
            "steps": self.solution.steps if self.solution else None,
            "instructions": self.solution.instruction_count if self.solution else None,
            "candidates_tested": self.candidates_tested,
            "candidates_pruned": self.candidates_pruned,
            "depth_reached": self.depth_reached,
            "outcome_counts": dict(self.outcome_counts),
            "synthesis_time_ms": self.synthesis_time_ms,
            "strategy": self.strategy,
            "error": self.error,
        }


class CancellationToken:
    """Cooperative stop flag, safe to set from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def reset(self) -> None:
        self._event.clear()


# (candidates_tested, current depth descriptor)
ProgressCallback = Callable[[int, str], None]


class _SearchRun:
    """Bookkeeping shared by every strategy during one synthesize() call."""

    def __init__(
        self,
        level: LevelSpec,
        cfg: SynthesisConfig,
        interpreter: Interpreter,
        cancel_token: Optional[CancellationToken],
        on_progress: Optional[ProgressCallback],
        trace: Optional["SolveTrace"],
    ):
        self.level = level
        self.cfg = cfg
        self.interpreter = interpreter
        self.cancel_token = cancel_token
        self.on_progress = on_progress
        self.trace = trace
        self.deadline = (
            time.monotonic() + cfg.timeout_seconds
            if cfg.timeout_seconds is not None else None
        )
        self.interval = max(1, cfg.check_interval)
        self.tested = 0
        self.depth = 0
        self.outcomes: Counter = Counter()
        self.best: Optional[Solution] = None

    def evaluate(self, program: Program, max_steps: Optional[int] = None) -> RunOutcome:
        outcome = self.interpreter.run(self.level, program, max_steps)
        self.tested += 1
        self.outcomes[outcome.status.name.lower()] += 1
        return outcome

    def found(self, program: Program, outcome: RunOutcome) -> Solution:
        """Record a solution, keeping the one with the fewest instructions."""
        solution = Solution(
            program=program,
            steps=outcome.steps,
            instruction_count=program.instruction_count,
            candidates_tested=self.tested,
        )
        if self.best is None or solution.instruction_count < self.best.instruction_count:
            self.best = solution
            self.log("solution_found", program=program.to_source(), steps=outcome.steps)
        return self.best

    def check(self, descriptor: str) -> Optional[SearchStatus]:
        """Report progress and test the stop conditions."""
        if self.on_progress is not None:
            self.on_progress(self.tested, descriptor)
        if self.cancel_token is not None and self.cancel_token.cancelled:
            return SearchStatus.CANCELLED
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return SearchStatus.TIMEOUT
        return None

    def poll(self, descriptor: str) -> Optional[SearchStatus]:
        """Like check(), but only every check_interval candidates."""
        if self.tested % self.interval:
            return None
        return self.check(descriptor)

    def log(self, event_type: str, **details: Any) -> None:
        if self.trace is not None:
            self.trace.log(
                event_type, "engine",
                depth=self.depth,
                candidates_tested=self.tested,
                **details,
            )

    def result(self, status: SearchStatus, pruned: int = 0) -> SearchResult:
        return SearchResult(
            status=status,
            solution=self.best,
            candidates_tested=self.tested,
            candidates_pruned=pruned,
            depth_reached=self.depth,
            outcome_counts=dict(self.outcomes),
        )


class Synthesizer(ABC):
    """Abstract base class for synthesizers."""

    strategy: SearchStrategy

    def __init__(
        self,
        config: Optional[SynthesisConfig] = None,
        trace_writer: Optional["JSONLTraceWriter"] = None,
    ):
        self.config = config or SynthesisConfig(strategy=self.strategy)
        self.trace_writer = trace_writer
        self.state = EngineState.IDLE

    def synthesize(
        self,
        level: LevelSpec,
        config: Optional[SynthesisConfig] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SearchResult:
        """
        Search for a program that solves the level.

        Args:
            level: The level to solve
            config: Overrides the synthesizer's configuration for this call
            cancel_token: Checked every check_interval candidates
            on_progress: Called with (candidates_tested, depth descriptor)

        Returns:
            SearchResult; a timeout or cancellation still carries the best
            solution found before the cutoff

        Raises:
            LevelValidationError: if the level is malformed (before any search)
        """
        cfg = config or self.config
        validate_level(level)
        start_time = time.time()

        trace = None
        if cfg.write_traces:
            from ..core.trace import SolveTrace
            trace = SolveTrace.start(
                level.level_id,
                strategy=cfg.strategy.value,
                function_budgets=level.function_budgets,
            )
            trace.log(
                "search_started", "engine",
                allowed=sorted(level.allowed_instructions),
                max_steps=cfg.max_steps,
            )

        interpreter = Interpreter(
            max_steps=cfg.max_steps,
            stack_limit=cfg.stack_limit,
            loop_detection=cfg.loop_detection,
            stack_preview=cfg.stack_preview,
        )
        run = _SearchRun(level, cfg, interpreter, cancel_token, on_progress, trace)

        self.state = EngineState.SEARCHING
        result = self._search(level, cfg, run)
        result.synthesis_time_ms = (time.time() - start_time) * 1000
        result.strategy = self.strategy.value
        self.state = _FINAL_STATES[result.status]

        logger.info(
            "Level %s: %s after %d candidates (%d pruned) in %.1f ms%s",
            level.level_id or "<unnamed>",
            result.status.value,
            result.candidates_tested,
            result.candidates_pruned,
            result.synthesis_time_ms,
            f" -> {result.program_source}" if result.success else "",
        )
        self._finalize_trace(trace, result, cfg)
        return result

    @abstractmethod
    def _search(self, level: LevelSpec, cfg: SynthesisConfig, run: _SearchRun) -> SearchResult:
        pass

    def _max_total(self, level: LevelSpec, cfg: SynthesisConfig) -> int:
        if cfg.max_total_instructions is None:
            return level.total_budget
        return min(level.total_budget, cfg.max_total_instructions)

    def _finalize_trace(
        self,
        trace: Optional["SolveTrace"],
        result: SearchResult,
        cfg: SynthesisConfig,
    ) -> None:
        """Finalize and write trace to disk."""
        if trace is None or not cfg.write_traces:
            return

        trace.finalize(
            success=result.success,
            program=result.program_source,
            metrics={
                "status": result.status.value,
                "candidates_tested": result.candidates_tested,
                "candidates_pruned": result.candidates_pruned,
                "depth_reached": result.depth_reached,
                "synthesis_time_ms": result.synthesis_time_ms,
            },
        )
        if self.trace_writer is None:
            from ..core.trace import JSONLTraceWriter
            self.trace_writer = JSONLTraceWriter(cfg.trace_dir)
        try:
            self.trace_writer.write_trace(trace)
        except OSError as e:
            logger.warning("Could not write trace for %s: %s", trace.level_id, e)


class IterativeDeepeningSynthesizer(Synthesizer):
    """
    Exhaustive iterative deepening over the total instruction count.

    Every depth is exhausted before the next, so the first solution has the
    fewest instructions of any program in the search space.
    """

    strategy = SearchStrategy.EXHAUSTIVE_DEEPENING

    def _make_generator(self, level: LevelSpec, cfg: SynthesisConfig) -> CandidateGenerator:
        return CandidateGenerator(
            InstructionSet.for_level(level),
            level.function_budgets,
            use_pruning=cfg.use_pruning,
        )

    def _search(self, level: LevelSpec, cfg: SynthesisConfig, run: _SearchRun) -> SearchResult:
        generator = self._make_generator(level, cfg)
        max_total = self._max_total(level, cfg)

        for total in range(1, max_total + 1):
            run.depth = total
            descriptor = f"depth {total}/{max_total}"
            logger.debug("Searching %s (%d tested so far)", descriptor, run.tested)
            run.log("depth_started")

            stop = run.check(descriptor)
            if stop is not None:
                return run.result(stop, generator.stats.total_pruned)

            for program in generator.programs(total):
                outcome = run.evaluate(program)
                if outcome.solved:
                    run.found(program, outcome)
                    return run.result(SearchStatus.SOLVED, generator.stats.total_pruned)
                stop = run.poll(descriptor)
                if stop is not None:
                    return run.result(stop, generator.stats.total_pruned)

        return run.result(SearchStatus.EXHAUSTED, generator.stats.total_pruned)


class ConstraintGuidedSynthesizer(IterativeDeepeningSynthesizer):
    """
    Iterative deepening that fills the largest function slot first and tries
    movement instructions first at the head of each body.

    Depths are still exhausted in order, so results stay instruction-minimal;
    only the order within a depth changes.
    """

    strategy = SearchStrategy.CONSTRAINT_GUIDED_DFS

    def _make_generator(self, level: LevelSpec, cfg: SynthesisConfig) -> CandidateGenerator:
        budgets = level.function_budgets
        slot_order = sorted(range(len(budgets)), key=lambda i: -budgets[i])
        return CandidateGenerator(
            InstructionSet.for_level(level),
            budgets,
            use_pruning=cfg.use_pruning,
            slot_order=slot_order,
            movement_first=True,
        )


class AdaptiveDeepeningSynthesizer(IterativeDeepeningSynthesizer):
    """
    Deepening with a per-tier step cap that widens on demand.

    Work items are (instruction tier, step cap) pairs ordered by
    ``tier * instruction_weight + step_cap``. A tier whose candidates mostly
    hit the step cap is re-queued with a slightly larger cap; any other tier
    with a capped run gets one final pass at ``max_steps``. The search only
    drains once every tier has been tried without a cap cutting a run short,
    and a solution is replaced if a smaller tier solves on a later pass.
    """

    strategy = SearchStrategy.ADAPTIVE_DEEPENING

    def _search(self, level: LevelSpec, cfg: SynthesisConfig, run: _SearchRun) -> SearchResult:
        generator = self._make_generator(level, cfg)
        max_total = self._max_total(level, cfg)
        if max_total < 1:
            return run.result(SearchStatus.EXHAUSTED)

        weight = cfg.instruction_weight
        first_cap = max(1, min(cfg.initial_step_cap, cfg.max_steps))
        heap: List[Tuple[int, int, int]] = [(weight + first_cap, 1, first_cap)]
        explored: Set[Tuple[int, int]] = set()
        scheduled_tiers = {1}

        while heap:
            _, tier, cap = heapq.heappop(heap)
            if (tier, cap) in explored:
                continue
            if run.best is not None and tier >= run.best.instruction_count:
                continue
            explored.add((tier, cap))
            run.depth = max(run.depth, tier)

            descriptor = f"tier {tier}/{max_total}, step cap {cap}"
            logger.debug("Searching %s", descriptor)
            run.log("tier_started", tier=tier, step_cap=cap)
            stop = run.check(descriptor)
            if stop is not None:
                return run.result(stop, generator.stats.total_pruned)

            tested = 0
            step_limited = 0
            solved = False
            for program in generator.programs(tier):
                outcome = run.evaluate(program, max_steps=cap)
                tested += 1
                if outcome.status is RunStatus.STEP_LIMIT:
                    step_limited += 1
                if outcome.solved:
                    run.found(program, outcome)
                    solved = True
                    break
                stop = run.poll(descriptor)
                if stop is not None:
                    return run.result(stop, generator.stats.total_pruned)

            if solved:
                continue

            # Runs that ended before the cap end the same way under any cap.
            if step_limited and cap < cfg.max_steps:
                ratio = step_limited / tested
                if ratio > cfg.death_ratio_threshold:
                    wider = min(cap + cfg.step_increment, cfg.max_steps)
                    logger.debug(
                        "Tier %d: %.0f%% hit the step cap, widening %d -> %d",
                        tier, ratio * 100, cap, wider,
                    )
                else:
                    wider = cfg.max_steps
                    logger.debug(
                        "Tier %d: %d run(s) hit the step cap, queueing a final pass at %d",
                        tier, step_limited, wider,
                    )
                heapq.heappush(heap, (tier * weight + wider, tier, wider))

            nxt = tier + 1
            if nxt <= max_total and nxt not in scheduled_tiers:
                scheduled_tiers.add(nxt)
                heapq.heappush(heap, (nxt * weight + cap, nxt, cap))

        status = SearchStatus.SOLVED if run.best is not None else SearchStatus.EXHAUSTED
        return run.result(status, generator.stats.total_pruned)


def beam_fitness(level: LevelSpec, outcome: RunOutcome) -> float:
    """Heuristic score of a partial program's run; higher is better."""
    collected = level.star_count - outcome.stars_remaining
    score = 100.0 * collected + 2.0 * outcome.cells_visited - 0.1 * outcome.steps
    if outcome.status is RunStatus.EXHAUSTED:
        score -= 50.0
    elif outcome.died:
        score -= 100.0
    return score


class BeamSearchSynthesizer(Synthesizer):
    """
    Beam search over programs, growing one instruction at a time.

    Keeps the best `beam_width` programs by fitness, one per distinct final
    state. Not complete: a solution outside the beam is never found.
    """

    strategy = SearchStrategy.BEAM_SEARCH

    def _search(self, level: LevelSpec, cfg: SynthesisConfig, run: _SearchRun) -> SearchResult:
        alphabet: Tuple[Instruction, ...] = tuple(InstructionSet.for_level(level))
        max_depth = min(cfg.beam_max_depth, self._max_total(level, cfg))
        empty = Program(tuple(() for _ in level.function_budgets))

        beam: List[Program] = [empty]
        seen: Set[Program] = {empty}
        pruned = 0

        for depth in range(1, max_depth + 1):
            run.depth = depth
            descriptor = f"beam depth {depth}/{max_depth}"
            logger.debug("Searching %s with %d parents", descriptor, len(beam))
            run.log("depth_started", beam=len(beam))
            stop = run.check(descriptor)
            if stop is not None:
                return run.result(stop, pruned)

            scored: List[Tuple[float, int, Program, RunOutcome]] = []
            for parent in beam:
                for slot, budget in enumerate(level.function_budgets):
                    body = parent.functions[slot]
                    if len(body) >= budget:
                        continue
                    constraints = check_sequence(body) if cfg.use_pruning else None
                    for instr in alphabet:
                        if cfg.use_pruning and propagate(constraints, instr, DEFAULT_RULES) is None:
                            pruned += 1
                            continue
                        child = _extend(parent, slot, instr)
                        if child in seen:
                            continue
                        seen.add(child)

                        outcome = run.evaluate(child)
                        if outcome.solved:
                            run.found(child, outcome)
                            return run.result(SearchStatus.SOLVED, pruned)
                        scored.append((beam_fitness(level, outcome), len(scored), child, outcome))

                        stop = run.poll(descriptor)
                        if stop is not None:
                            return run.result(stop, pruned)

            if not scored:
                break

            scored.sort(key=lambda item: (-item[0], item[1]))
            beam = dedupe_by_key(
                [child for _, _, child, _ in scored],
                [outcome.final_key(cfg.stack_preview) for _, _, _, outcome in scored],
            )[:cfg.beam_width]

        return run.result(SearchStatus.EXHAUSTED, pruned)


def _extend(program: Program, slot: int, instr: Instruction) -> Program:
    functions = list(program.functions)
    functions[slot] = functions[slot] + (instr,)
    return Program(tuple(functions))


_SYNTHESIZERS = {
    SearchStrategy.EXHAUSTIVE_DEEPENING: IterativeDeepeningSynthesizer,
    SearchStrategy.CONSTRAINT_GUIDED_DFS: ConstraintGuidedSynthesizer,
    SearchStrategy.ADAPTIVE_DEEPENING: AdaptiveDeepeningSynthesizer,
    SearchStrategy.BEAM_SEARCH: BeamSearchSynthesizer,
}


def create_synthesizer(
    strategy: SearchStrategy = SearchStrategy.EXHAUSTIVE_DEEPENING,
    config: Optional[SynthesisConfig] = None,
    trace_writer: Optional["JSONLTraceWriter"] = None,
) -> Synthesizer:
    """
    Factory function to create a synthesizer.

    Args:
        strategy: Search strategy (a SearchStrategy or its string value)
        config: Synthesis configuration; its strategy field is overridden
        trace_writer: Optional writer for solve traces

    Returns:
        Synthesizer instance
    """
    strategy = SearchStrategy(strategy)
    if config is not None and config.strategy is not strategy:
        config = replace(config, strategy=strategy)
    return _SYNTHESIZERS[strategy](config, trace_writer)


def solve_level(
    level: LevelSpec,
    config: Optional[SynthesisConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> SearchResult:
    """Convenience function: solve one level with the configured strategy."""
    cfg = config or SynthesisConfig()
    synthesizer = create_synthesizer(cfg.strategy, cfg)
    return synthesizer.synthesize(level, cancel_token=cancel_token, on_progress=on_progress)
