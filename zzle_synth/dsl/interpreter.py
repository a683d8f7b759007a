"""
Program interpreter - executes a Program against a LevelSpec.

Execution is stack based: function slot 0 is loaded onto an instruction stack
and every step pops the front instruction. Calls do not push return frames;
they prepend the callee's whole body to the front of the stack, so recursion
is expressed purely by rewriting the pending-instruction stack.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Deque, List, Optional, Set, Tuple

from ..core.types import (
    Board,
    Direction,
    DIRECTION_DELTAS,
    LevelSpec,
    COLOR_MASK,
    STAR_FLAG,
)
from .hashing import (
    DEFAULT_STACK_PREVIEW,
    LoopDetector,
    StateKey,
    board_hash,
    make_state_key,
    update_board_hash,
    zobrist_table,
)
from .instructions import Instruction, Opcode, Program

DEFAULT_MAX_STEPS = 1000
DEFAULT_STACK_LIMIT = 100


class InterpreterError(Exception):
    """Error during interpretation."""
    pass


class RunStatus(Enum):
    """How a single run ended."""
    SOLVED = auto()
    DIED = auto()
    EXHAUSTED = auto()    # instruction stack ran dry with stars left
    STEP_LIMIT = auto()   # step cap reached


class DeathReason(Enum):
    OUT_OF_BOUNDS = "out_of_bounds"
    VOID = "void"
    STACK_OVERFLOW = "stack_overflow"
    LOOP = "loop"


@dataclass
class RuntimeState:
    """
    Mutable state of one interpreter run.

    Owned by a single run; the board is a private flat copy of the level's
    cells (index = y * width + x).
    """
    x: int
    y: int
    direction: Direction
    stars: int
    cells: List[int]
    width: int
    height: int
    stack: Deque[Instruction]
    functions: Tuple[Tuple[Instruction, ...], ...]
    steps: int = 0
    forward_moves: int = 0
    board_hash: int = 0
    visited: Set[int] = field(default_factory=set)
    table: Tuple[Tuple[int, ...], ...] = field(default=(), repr=False)

    @property
    def position(self) -> Tuple[int, int]:
        return (self.x, self.y)

    @property
    def current_tile(self) -> int:
        return self.cells[self.y * self.width + self.x]

    def board(self) -> Board:
        """Current board as a Board (copy)."""
        return Board.from_cells(tuple(self.cells), self.width)

    def key(self, preview: int = DEFAULT_STACK_PREVIEW) -> StateKey:
        return make_state_key(
            self.x, self.y, self.direction, self.stars,
            self.board_hash, self.stack, preview,
        )

    def snapshot(self) -> "RuntimeState":
        """Independent copy, safe to hand to a renderer."""
        return RuntimeState(
            x=self.x,
            y=self.y,
            direction=self.direction,
            stars=self.stars,
            cells=list(self.cells),
            width=self.width,
            height=self.height,
            stack=deque(self.stack),
            functions=self.functions,
            steps=self.steps,
            forward_moves=self.forward_moves,
            board_hash=self.board_hash,
            visited=set(self.visited),
            table=self.table,
        )


@dataclass(frozen=True)
class RunOutcome:
    """Result of running one program. Never a bare boolean."""
    status: RunStatus
    steps: int
    reason: Optional[DeathReason] = None
    stars_remaining: int = 0
    forward_moves: int = 0
    cells_visited: int = 0
    final_state: Optional[RuntimeState] = field(default=None, compare=False, repr=False)

    @property
    def solved(self) -> bool:
        return self.status is RunStatus.SOLVED

    @property
    def died(self) -> bool:
        return self.status is RunStatus.DIED

    def final_key(self, preview: int = DEFAULT_STACK_PREVIEW) -> Optional[StateKey]:
        if self.final_state is None:
            return None
        return self.final_state.key(preview)

    def describe(self) -> str:
        if self.reason is not None:
            return f"{self.status.name}({self.reason.value}) after {self.steps} steps"
        return f"{self.status.name} after {self.steps} steps"


class Interpreter:
    """
    Interpreter for robot programs.

    Deterministic: the same (level, program) pair always yields the same
    outcome in the same number of steps.
    """

    def __init__(
        self,
        max_steps: int = DEFAULT_MAX_STEPS,
        stack_limit: int = DEFAULT_STACK_LIMIT,
        loop_detection: bool = False,
        stack_preview: int = DEFAULT_STACK_PREVIEW,
    ):
        """
        Initialize interpreter.

        Args:
            max_steps: Step cap; reaching it ends the run with STEP_LIMIT
            stack_limit: Maximum pending instructions before a stack overflow
            loop_detection: If True, a repeated StateKey ends the run as a loop death
            stack_preview: Number of stack-head instructions included in StateKeys
        """
        self.max_steps = max_steps
        self.stack_limit = stack_limit
        self.loop_detection = loop_detection
        self.stack_preview = stack_preview
        self._hash_cache: Optional[Tuple[Tuple[int, ...], int]] = None

    def start(self, level: LevelSpec, program: Program) -> RuntimeState:
        """Create a fresh runtime state with function slot 0 loaded."""
        cells = level.cells
        table = zobrist_table(len(cells))
        x, y = level.start_position
        return RuntimeState(
            x=x,
            y=y,
            direction=Direction(level.start_direction),
            stars=level.star_count,
            cells=list(cells),
            width=level.width,
            height=level.height,
            stack=deque(program.body(0)),
            functions=program.functions,
            board_hash=self._initial_hash(cells, table),
            visited={y * level.width + x},
            table=table,
        )

    def _initial_hash(self, cells: Tuple[int, ...], table) -> int:
        cached = self._hash_cache
        if cached is not None and cached[0] is cells:
            return cached[1]
        h = board_hash(cells, table)
        self._hash_cache = (cells, h)
        return h

    def run(
        self,
        level: LevelSpec,
        program: Program,
        max_steps: Optional[int] = None,
    ) -> RunOutcome:
        """
        Run program to completion.

        Args:
            level: The level to play
            program: Program to execute
            max_steps: Optional override of the interpreter's step cap

        Returns:
            RunOutcome describing how the run ended
        """
        state = self.start(level, program)
        detector = LoopDetector() if self.loop_detection else None
        cap = self.max_steps if max_steps is None else max_steps

        while True:
            outcome = self.step(state, detector, cap)
            if outcome is not None:
                return outcome

    def step(
        self,
        state: RuntimeState,
        detector: Optional[LoopDetector] = None,
        max_steps: Optional[int] = None,
    ) -> Optional[RunOutcome]:
        """
        Execute one instruction.

        Termination is checked first, in priority order: all stars collected,
        empty stack, stack overflow, step cap, then (with a detector) a
        repeated state.

        Returns:
            A RunOutcome if the run ended, else None
        """
        cap = self.max_steps if max_steps is None else max_steps

        if state.stars == 0:
            return self._finish(state, RunStatus.SOLVED)
        if not state.stack:
            return self._finish(state, RunStatus.EXHAUSTED)
        if len(state.stack) > self.stack_limit:
            return self._finish(state, RunStatus.DIED, DeathReason.STACK_OVERFLOW)
        if state.steps >= cap:
            return self._finish(state, RunStatus.STEP_LIMIT)
        if detector is not None and detector.observe(state.key(self.stack_preview)):
            return self._finish(state, RunStatus.DIED, DeathReason.LOOP)

        instr = state.stack.popleft()
        state.steps += 1

        # A guard mismatch discards the instruction; nothing else happens.
        if instr.condition is not None and (state.current_tile & COLOR_MASK) != instr.condition:
            return None

        reason = self._execute(state, instr.opcode)
        if reason is not None:
            return self._finish(state, RunStatus.DIED, reason)
        return None

    def _execute(self, state: RuntimeState, opcode: Opcode) -> Optional[DeathReason]:
        """Apply an opcode to the state. Returns a DeathReason if the robot died."""
        if opcode is Opcode.FORWARD:
            return self._forward(state)

        elif opcode is Opcode.TURN_LEFT:
            state.direction = state.direction.turn_left()

        elif opcode is Opcode.TURN_RIGHT:
            state.direction = state.direction.turn_right()

        elif opcode is Opcode.PAINT1 or opcode is Opcode.PAINT2 or opcode is Opcode.PAINT3:
            self._paint(state, int(opcode.paint_color))

        elif opcode is Opcode.CALL0 or opcode is Opcode.CALL1 or opcode is Opcode.CALL2:
            target = opcode.call_target
            if target < len(state.functions):
                state.stack.extendleft(reversed(state.functions[target]))

        elif opcode is Opcode.NOOP:
            pass

        else:
            raise InterpreterError(f"Unknown opcode: {opcode!r}")

        return None

    def _forward(self, state: RuntimeState) -> Optional[DeathReason]:
        dx, dy = DIRECTION_DELTAS[state.direction]
        nx, ny = state.x + dx, state.y + dy

        if not (0 <= nx < state.width and 0 <= ny < state.height):
            return DeathReason.OUT_OF_BOUNDS

        index = ny * state.width + nx
        value = state.cells[index]
        if not value & COLOR_MASK:
            return DeathReason.VOID

        state.x, state.y = nx, ny
        state.forward_moves += 1
        state.visited.add(index)

        if value & STAR_FLAG:
            self._set_tile(state, index, value & COLOR_MASK)
            state.stars -= 1
        return None

    def _paint(self, state: RuntimeState, color: int) -> None:
        index = state.y * state.width + state.x
        value = state.cells[index]
        self._set_tile(state, index, color | (value & STAR_FLAG))

    def _set_tile(self, state: RuntimeState, index: int, new_value: int) -> None:
        old_value = state.cells[index]
        if old_value == new_value:
            return
        state.cells[index] = new_value
        state.board_hash = update_board_hash(
            state.board_hash, state.table, index, old_value, new_value
        )

    def _finish(
        self,
        state: RuntimeState,
        status: RunStatus,
        reason: Optional[DeathReason] = None,
    ) -> RunOutcome:
        return RunOutcome(
            status=status,
            steps=state.steps,
            reason=reason,
            stars_remaining=state.stars,
            forward_moves=state.forward_moves,
            cells_visited=len(state.visited),
            final_state=state,
        )


def run_program(
    level: LevelSpec,
    program: Program,
    max_steps: int = DEFAULT_MAX_STEPS,
    loop_detection: bool = False,
) -> RunOutcome:
    """Convenience function to run a program once."""
    interpreter = Interpreter(max_steps=max_steps, loop_detection=loop_detection)
    return interpreter.run(level, program)
