"""
Constraint propagation over partial function bodies.

Each rule is a pure function ``(Constraints, Instruction) -> Optional[Constraints]``:
it either rejects the extension (None) or returns the record with its own
fields advanced. Rules only reject a sequence when a strictly shorter
sequence with the same effect exists, so pruning never hides an
instruction-minimal solution.
"""

from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Sequence, Tuple

from ..core.types import Color
from ..dsl.instructions import Instruction, Opcode


@dataclass(frozen=True)
class Constraints:
    """Incrementally updated facts about the body built so far."""
    # post-call termination
    terminated: bool = False
    # roundabout elimination: current run of identical unconditional turns
    turn_opcode: Optional[Opcode] = None
    turn_run: int = 0
    # turn cancellation: previous instruction, if an unconditional turn
    prev_turn: Optional[Opcode] = None
    # overwritten paint: color of the previous instruction, if an unconditional paint
    prev_paint: Optional[Color] = None

    @classmethod
    def initial(cls) -> "Constraints":
        return cls()


Rule = Callable[[Constraints, Instruction], Optional[Constraints]]


def _is_plain_turn(instr: Instruction) -> bool:
    return instr.condition is None and instr.opcode.is_turn


def post_call_termination(c: Constraints, instr: Instruction) -> Optional[Constraints]:
    """An unconditional call ends the body; nothing may follow it."""
    if c.terminated:
        return None
    if instr.is_unconditional_call:
        return replace(c, terminated=True)
    return c


def roundabout_elimination(c: Constraints, instr: Instruction) -> Optional[Constraints]:
    """Forbid TL TL TR and TR TR TL (both are a single opposite turn)."""
    if not _is_plain_turn(instr):
        if c.turn_run:
            return replace(c, turn_opcode=None, turn_run=0)
        return c
    if c.turn_run >= 2 and instr.opcode != c.turn_opcode:
        return None
    if instr.opcode == c.turn_opcode:
        return replace(c, turn_run=c.turn_run + 1)
    return replace(c, turn_opcode=instr.opcode, turn_run=1)


def turn_cancellation(c: Constraints, instr: Instruction) -> Optional[Constraints]:
    """Forbid TL TR and TR TL, which cancel out."""
    if _is_plain_turn(instr):
        if c.prev_turn is not None and c.prev_turn != instr.opcode:
            return None
        return replace(c, prev_turn=instr.opcode)
    if c.prev_turn is not None:
        return replace(c, prev_turn=None)
    return c


def noop_elimination(c: Constraints, instr: Instruction) -> Optional[Constraints]:
    """NO never changes anything, guarded or not."""
    if instr.opcode is Opcode.NOOP:
        return None
    return c


def overwritten_paint(c: Constraints, instr: Instruction) -> Optional[Constraints]:
    """
    After an unconditional paint the tile color is known: a following paint
    makes the first one dead, and a guard on any other color never fires.
    """
    if c.prev_paint is not None:
        if instr.opcode.is_paint:
            return None
        if instr.condition is not None and instr.condition != c.prev_paint:
            return None
    if instr.condition is None and instr.opcode.is_paint:
        return replace(c, prev_paint=instr.opcode.paint_color)
    if c.prev_paint is not None:
        return replace(c, prev_paint=None)
    return c


DEFAULT_RULES: Tuple[Rule, ...] = (
    post_call_termination,
    noop_elimination,
    roundabout_elimination,
    turn_cancellation,
    overwritten_paint,
)

RULES_BY_NAME: Dict[str, Rule] = {rule.__name__: rule for rule in DEFAULT_RULES}


def propagate(
    constraints: Constraints,
    instr: Instruction,
    rules: Sequence[Rule] = DEFAULT_RULES,
) -> Optional[Constraints]:
    """Apply every rule in turn; None as soon as one rejects the extension."""
    current: Optional[Constraints] = constraints
    for rule in rules:
        current = rule(current, instr)
        if current is None:
            return None
    return current


def check_sequence(
    body: Sequence[Instruction],
    rules: Sequence[Rule] = DEFAULT_RULES,
) -> Optional[Constraints]:
    """Fold propagate over a whole body; None if any prefix is rejected."""
    current: Optional[Constraints] = Constraints.initial()
    for instr in body:
        current = propagate(current, instr, rules)
        if current is None:
            return None
    return current
