"""
Candidate generation for function slots.

Sequences are enumerated depth-first over one reused buffer with explicit
per-position cursors (no recursion, no per-call list allocation); each
completed sequence is copied into a tuple before it is yielded.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from ..dsl.instructions import Instruction, InstructionSet, Opcode, Program
from .constraints import Constraints, DEFAULT_RULES, Rule, propagate

# Position-0 preference used by the constraint-guided strategy.
MOVEMENT_FIRST_PRIORITY = {
    Opcode.FORWARD: 10,
    Opcode.TURN_LEFT: 8,
    Opcode.TURN_RIGHT: 8,
    Opcode.CALL0: 6,
    Opcode.CALL1: 6,
    Opcode.CALL2: 6,
    Opcode.PAINT1: 3,
    Opcode.PAINT2: 3,
    Opcode.PAINT3: 3,
}


@dataclass
class GeneratorStats:
    """Counters for pruning diagnostics."""
    sequences_generated: int = 0
    extensions_pruned: int = 0
    programs_skipped: int = 0

    @property
    def total_pruned(self) -> int:
        return self.extensions_pruned + self.programs_skipped


def reachable_slots(functions: Sequence[Sequence[Instruction]], root: int = 0) -> set:
    """Slots reachable from root through call instructions (guarded or not)."""
    seen = {root}
    frontier = [root]
    while frontier:
        slot = frontier.pop()
        if slot >= len(functions):
            continue
        for instr in functions[slot]:
            target = instr.opcode.call_target
            if target is not None and target < len(functions) and target not in seen:
                seen.add(target)
                frontier.append(target)
    return seen


def has_dead_slots(functions: Sequence[Sequence[Instruction]]) -> bool:
    """True if some non-empty slot is never called from slot 0."""
    reached = reachable_slots(functions)
    return any(body and i not in reached for i, body in enumerate(functions))


class CandidateGenerator:
    """
    Enumerates programs with an exact total instruction count.

    Order is fixed and reproducible: length distributions in lexicographic
    order over the slot order, then sequences in alphabet order.
    """

    def __init__(
        self,
        instructions: InstructionSet,
        function_budgets: Sequence[int],
        use_pruning: bool = True,
        rules: Sequence[Rule] = DEFAULT_RULES,
        slot_order: Optional[Sequence[int]] = None,
        movement_first: bool = False,
    ):
        self.instructions = instructions
        self.function_budgets = tuple(function_budgets)
        self.use_pruning = use_pruning
        self.rules = tuple(rules)
        self.slot_order = tuple(slot_order) if slot_order is not None else tuple(
            range(len(self.function_budgets))
        )
        if sorted(self.slot_order) != list(range(len(self.function_budgets))):
            raise ValueError(f"slot_order {self.slot_order} is not a permutation of the slots")

        self._alphabet: Tuple[Instruction, ...] = tuple(instructions)
        if movement_first:
            # sorted() is stable, so ties keep alphabet order.
            self._first_alphabet = tuple(sorted(
                self._alphabet,
                key=lambda instr: -MOVEMENT_FIRST_PRIORITY.get(instr.opcode, 0),
            ))
        else:
            self._first_alphabet = self._alphabet

        self.stats = GeneratorStats()

    @property
    def max_total(self) -> int:
        return sum(self.function_budgets)

    def sequences(self, length: int) -> Iterator[Tuple[Instruction, ...]]:
        """All non-pruned instruction sequences of exactly `length`."""
        if length == 0:
            yield ()
            return
        if not self._alphabet:
            return

        first, rest = self._first_alphabet, self._alphabet
        buffer: List[Optional[Instruction]] = [None] * length
        records: List[Optional[Constraints]] = [None] * (length + 1)
        records[0] = Constraints.initial()
        cursor = [0] * length
        pos = 0

        while pos >= 0:
            alphabet = first if pos == 0 else rest
            if cursor[pos] >= len(alphabet):
                cursor[pos] = 0
                pos -= 1
                continue

            instr = alphabet[cursor[pos]]
            cursor[pos] += 1

            if self.use_pruning:
                nxt = propagate(records[pos], instr, self.rules)
                if nxt is None:
                    self.stats.extensions_pruned += 1
                    continue
                records[pos + 1] = nxt

            buffer[pos] = instr
            if pos + 1 == length:
                self.stats.sequences_generated += 1
                yield tuple(buffer)
            else:
                pos += 1

    def distributions(self, total: int) -> Iterator[Tuple[int, ...]]:
        """
        Ways to split `total` instructions across the slots.

        Slot 0 always gets at least one instruction (an empty main function
        can never collect a star). Lengths are indexed by slot.
        """
        n = len(self.function_budgets)
        lengths = [0] * n

        def split(k: int, remaining: int) -> Iterator[Tuple[int, ...]]:
            if k == n:
                if remaining == 0:
                    yield tuple(lengths)
                return
            slot = self.slot_order[k]
            budget = self.function_budgets[slot]
            low = 1 if slot == 0 else 0
            capacity_after = sum(self.function_budgets[s] for s in self.slot_order[k + 1:])
            for length in range(low, min(budget, remaining) + 1):
                if remaining - length > capacity_after:
                    continue
                lengths[slot] = length
                yield from split(k + 1, remaining - length)
            lengths[slot] = 0

        yield from split(0, total)

    def programs(self, total: int) -> Iterator[Program]:
        """Every candidate program with exactly `total` instructions."""
        for lengths in self.distributions(total):
            yield from self._assemble(lengths)

    def _assemble(self, lengths: Tuple[int, ...]) -> Iterator[Program]:
        n = len(lengths)
        bodies: List[Tuple[Instruction, ...]] = [()] * n
        order = self.slot_order

        def fill(k: int) -> Iterator[Program]:
            if k == n:
                if self.use_pruning and has_dead_slots(bodies):
                    self.stats.programs_skipped += 1
                    return
                yield Program(tuple(bodies))
                return

            slot = order[k]
            if self.use_pruning and k == n - 1 and lengths[slot] and n > 1:
                # Only this slot is left: it must already be reachable.
                if slot not in reachable_slots(bodies):
                    self.stats.programs_skipped += 1
                    return

            for body in self.sequences(lengths[slot]):
                bodies[slot] = body
                yield from fill(k + 1)
            bodies[slot] = ()

        yield from fill(0)
