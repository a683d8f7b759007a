"""Tests for candidate generation."""

import pytest

from zzle_synth.cre.generator import (
    CandidateGenerator,
    has_dead_slots,
    reachable_slots,
)
from zzle_synth.dsl.instructions import Instruction, InstructionSet, Program


def source(seqs):
    return [" ".join(i.to_source() for i in s) for s in seqs]


def make_generator(names, budgets, **kwargs):
    alphabet = InstructionSet.from_names(names, num_functions=len(budgets))
    return CandidateGenerator(alphabet, budgets, **kwargs)


class TestSequences:
    """Tests for per-slot sequence enumeration."""

    def test_unpruned_counts(self):
        gen = make_generator(["FW", "TL", "TR"], (4,), use_pruning=False)
        assert len(list(gen.sequences(2))) == 9
        assert len(list(gen.sequences(3))) == 27

    def test_pruned_counts(self):
        gen = make_generator(["FW", "TL", "TR"], (4,))
        assert len(list(gen.sequences(2))) == 7
        assert len(list(gen.sequences(3))) == 17
        assert gen.stats.extensions_pruned > 0

    def test_order_is_lexicographic(self):
        gen = make_generator(["FW", "TL"], (2,), use_pruning=False)
        assert source(gen.sequences(2)) == ["FW FW", "FW TL", "TL FW", "TL TL"]

    def test_call_terminates_body(self):
        gen = make_generator(["FW", "F0"], (2,))
        assert source(gen.sequences(2)) == ["FW FW", "FW F0"]

    def test_empty_sequence(self):
        gen = make_generator(["FW"], (2,))
        assert list(gen.sequences(0)) == [()]

    def test_empty_alphabet(self):
        gen = make_generator([], (2,))
        assert list(gen.sequences(1)) == []

    def test_sequences_are_independent_tuples(self):
        gen = make_generator(["FW", "TL"], (3,))
        seqs = list(gen.sequences(2))
        assert all(isinstance(s, tuple) for s in seqs)
        assert len(set(seqs)) == len(seqs)

    def test_movement_first(self):
        gen = make_generator(["P1", "F0", "FW"], (2,), movement_first=True)
        assert source(gen.sequences(1)) == ["FW", "F0", "P1"]


class TestDistributions:
    """Tests for splitting a total across slots."""

    def test_slot_zero_non_empty(self):
        gen = make_generator(["FW"], (2, 2))
        assert list(gen.distributions(2)) == [(1, 1), (2, 0)]

    def test_respects_budgets(self):
        gen = make_generator(["FW"], (2, 2))
        assert list(gen.distributions(4)) == [(2, 2)]
        assert list(gen.distributions(5)) == []

    def test_slot_order(self):
        """Lengths stay indexed by slot when the fill order changes."""
        gen = make_generator(["FW"], (2, 3), slot_order=[1, 0])
        assert list(gen.distributions(3)) == [(2, 1), (1, 2)]

    def test_bad_slot_order(self):
        with pytest.raises(ValueError):
            make_generator(["FW"], (2, 3), slot_order=[0, 0])


class TestPrograms:
    """Tests for full program assembly."""

    def test_exact_instruction_count(self):
        gen = make_generator(["FW", "TL", "F0", "F1"], (3, 2))
        for program in gen.programs(3):
            assert program.instruction_count == 3
            assert len(program.body(0)) >= 1

    def test_dead_slots_skipped(self):
        gen = make_generator(["FW", "F1"], (1, 1))
        programs = [p.to_source() for p in gen.programs(2)]
        assert programs == ["F0: F1 | F1: FW", "F0: F1 | F1: F1"]
        assert gen.stats.programs_skipped == 1

    def test_dead_slots_kept_without_pruning(self):
        gen = make_generator(["FW", "F1"], (1, 1), use_pruning=False)
        assert len(list(gen.programs(2))) == 4

    def test_programs_unique(self):
        gen = make_generator(["FW", "TR", "F0", "F1"], (3, 2), use_pruning=False)
        programs = list(gen.programs(4))
        assert len(set(programs)) == len(programs)

    def test_pruned_subset_of_unpruned(self):
        pruned = set(make_generator(["FW", "TL", "TR", "F0"], (4,)).programs(3))
        full = set(make_generator(["FW", "TL", "TR", "F0"], (4,), use_pruning=False).programs(3))
        assert pruned < full

    def test_reproducible_order(self):
        a = list(make_generator(["FW", "TL", "F0", "F1"], (3, 2)).programs(4))
        b = list(make_generator(["FW", "TL", "F0", "F1"], (3, 2)).programs(4))
        assert a == b


class TestReachability:
    """Tests for slot reachability."""

    def test_reachable_through_calls(self):
        program = Program.parse("F0: FW F1 | F1: C1+F2 | F2: TL")
        assert reachable_slots(program.functions) == {0, 1, 2}
        assert not has_dead_slots(program.functions)

    def test_unreachable_slot(self):
        program = Program.parse("F0: FW | F1: TL")
        assert reachable_slots(program.functions) == {0}
        assert has_dead_slots(program.functions)

    def test_empty_unreachable_slot_is_fine(self):
        program = Program.parse("F0: FW | F1:")
        assert not has_dead_slots(program.functions)

    def test_stats_total(self):
        gen = make_generator(["FW", "F1"], (1, 1))
        list(gen.programs(2))
        assert gen.stats.total_pruned == gen.stats.extensions_pruned + gen.stats.programs_skipped


def test_instruction_alphabet_shared():
    """Generator and interpreter use the same instruction objects."""
    alphabet = InstructionSet.from_names(["FW"], 1)
    gen = CandidateGenerator(alphabet, (1,))
    assert list(gen.sequences(1)) == [(Instruction.parse("FW"),)]
