"""Tests for board hashing and state keys."""

from collections import deque

from zzle_synth.dsl.hashing import (
    LoopDetector,
    StateKey,
    board_hash,
    dedupe_by_key,
    make_state_key,
    update_board_hash,
    zobrist_table,
)
from zzle_synth.dsl.instructions import Instruction


class TestZobrist:
    """Tests for the Zobrist table and board hash."""

    def test_table_is_reproducible(self):
        assert zobrist_table(9) == zobrist_table(9)
        zobrist_table.cache_clear()
        first = zobrist_table(4)
        zobrist_table.cache_clear()
        assert zobrist_table(4) == first

    def test_table_shape(self):
        table = zobrist_table(4)
        assert len(table) == 4
        assert all(len(row) == 8 for row in table)
        assert all(0 <= key < 2**63 for row in table for key in row)

    def test_different_boards_differ(self):
        table = zobrist_table(4)
        assert board_hash((1, 1, 1, 5), table) != board_hash((1, 1, 5, 1), table)

    def test_incremental_update_matches_full_hash(self):
        table = zobrist_table(4)
        cells = [1, 2, 3, 5]
        h = board_hash(cells, table)

        h = update_board_hash(h, table, 3, 5, 1)
        cells[3] = 1
        assert h == board_hash(cells, table)

        h = update_board_hash(h, table, 0, 1, 3)
        cells[0] = 3
        assert h == board_hash(cells, table)


class TestStateKey:
    """Tests for StateKey construction."""

    def test_preview_is_bounded(self):
        stack = deque(Instruction.parse(t) for t in ["FW", "TL", "TR", "F0", "P1", "P2", "P3"])
        key = make_state_key(0, 1, 2, 3, 99, stack, preview=3)
        assert key == StateKey(0, 1, 2, 3, 99, 7, (1, 2, 3))

    def test_preview_of_short_stack(self):
        key = make_state_key(0, 0, 0, 1, 0, deque([Instruction.parse("C1+FW")]))
        assert key.stack_head == (101,)
        assert key.stack_len == 1


class TestLoopDetector:
    """Tests for the per-run loop detector."""

    def test_reports_repeats(self):
        detector = LoopDetector()
        key = StateKey(0, 0, 0, 1, 0, 0, ())
        assert not detector.observe(key)
        assert detector.observe(key)
        assert len(detector) == 1

    def test_clear(self):
        detector = LoopDetector()
        key = StateKey(0, 0, 0, 1, 0, 0, ())
        detector.observe(key)
        detector.clear()
        assert not detector.observe(key)


class TestDedupe:
    """Tests for key-based deduplication."""

    def test_keeps_first_per_key(self):
        a = StateKey(0, 0, 0, 1, 0, 0, ())
        b = StateKey(1, 0, 0, 1, 0, 0, ())
        assert dedupe_by_key(["x", "y", "z"], [a, b, a]) == ["x", "y"]
