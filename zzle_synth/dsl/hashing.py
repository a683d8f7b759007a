"""
State hashing for loop detection and search-level deduplication.

Boards are hashed with a Zobrist table so the interpreter can update the hash
in O(1) whenever a tile is painted or a star is picked up.
"""

from functools import lru_cache
from itertools import islice
from typing import Iterable, List, NamedTuple, Set, Tuple

import numpy as np

from ..core.types import MAX_TILE_VALUE

# Fixed seed so hashes are reproducible across runs.
ZOBRIST_SEED = 0x5A5A1E

DEFAULT_STACK_PREVIEW = 5


@lru_cache(maxsize=16)
def zobrist_table(num_cells: int) -> Tuple[Tuple[int, ...], ...]:
    """Per-(cell, tile value) random 63-bit keys for a board of num_cells."""
    rng = np.random.default_rng(ZOBRIST_SEED)
    keys = rng.integers(0, 2**63 - 1, size=(num_cells, MAX_TILE_VALUE + 1), dtype=np.int64)
    return tuple(tuple(row) for row in keys.tolist())


def board_hash(cells: Iterable[int], table: Tuple[Tuple[int, ...], ...]) -> int:
    """Full Zobrist hash of a flat board."""
    h = 0
    for i, value in enumerate(cells):
        h ^= table[i][value]
    return h


def update_board_hash(
    h: int,
    table: Tuple[Tuple[int, ...], ...],
    index: int,
    old_value: int,
    new_value: int,
) -> int:
    """Incrementally replace one tile value in a Zobrist hash."""
    return h ^ table[index][old_value] ^ table[index][new_value]


class StateKey(NamedTuple):
    """Canonical, hashable summary of a runtime state."""
    x: int
    y: int
    direction: int
    stars: int
    board_hash: int
    stack_len: int
    stack_head: Tuple[int, ...]


def make_state_key(
    x: int,
    y: int,
    direction: int,
    stars: int,
    board_hash_value: int,
    stack,
    preview: int = DEFAULT_STACK_PREVIEW,
) -> StateKey:
    """
    Build a StateKey from raw state fields.

    Only the first `preview` instructions of the stack are included, along
    with its length, which keeps hashing constant-time per step.
    """
    head = tuple(instr.encode() for instr in islice(stack, preview))
    return StateKey(x, y, int(direction), stars, board_hash_value, len(stack), head)


class LoopDetector:
    """Records StateKeys seen during one run and reports repeats."""

    def __init__(self):
        self._seen: Set[StateKey] = set()

    def observe(self, key: StateKey) -> bool:
        """Record key; returns True if it was already seen (a loop)."""
        if key in self._seen:
            return True
        self._seen.add(key)
        return False

    def __len__(self) -> int:
        return len(self._seen)

    def clear(self) -> None:
        self._seen.clear()


def dedupe_by_key(items: List, keys: List[StateKey]) -> List:
    """Keep the first item for each distinct key, preserving order."""
    seen: Set[StateKey] = set()
    result = []
    for item, key in zip(items, keys):
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result
