"""
Core type definitions for ZZLE-SYNTH.

Boards, tiles, robot poses and the immutable level specification shared by the
interpreter and the synthesis engine.
"""

from dataclasses import dataclass
from enum import IntEnum
from functools import cached_property
from typing import List, Tuple, Dict, Optional, Any, FrozenSet
import numpy as np


# Type aliases
Point = Tuple[int, int]  # (x, y), x = column, y = row

# Tile encoding: low two bits hold the color, bit 2 flags a star.
COLOR_MASK = 3
STAR_FLAG = 4
MAX_TILE_VALUE = COLOR_MASK | STAR_FLAG

MAX_FUNCTIONS = 3


class Color(IntEnum):
    """Tile colors. NONE marks a void tile that cannot be walked on."""
    NONE = 0
    RED = 1
    GREEN = 2
    BLUE = 3

    @property
    def mnemonic(self) -> str:
        """Condition mnemonic used in level files (C1, C2, C3)."""
        return f"C{int(self)}"


class Direction(IntEnum):
    """Robot heading, in the encoding used by the level files."""
    LEFT = 0
    UP = 1
    RIGHT = 2
    DOWN = 3

    def turn_left(self) -> "Direction":
        return Direction((self + 3) % 4)

    def turn_right(self) -> "Direction":
        return Direction((self + 1) % 4)

    @property
    def delta(self) -> Point:
        return DIRECTION_DELTAS[self]


DIRECTION_DELTAS: Dict[int, Point] = {
    Direction.LEFT: (-1, 0),
    Direction.UP: (0, -1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, 1),
}


def make_tile(color: int, star: bool = False) -> int:
    """Encode a tile value from a color and a star flag."""
    if star and color == Color.NONE:
        raise ValueError("A void tile cannot carry a star")
    return int(color) | (STAR_FLAG if star else 0)


def tile_color(value: int) -> int:
    return value & COLOR_MASK


def tile_has_star(value: int) -> bool:
    return bool(value & STAR_FLAG)


def is_walkable(value: int) -> bool:
    return (value & COLOR_MASK) != Color.NONE


@dataclass
class Board:
    """
    A 2D grid of tile values.

    Stored as numpy array internally; indexed as data[y, x].
    """
    data: np.ndarray  # Shape: (height, width), dtype: int

    def __post_init__(self):
        if not isinstance(self.data, np.ndarray):
            self.data = np.array(self.data, dtype=np.int32)
        if self.data.ndim != 2:
            raise ValueError(f"Board must be 2D, got shape {self.data.shape}")

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def is_square(self) -> bool:
        return self.height == self.width

    @property
    def star_count(self) -> int:
        """Number of tiles currently carrying a star."""
        return int(np.count_nonzero(self.data & STAR_FLAG))

    @property
    def colors(self) -> FrozenSet[int]:
        """Set of walkable colors present on the board."""
        return frozenset(int(c) for c in np.unique(self.data & COLOR_MASK) if c != Color.NONE)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def tile(self, x: int, y: int) -> int:
        return int(self.data[y, x])

    def cells(self) -> Tuple[int, ...]:
        """Row-major flat view of the tile values (index = y * width + x)."""
        return tuple(self.data.ravel().tolist())

    def __getitem__(self, key) -> int:
        return self.data[key]

    def __setitem__(self, key, value):
        self.data[key] = value

    def copy(self) -> "Board":
        return Board(self.data.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return False
        return np.array_equal(self.data, other.data)

    def __hash__(self) -> int:
        return hash(self.data.tobytes())

    @classmethod
    def from_list(cls, data: List[List[int]]) -> "Board":
        return cls(np.array(data, dtype=np.int32))

    @classmethod
    def from_cells(cls, cells: Tuple[int, ...], width: int) -> "Board":
        return cls(np.array(cells, dtype=np.int32).reshape(-1, width))

    def to_list(self) -> List[List[int]]:
        return self.data.tolist()

    @classmethod
    def zeros(cls, height: int, width: int) -> "Board":
        return cls(np.zeros((height, width), dtype=np.int32))


class LevelValidationError(ValueError):
    """Raised when a level violates the structural preconditions of the solver."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


@dataclass(frozen=True)
class LevelSpec:
    """
    A puzzle level: board, robot start pose and instruction budget.

    Never mutated; every interpreter run works on its own copy of the cells.
    """
    board: Board
    start_position: Point
    start_direction: Direction
    star_count: int
    function_budgets: Tuple[int, ...]
    allowed_instructions: FrozenSet[str]
    level_id: str = ""

    @property
    def width(self) -> int:
        return self.board.width

    @property
    def height(self) -> int:
        return self.board.height

    @property
    def num_functions(self) -> int:
        return len(self.function_budgets)

    @property
    def total_budget(self) -> int:
        return sum(self.function_budgets)

    @cached_property
    def cells(self) -> Tuple[int, ...]:
        return self.board.cells()

    @classmethod
    def from_dict(cls, level_id: str, data: Dict[str, Any]) -> "LevelSpec":
        """Load from the JSON level format (board, player, stars, ...)."""
        try:
            board = Board.from_list(data["board"])
            player = data["player"]
            start = (int(player["x"]), int(player["y"]))
            direction = int(player["direction"])
            functions = data.get("functions") or [{"length": 12}]
            budgets = tuple(int(f["length"]) for f in functions)
            stars = data.get("stars")
            star_count = board.star_count if stars is None else int(stars)
            allowed = frozenset(data.get("activeInstructions", []))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise LevelValidationError(
                f"Level {level_id!r} is malformed: {e}",
                errors=[{"loc": [], "msg": str(e), "type": "parse_error"}],
            ) from e

        if direction not in Direction._value2member_map_:
            raise LevelValidationError(
                f"Level {level_id!r} has invalid direction {direction}",
                errors=[{
                    "loc": ["player", "direction"],
                    "msg": f"direction must be 0-3, got {direction}",
                    "type": "value_error",
                }],
            )

        return cls(
            board=board,
            start_position=start,
            start_direction=Direction(direction),
            star_count=star_count,
            function_budgets=budgets,
            allowed_instructions=allowed,
            level_id=level_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the JSON level format."""
        return {
            "board": self.board.to_list(),
            "player": {
                "x": self.start_position[0],
                "y": self.start_position[1],
                "direction": int(self.start_direction),
            },
            "stars": self.star_count,
            "activeInstructions": sorted(self.allowed_instructions),
            "functions": [{"length": n} for n in self.function_budgets],
        }


def validate_level(level: LevelSpec) -> LevelSpec:
    """
    Check the structural preconditions of a level.

    Args:
        level: Level to validate

    Returns:
        The same level, if valid

    Raises:
        LevelValidationError: listing every violated precondition
    """
    from ..dsl.instructions import is_known_name

    errors: List[Dict[str, Any]] = []

    def fail(loc: List[Any], msg: str) -> None:
        errors.append({"loc": loc, "msg": msg, "type": "precondition_error"})

    board = level.board
    if not board.is_square:
        fail(["board"], f"board must be square, got {board.height}x{board.width}")

    data = board.data
    if data.size and (data.min() < 0 or data.max() > MAX_TILE_VALUE):
        fail(["board"], f"tile values must be in 0..{MAX_TILE_VALUE}")
    elif np.any(data == STAR_FLAG):
        fail(["board"], "void tiles cannot carry a star")

    x, y = level.start_position
    if not board.in_bounds(x, y):
        fail(["start_position"], f"start position {(x, y)} is outside the board")
    elif not is_walkable(board.tile(x, y)):
        fail(["start_position"], f"start position {(x, y)} is on a void tile")

    if int(level.start_direction) not in Direction._value2member_map_:
        fail(["start_direction"], f"direction must be 0-3, got {int(level.start_direction)}")

    if not 1 <= level.num_functions <= MAX_FUNCTIONS:
        fail(
            ["function_budgets"],
            f"expected 1-{MAX_FUNCTIONS} function slots, got {level.num_functions}",
        )
    for i, budget in enumerate(level.function_budgets):
        if budget < 0:
            fail(["function_budgets", i], f"budget must be >= 0, got {budget}")

    if level.star_count != board.star_count:
        fail(
            ["star_count"],
            f"star_count {level.star_count} does not match {board.star_count} stars on board",
        )

    for name in sorted(level.allowed_instructions):
        if not is_known_name(name):
            fail(["allowed_instructions"], f"unknown instruction name {name!r}")

    if errors:
        raise LevelValidationError(
            f"Level {level.level_id!r} failed validation with {len(errors)} error(s)",
            errors=errors,
        )
    return level
