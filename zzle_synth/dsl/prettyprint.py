"""
Pretty printing for programs, boards and runtime states.
"""

from typing import Iterable, List, Optional, Tuple

from ..core.types import Board, Direction, tile_color, tile_has_star
from .instructions import Instruction, Program
from .interpreter import RuntimeState

DIRECTION_GLYPHS = {
    Direction.LEFT: "<",
    Direction.UP: "^",
    Direction.RIGHT: ">",
    Direction.DOWN: "v",
}


def program_to_source(program: Program) -> str:
    """Single-line source form, e.g. ``F0: FW C1+TL F0 | F1:``."""
    return program.to_source()


def program_to_listing(
    program: Program,
    budgets: Optional[Tuple[int, ...]] = None,
) -> str:
    """
    One line per function slot, optionally with its budget usage.

    Args:
        program: Program to format
        budgets: Per-slot budgets to show as ``used/budget``

    Returns:
        Multi-line listing
    """
    lines = []
    for i, body in enumerate(program.functions):
        text = instructions_to_source(body) or "(empty)"
        if budgets is not None and i < len(budgets):
            lines.append(f"F{i} [{len(body)}/{budgets[i]}]: {text}")
        else:
            lines.append(f"F{i}: {text}")
    return "\n".join(lines)


def instructions_to_source(instructions: Iterable[Instruction]) -> str:
    return " ".join(instr.to_source() for instr in instructions)


def _tile_glyph(value: int, show_colors: bool) -> str:
    if tile_has_star(value):
        return "*"
    color = tile_color(value)
    if not color:
        return " "
    return str(color) if show_colors else "."


def board_to_text(
    board: Board,
    robot: Optional[Tuple[int, int]] = None,
    direction: Optional[Direction] = None,
    show_colors: bool = False,
) -> str:
    """
    Render a board as text, one row per line.

    Void tiles are blank, stars are ``*``, other walkable tiles ``.`` (or
    their color number with show_colors). The robot is drawn as an arrow.
    """
    lines: List[str] = []
    for y in range(board.height):
        row = []
        for x in range(board.width):
            if robot is not None and (x, y) == tuple(robot):
                row.append(DIRECTION_GLYPHS.get(direction, "@") if direction is not None else "@")
            else:
                row.append(_tile_glyph(board.tile(x, y), show_colors))
        lines.append(f"{y:2d}: " + "".join(row))
    return "\n".join(lines)


def state_to_text(
    state: RuntimeState,
    show_colors: bool = True,
    stack_preview: int = 10,
) -> str:
    """Render a runtime state: board, counters and the head of the stack."""
    board = board_to_text(
        state.board(),
        robot=state.position,
        direction=state.direction,
        show_colors=show_colors,
    )
    stack = list(state.stack)
    head = instructions_to_source(stack[:stack_preview])
    if len(stack) > stack_preview:
        head += f" ... (+{len(stack) - stack_preview} more)"

    return "\n".join([
        board,
        f"Position: {state.position}  Facing: {state.direction.name}",
        f"Stars left: {state.stars}  Steps: {state.steps}",
        f"Stack [{len(stack)}]: {head or '(empty)'}",
    ])
