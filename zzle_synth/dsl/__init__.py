"""DSL module: instruction codec, interpreter, state hashing."""

from .instructions import (
    Opcode,
    Instruction,
    InstructionError,
    InstructionSet,
    Program,
)
from .interpreter import (
    Interpreter,
    InterpreterError,
    RuntimeState,
    RunOutcome,
    RunStatus,
    DeathReason,
    run_program,
)
from .hashing import StateKey, LoopDetector
from .prettyprint import program_to_source, board_to_text, state_to_text

__all__ = [
    # Instructions
    "Opcode",
    "Instruction",
    "InstructionError",
    "InstructionSet",
    "Program",
    # Interpreter
    "Interpreter",
    "InterpreterError",
    "RuntimeState",
    "RunOutcome",
    "RunStatus",
    "DeathReason",
    "run_program",
    # Hashing
    "StateKey",
    "LoopDetector",
    # Pretty printing
    "program_to_source",
    "board_to_text",
    "state_to_text",
]
