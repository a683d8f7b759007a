"""
Instruction codec - the single encoding shared by the interpreter and the
candidate generator.

An instruction is an opcode plus an optional color guard. Three textual and
numeric forms exist:
- mnemonic text: ``FW``, ``C2+TL``
- integer code: ``condition * 100 + opcode`` (level tooling format)
- level names: opcodes (``FW``) and bare conditions (``C1``) listed in a
  level's ``activeInstructions``
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..core.types import Color, MAX_FUNCTIONS

if TYPE_CHECKING:
    from ..core.types import LevelSpec


class InstructionError(ValueError):
    """Raised on an unknown opcode, condition or instruction text."""
    pass


class Opcode(IntEnum):
    """Action part of an instruction, with the level tooling's numeric codes."""
    NOOP = 0
    FORWARD = 1
    TURN_LEFT = 2
    TURN_RIGHT = 3
    PAINT1 = 4
    PAINT2 = 5
    PAINT3 = 6
    CALL0 = 7
    CALL1 = 8
    CALL2 = 9

    @property
    def mnemonic(self) -> str:
        return OPCODE_MNEMONICS[self]

    @property
    def is_call(self) -> bool:
        return self >= Opcode.CALL0

    @property
    def is_turn(self) -> bool:
        return self in (Opcode.TURN_LEFT, Opcode.TURN_RIGHT)

    @property
    def is_paint(self) -> bool:
        return Opcode.PAINT1 <= self <= Opcode.PAINT3

    @property
    def call_target(self) -> Optional[int]:
        """Function slot index for call opcodes, else None."""
        return int(self - Opcode.CALL0) if self.is_call else None

    @property
    def paint_color(self) -> Optional[Color]:
        return Color(self - Opcode.PAINT1 + 1) if self.is_paint else None


OPCODE_MNEMONICS: Dict[Opcode, str] = {
    Opcode.NOOP: "NO",
    Opcode.FORWARD: "FW",
    Opcode.TURN_LEFT: "TL",
    Opcode.TURN_RIGHT: "TR",
    Opcode.PAINT1: "P1",
    Opcode.PAINT2: "P2",
    Opcode.PAINT3: "P3",
    Opcode.CALL0: "F0",
    Opcode.CALL1: "F1",
    Opcode.CALL2: "F2",
}
MNEMONIC_TO_OPCODE: Dict[str, Opcode] = {v: k for k, v in OPCODE_MNEMONICS.items()}

CONDITION_COLORS: Tuple[Color, ...] = (Color.RED, Color.GREEN, Color.BLUE)
MNEMONIC_TO_CONDITION: Dict[str, Color] = {c.mnemonic: c for c in CONDITION_COLORS}

CONDITION_BASE = 100


def is_known_name(name: str) -> bool:
    """True if name is an opcode or condition mnemonic used in level files."""
    return name in MNEMONIC_TO_OPCODE or name in MNEMONIC_TO_CONDITION


@dataclass(frozen=True)
class Instruction:
    """An opcode guarded by an optional tile-color condition."""
    opcode: Opcode
    condition: Optional[Color] = None

    def __post_init__(self):
        if self.condition is not None and self.condition not in CONDITION_COLORS:
            raise InstructionError(f"Invalid condition color: {self.condition!r}")
        # Normalize plain ints to the enums.
        object.__setattr__(self, "opcode", Opcode(self.opcode))
        if self.condition is not None:
            object.__setattr__(self, "condition", Color(self.condition))

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None

    @property
    def is_unconditional_call(self) -> bool:
        return self.condition is None and self.opcode.is_call

    def encode(self) -> int:
        cond = int(self.condition) if self.condition is not None else 0
        return cond * CONDITION_BASE + int(self.opcode)

    @classmethod
    def decode(cls, code: int) -> "Instruction":
        cond, op = divmod(int(code), CONDITION_BASE)
        try:
            opcode = Opcode(op)
        except ValueError:
            raise InstructionError(f"Unknown opcode {op} in instruction code {code}")
        if cond == 0:
            return cls(opcode)
        if cond not in (1, 2, 3):
            raise InstructionError(f"Unknown condition {cond} in instruction code {code}")
        return cls(opcode, Color(cond))

    def to_source(self) -> str:
        if self.condition is None:
            return self.opcode.mnemonic
        return f"{self.condition.mnemonic}+{self.opcode.mnemonic}"

    @classmethod
    def parse(cls, text: str) -> "Instruction":
        """Parse ``FW`` or ``C1+FW`` style text."""
        token = text.strip().upper()
        cond_text, sep, op_text = token.partition("+")
        if not sep:
            cond_text, op_text = "", cond_text
        if op_text not in MNEMONIC_TO_OPCODE:
            raise InstructionError(f"Unknown opcode in {text!r}")
        if not cond_text:
            return cls(MNEMONIC_TO_OPCODE[op_text])
        if cond_text not in MNEMONIC_TO_CONDITION:
            raise InstructionError(f"Unknown condition in {text!r}")
        return cls(MNEMONIC_TO_OPCODE[op_text], MNEMONIC_TO_CONDITION[cond_text])

    def is_allowed(self, allowed_names: Iterable[str]) -> bool:
        """Both the opcode and (if present) the condition must be allowed."""
        names = set(allowed_names)
        if self.opcode.mnemonic not in names:
            return False
        return self.condition is None or self.condition.mnemonic in names

    def __str__(self) -> str:
        return self.to_source()


@dataclass(frozen=True)
class InstructionSet:
    """The ordered alphabet of legal instructions for one level."""
    instructions: Tuple[Instruction, ...]

    def __len__(self) -> int:
        return len(self.instructions)

    def __iter__(self):
        return iter(self.instructions)

    def __contains__(self, item: object) -> bool:
        return item in self.instructions

    @classmethod
    def from_names(
        cls,
        names: Iterable[str],
        num_functions: int = MAX_FUNCTIONS,
    ) -> "InstructionSet":
        """
        Build the alphabet from level instruction names.

        Unconditional opcodes come first (in opcode order), then every allowed
        condition combined with every allowed opcode. Calls to function slots
        beyond num_functions are dropped since they can never do anything.

        Raises:
            InstructionError: if a name is not a known mnemonic
        """
        names = set(names)
        unknown = sorted(n for n in names if not is_known_name(n))
        if unknown:
            raise InstructionError(f"Unknown instruction names: {unknown}")

        opcodes = [
            op for op in Opcode
            if op.mnemonic in names
            and (op.call_target is None or op.call_target < num_functions)
        ]
        conditions = [c for c in CONDITION_COLORS if c.mnemonic in names]

        result: List[Instruction] = [Instruction(op) for op in opcodes]
        for cond in conditions:
            result.extend(Instruction(op, cond) for op in opcodes)
        return cls(tuple(result))

    @classmethod
    def for_level(cls, level: "LevelSpec") -> "InstructionSet":
        return cls.from_names(level.allowed_instructions, level.num_functions)


@dataclass(frozen=True)
class Program:
    """
    One instruction sequence per function slot.

    Immutable: the engine copies its working buffer into a new Program before
    handing it to the interpreter.
    """
    functions: Tuple[Tuple[Instruction, ...], ...]

    @classmethod
    def of(cls, *functions: Sequence[Instruction]) -> "Program":
        return cls(tuple(tuple(f) for f in functions))

    @property
    def num_functions(self) -> int:
        return len(self.functions)

    @property
    def instruction_count(self) -> int:
        return sum(len(f) for f in self.functions)

    def body(self, index: int) -> Tuple[Instruction, ...]:
        """Instructions of slot index; undefined slots are empty."""
        if 0 <= index < len(self.functions):
            return self.functions[index]
        return ()

    def encode(self) -> List[List[int]]:
        return [[instr.encode() for instr in f] for f in self.functions]

    @classmethod
    def decode(cls, codes: Sequence[Sequence[int]]) -> "Program":
        return cls(tuple(tuple(Instruction.decode(c) for c in f) for f in codes))

    def to_source(self) -> str:
        parts = []
        for i, body in enumerate(self.functions):
            text = " ".join(instr.to_source() for instr in body)
            parts.append(f"F{i}: {text}" if text else f"F{i}:")
        return " | ".join(parts)

    @classmethod
    def parse(cls, text: str) -> "Program":
        """Parse ``F0: FW F0 | F1: TL`` (slot labels optional, in order)."""
        functions = []
        for part in text.split("|"):
            part = part.strip()
            label, sep, rest = part.partition(":")
            body = rest if sep else label
            functions.append(tuple(Instruction.parse(tok) for tok in body.split()))
        return cls(tuple(functions))

    def fits(self, level: "LevelSpec") -> bool:
        """True if this program respects the level's budgets and allowed names."""
        if self.num_functions != level.num_functions:
            return False
        for body, budget in zip(self.functions, level.function_budgets):
            if len(body) > budget:
                return False
            if not all(instr.is_allowed(level.allowed_instructions) for instr in body):
                return False
        return True

    def __str__(self) -> str:
        return self.to_source()


def instruction_names(instructions: Iterable[Instruction]) -> FrozenSet[str]:
    """Level names needed to allow every given instruction."""
    names = set()
    for instr in instructions:
        names.add(instr.opcode.mnemonic)
        if instr.condition is not None:
            names.add(instr.condition.mnemonic)
    return frozenset(names)
