"""Tests for the instruction codec and programs."""

import pytest

from zzle_synth.core.types import Color, LevelSpec
from zzle_synth.dsl.instructions import (
    Instruction,
    InstructionError,
    InstructionSet,
    Opcode,
    Program,
    instruction_names,
)


FW = Instruction(Opcode.FORWARD)
TL = Instruction(Opcode.TURN_LEFT)
F0 = Instruction(Opcode.CALL0)


class TestOpcode:
    """Tests for opcode properties."""

    def test_numeric_codes(self):
        assert Opcode.NOOP == 0
        assert Opcode.FORWARD == 1
        assert Opcode.PAINT1 == 4
        assert Opcode.CALL2 == 9

    def test_classification(self):
        assert Opcode.CALL1.is_call
        assert Opcode.CALL1.call_target == 1
        assert Opcode.TURN_RIGHT.is_turn
        assert Opcode.PAINT3.is_paint
        assert Opcode.PAINT3.paint_color == Color.BLUE
        assert Opcode.FORWARD.call_target is None
        assert Opcode.FORWARD.paint_color is None

    def test_mnemonics(self):
        assert Opcode.FORWARD.mnemonic == "FW"
        assert Opcode.CALL0.mnemonic == "F0"
        assert Opcode.NOOP.mnemonic == "NO"


class TestInstruction:
    """Tests for the instruction codec."""

    def test_encode(self):
        assert FW.encode() == 1
        assert Instruction(Opcode.TURN_LEFT, Color.GREEN).encode() == 202
        assert Instruction(Opcode.CALL1, Color.BLUE).encode() == 308

    def test_decode(self):
        instr = Instruction.decode(105)
        assert instr.opcode == Opcode.PAINT2
        assert instr.condition == Color.RED
        assert Instruction.decode(7) == F0

    def test_decode_unknown(self):
        with pytest.raises(InstructionError):
            Instruction.decode(12)
        with pytest.raises(InstructionError):
            Instruction.decode(401)

    def test_to_source(self):
        assert FW.to_source() == "FW"
        assert Instruction(Opcode.FORWARD, Color.RED).to_source() == "C1+FW"

    def test_parse(self):
        assert Instruction.parse("fw") == FW
        assert Instruction.parse("C3+F0") == Instruction(Opcode.CALL0, Color.BLUE)

    def test_parse_unknown(self):
        with pytest.raises(InstructionError):
            Instruction.parse("JUMP")
        with pytest.raises(InstructionError):
            Instruction.parse("C9+FW")

    def test_plain_ints_are_normalized(self):
        instr = Instruction(1, 2)
        assert instr.opcode is Opcode.FORWARD
        assert instr.condition is Color.GREEN
        assert instr.to_source() == "C2+FW"

    def test_void_condition_rejected(self):
        with pytest.raises(InstructionError):
            Instruction(Opcode.FORWARD, Color.NONE)

    def test_is_allowed(self):
        guarded = Instruction(Opcode.FORWARD, Color.RED)
        assert guarded.is_allowed({"FW", "C1"})
        assert not guarded.is_allowed({"FW"})
        assert not FW.is_allowed({"C1"})

    def test_unconditional_call(self):
        assert F0.is_unconditional_call
        assert not Instruction(Opcode.CALL0, Color.RED).is_unconditional_call
        assert not FW.is_unconditional_call


class TestInstructionSet:
    """Tests for level alphabets."""

    def test_order(self):
        """Unconditional opcodes first, then each condition with every opcode."""
        alphabet = InstructionSet.from_names(["F0", "C1", "FW"], num_functions=1)
        assert [i.to_source() for i in alphabet] == ["FW", "F0", "C1+FW", "C1+F0"]

    def test_drops_calls_to_missing_slots(self):
        alphabet = InstructionSet.from_names(["FW", "F0", "F1", "F2"], num_functions=2)
        assert [i.to_source() for i in alphabet] == ["FW", "F0", "F1"]

    def test_unknown_name(self):
        with pytest.raises(InstructionError):
            InstructionSet.from_names(["FW", "BOGUS"])

    def test_contains_and_len(self):
        alphabet = InstructionSet.from_names(["FW", "TL"])
        assert len(alphabet) == 2
        assert TL in alphabet
        assert F0 not in alphabet


class TestProgram:
    """Tests for programs."""

    def test_instruction_count(self):
        program = Program.of([FW, F0], [TL])
        assert program.num_functions == 2
        assert program.instruction_count == 3

    def test_body_of_undefined_slot(self):
        program = Program.of([FW])
        assert program.body(0) == (FW,)
        assert program.body(2) == ()

    def test_to_source(self):
        program = Program.of([FW, Instruction(Opcode.TURN_LEFT, Color.RED)], [])
        assert program.to_source() == "F0: FW C1+TL | F1:"

    def test_parse(self):
        program = Program.parse("F0: FW F1 | F1: C2+TR")
        assert program == Program.of(
            [FW, Instruction(Opcode.CALL1)],
            [Instruction(Opcode.TURN_RIGHT, Color.GREEN)],
        )

    def test_encode_decode(self):
        program = Program.of([FW, Instruction(Opcode.CALL0, Color.RED)])
        assert program.encode() == [[1, 107]]
        assert Program.decode([[1, 107]]) == program

    def test_fits(self):
        level = LevelSpec.from_dict("fit", {
            "board": [[1, 5], [1, 1]],
            "player": {"x": 0, "y": 0, "direction": 2},
            "activeInstructions": ["FW", "F0"],
            "functions": [{"length": 2}],
        })
        assert Program.of([FW, F0]).fits(level)
        assert not Program.of([FW, FW, F0]).fits(level)
        assert not Program.of([TL]).fits(level)
        assert not Program.of([FW], []).fits(level)

    def test_instruction_names(self):
        names = instruction_names([FW, Instruction(Opcode.CALL0, Color.GREEN)])
        assert names == frozenset({"FW", "F0", "C2"})
