"""
Instruction parsing and rendering tests.

Run with: pytest tests/test_instruction.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

import pytest

from handheld.errors import (
    MissingParameter,
    ParseError,
    UnknownInstruction,
    UnparseableLine,
    UnparseableParameter,
)
from handheld.instruction import Instruction, Opcode


# =============================================================================
# PARSING
# =============================================================================

class TestInstructionParse:
    """Tests for Instruction.parse on well-formed lines."""

    def test_parse_each_opcode(self):
        """All three opcodes parse with positive and negative arguments."""
        assert Instruction.parse("nop -10") == Instruction.nop(-10)
        assert Instruction.parse("nop 10") == Instruction.nop(10)
        assert Instruction.parse("acc -10") == Instruction.acc(-10)
        assert Instruction.parse("acc 10") == Instruction.acc(10)
        assert Instruction.parse("jmp -10") == Instruction.jmp(-10)
        assert Instruction.parse("jmp 10") == Instruction.jmp(10)

    def test_explicit_plus_sign(self):
        """An explicit + sign is accepted."""
        assert Instruction.parse("acc +3") == Instruction(Opcode.ACC, 3)
        assert Instruction.parse("jmp +0") == Instruction(Opcode.JMP, 0)

    def test_surrounding_whitespace_ignored(self):
        """Leading, trailing and repeated separating spaces are ignored."""
        assert Instruction.parse("    nop   1   ") == Instruction.nop(1)
        assert Instruction.parse("acc +7\n") == Instruction.acc(7)

    def test_large_arguments(self):
        """Arguments are unbounded Python integers."""
        assert Instruction.parse("acc +9223372036854775807").argument == 2**63 - 1


class TestInstructionParseFailures:
    """Tests for each ParseError variant."""

    def test_empty_line(self):
        with pytest.raises(UnparseableLine) as exc_info:
            Instruction.parse("")
        assert exc_info.value.raw == ""

    def test_blank_line(self):
        with pytest.raises(UnparseableLine):
            Instruction.parse("   \t ")

    def test_unknown_instruction(self):
        with pytest.raises(UnknownInstruction) as exc_info:
            Instruction.parse("mov 1")
        assert exc_info.value == UnknownInstruction("mov")
        assert exc_info.value.name == "mov"

    def test_unknown_instruction_without_parameter(self):
        """The opname is checked before the parameter."""
        with pytest.raises(UnknownInstruction) as exc_info:
            Instruction.parse("pon")
        assert exc_info.value.name == "pon"

    def test_opnames_are_case_sensitive(self):
        with pytest.raises(UnknownInstruction) as exc_info:
            Instruction.parse("NOP +1")
        assert exc_info.value.name == "NOP"

    def test_missing_parameter(self):
        with pytest.raises(MissingParameter) as exc_info:
            Instruction.parse("acc")
        assert exc_info.value == MissingParameter("acc")

    def test_missing_parameter_with_trailing_space(self):
        with pytest.raises(MissingParameter):
            Instruction.parse("nop    ")

    @pytest.mark.parametrize("token", ["x", "a", "1.5", "--1", "+", "1 2", "0x10"])
    def test_unparseable_parameter(self, token):
        with pytest.raises(UnparseableParameter) as exc_info:
            Instruction.parse(f"jmp {token}")
        assert exc_info.value.name == "jmp"
        assert exc_info.value.token == token

    def test_unparseable_parameter_equality(self):
        with pytest.raises(UnparseableParameter) as exc_info:
            Instruction.parse("jmp x")
        assert exc_info.value == UnparseableParameter("jmp", "x")
        assert exc_info.value != UnparseableParameter("nop", "x")

    def test_all_failures_are_parse_errors(self):
        for line in ["", "mov 1", "acc", "jmp x"]:
            with pytest.raises(ParseError):
                Instruction.parse(line)

    def test_error_messages_name_the_offender(self):
        assert "mov" in str(UnknownInstruction("mov"))
        assert "acc" in str(MissingParameter("acc"))
        message = str(UnparseableParameter("jmp", "x"))
        assert "jmp" in message and "x" in message


# =============================================================================
# RENDERING AND SWAPPING
# =============================================================================

class TestInstructionRendering:
    """Tests for canonical rendering."""

    def test_canonical_form_has_explicit_sign(self):
        assert str(Instruction.nop(0)) == "nop +0"
        assert str(Instruction.acc(-99)) == "acc -99"
        assert str(Instruction.jmp(4)) == "jmp +4"

    @pytest.mark.parametrize("line", [
        "nop +0", "acc 12", "jmp -4", "  acc   -0 ", "jmp +2147483648",
    ])
    def test_reparse_of_rendering_is_stable(self, line):
        """Parsing the canonical rendering of a parsed instruction yields an equal instruction."""
        instruction = Instruction.parse(line)
        assert Instruction.parse(str(instruction)) == instruction


class TestInstructionSwap:
    """Tests for the nop/jmp exchange used by the repair search."""

    def test_nop_becomes_jmp(self):
        assert Instruction.nop(-4).swapped() == Instruction.jmp(-4)

    def test_jmp_becomes_nop(self):
        assert Instruction.jmp(3).swapped() == Instruction.nop(3)

    def test_acc_is_unchanged(self):
        acc = Instruction.acc(5)
        assert acc.swapped() == acc
        assert not acc.is_swappable

    def test_swap_is_an_involution(self):
        for instruction in [Instruction.nop(1), Instruction.jmp(-1), Instruction.acc(2)]:
            assert instruction.swapped().swapped() == instruction

    def test_instructions_are_immutable(self):
        instruction = Instruction.nop(1)
        with pytest.raises(AttributeError):
            instruction.argument = 2  # type: ignore[misc]
