"""
HANDHELD Instruction Set

The console understands exactly three opcodes, each taking one signed
integer argument:

    nop <offset>    do nothing, advance to the next instruction
    acc <delta>     add delta to the accumulator, advance
    jmp <offset>    move the instruction pointer by offset

Source lines have the shape ``<op> <signed-int>``; an explicit ``+`` or
``-`` sign is accepted. ``str(instruction)`` renders the canonical form with
an explicit sign, and parsing that rendering yields an equal instruction.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from handheld.errors import (
    MissingParameter,
    UnknownInstruction,
    UnparseableLine,
    UnparseableParameter,
)

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


class Opcode(Enum):
    """Console opcodes, valued by their source mnemonic."""

    NOP = "nop"
    ACC = "acc"
    JMP = "jmp"

    @classmethod
    def from_mnemonic(cls, name: str) -> "Opcode":
        try:
            return cls(name)
        except ValueError:
            raise UnknownInstruction(name) from None


@dataclass(frozen=True)
class Instruction:
    """One console instruction: an opcode and its signed argument."""

    opcode: Opcode
    argument: int

    @classmethod
    def nop(cls, offset: int) -> "Instruction":
        return cls(Opcode.NOP, offset)

    @classmethod
    def acc(cls, delta: int) -> "Instruction":
        return cls(Opcode.ACC, delta)

    @classmethod
    def jmp(cls, offset: int) -> "Instruction":
        return cls(Opcode.JMP, offset)

    @classmethod
    def parse(cls, line: str) -> "Instruction":
        """
        Parse one line of source.

        Raises:
            UnparseableLine: the line is blank
            UnknownInstruction: the opname is not nop, acc or jmp
            MissingParameter: no argument follows the opname
            UnparseableParameter: the argument is not a signed integer
        """
        text = line.strip()
        if not text:
            raise UnparseableLine(text)

        parts = text.split(None, 1)
        name = parts[0]
        opcode = Opcode.from_mnemonic(name)

        remainder = parts[1].strip() if len(parts) > 1 else ""
        if not remainder:
            raise MissingParameter(name)
        if not _INTEGER_PATTERN.fullmatch(remainder):
            raise UnparseableParameter(name, remainder)

        return cls(opcode, int(remainder))

    def swapped(self) -> "Instruction":
        """Exchange nop and jmp, keeping the argument; acc is returned as is."""
        if self.opcode is Opcode.NOP:
            return Instruction(Opcode.JMP, self.argument)
        if self.opcode is Opcode.JMP:
            return Instruction(Opcode.NOP, self.argument)
        return self

    @property
    def is_swappable(self) -> bool:
        return self.opcode is not Opcode.ACC

    def __str__(self) -> str:
        return f"{self.opcode.value} {self.argument:+d}"
