"""
HANDHELD Program

An ordered, mutable sequence of instructions. Addresses ``0..len-1`` hold
instructions; address ``len`` is the terminal position reached by a program
that finishes cleanly.

Loading is all-or-nothing: the first malformed line aborts the load with an
``AtLine`` error and no partial program is returned.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from handheld.errors import AtLine, ParseError, SourceIOError
from handheld.instruction import Instruction
from handheld.observability import Layer, get_logger

logger = get_logger("program", Layer.PARSER)


class Program:
    """
    A console program.

    Example:
        program = Program.parse(["nop +0", "acc +1", "jmp -2"])
        program.get(1)          # Instruction(ACC, 1)
        program.get(3)          # None (terminal address)

        with program.patched(2, program.get(2).swapped()):
            ...                 # instruction 2 is a nop in here
    """

    def __init__(self, instructions: Optional[Iterable[Instruction]] = None):
        self._instructions: List[Instruction] = list(instructions or [])

    @classmethod
    def parse(
        cls,
        lines: Iterable[str],
        locator: Optional[Union[str, Path]] = None,
    ) -> "Program":
        """Parse one instruction per line; raises AtLine on the first bad line."""
        instructions: List[Instruction] = []
        for index, line in enumerate(lines):
            try:
                instructions.append(Instruction.parse(line))
            except ParseError as e:
                logger.debug(
                    "Rejected source line",
                    operation="parse",
                    error_code=e.code,
                    line=index,
                    locator=str(locator) if locator is not None else None,
                )
                raise AtLine(index, e, locator) from e
        return cls(instructions)

    @classmethod
    def parse_text(
        cls,
        text: str,
        locator: Optional[Union[str, Path]] = None,
    ) -> "Program":
        """
        Parse a whole source text split on ``\\n`` only.

        A single trailing newline is not a blank line. Other line-break-like
        characters (form feed, vertical tab, ``\\u2028``) stay inside their
        line and are stripped as whitespace, so line indexes match the file.
        """
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return cls.parse(lines, locator)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Program":
        """Load a program from a UTF-8 file."""
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceIOError(path, e) from e

        program = cls.parse_text(text, locator=path)
        logger.debug(
            "Loaded program",
            operation="load",
            locator=str(path),
            instructions=len(program),
        )
        return program

    def get(self, address: int) -> Optional[Instruction]:
        """Instruction at address, or None outside 0..len-1."""
        if 0 <= address < len(self._instructions):
            return self._instructions[address]
        return None

    def replace(self, address: int, instruction: Instruction) -> None:
        """Overwrite the instruction at a valid address."""
        if not 0 <= address < len(self._instructions):
            raise IndexError(
                f"address {address} outside program of length {len(self._instructions)}"
            )
        self._instructions[address] = instruction

    def length(self) -> int:
        return len(self._instructions)

    def copy(self) -> "Program":
        return Program(self._instructions)

    @contextmanager
    def patched(self, address: int, instruction: Instruction) -> Iterator["Program"]:
        """Temporarily replace one instruction; the original is always restored."""
        original = self.get(address)
        self.replace(address, instruction)
        try:
            yield self
        finally:
            self._instructions[address] = original

    def listing(self) -> List[Tuple[int, str]]:
        """(address, canonical source) rows."""
        return [(i, str(instr)) for i, instr in enumerate(self._instructions)]

    def __len__(self) -> int:
        return len(self._instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._instructions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Program):
            return NotImplemented
        return self._instructions == other._instructions

    def __repr__(self) -> str:
        return f"Program({len(self._instructions)} instructions)"
