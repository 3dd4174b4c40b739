"""
HANDHELD Error Types

Exception taxonomy for every stage of the console pipeline:

    HandheldError
    ├── ParseError              one line of source is malformed
    │   ├── UnparseableLine
    │   ├── UnknownInstruction
    │   ├── MissingParameter
    │   └── UnparseableParameter
    ├── CodeParseError          a whole program could not be loaded
    │   ├── AtLine              wraps a ParseError with its 0-based line
    │   └── SourceIOError       the source could not be opened or read
    ├── ExecutionError          a VM run halted without terminating
    │   ├── InvalidAccess       the pointer would leave [0, length]
    │   └── InfiniteLoop        the pointer would re-enter a visited address
    └── RepairError             the repair search could not produce a fix
        ├── RepairNotNeeded
        └── RepairExhausted

Every error carries a stable ``code`` used as the ``error_code`` of
structured log events, and compares equal to another error of the same type
with the same fields.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

if TYPE_CHECKING:
    from handheld.vm import ProgramState


class HandheldError(Exception):
    """Base exception for the handheld console."""

    code: str = "HH-0000"

    def _fields(self) -> Tuple[Any, ...]:
        return self.args

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self._fields() == other._fields()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._fields()))

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for logs and CLI output."""
        return {"kind": type(self).__name__, "code": self.code, "message": str(self)}


# =============================================================================
# PARSE-TIME ERRORS
# =============================================================================

class ParseError(HandheldError):
    """A single source line could not be turned into an instruction."""

    code = "HH-1000"


class UnparseableLine(ParseError):
    """The line is empty after trimming."""

    code = "HH-1001"

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"Unparseable line {raw!r}")

    def _fields(self) -> Tuple[Any, ...]:
        return (self.raw,)


class UnknownInstruction(ParseError):
    """The opname is not one of nop, acc, jmp."""

    code = "HH-1002"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown instruction {name!r}")

    def _fields(self) -> Tuple[Any, ...]:
        return (self.name,)


class MissingParameter(ParseError):
    """Nothing follows the opname."""

    code = "HH-1003"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing parameter for instruction {name!r}")

    def _fields(self) -> Tuple[Any, ...]:
        return (self.name,)


class UnparseableParameter(ParseError):
    """The argument is not a signed decimal integer."""

    code = "HH-1004"

    def __init__(self, name: str, token: str):
        self.name = name
        self.token = token
        super().__init__(f"Unparseable parameter {token!r} for instruction {name!r}")

    def _fields(self) -> Tuple[Any, ...]:
        return (self.name, self.token)


# =============================================================================
# LOAD-TIME ERRORS
# =============================================================================

class CodeParseError(HandheldError):
    """A program could not be built from its source."""

    code = "HH-2000"


class AtLine(CodeParseError):
    """A ParseError located at a 0-based source line."""

    code = "HH-2001"

    def __init__(
        self,
        line: int,
        error: ParseError,
        locator: Optional[Union[str, Path]] = None,
    ):
        self.line = line
        self.error = error
        self.locator = locator
        where = f"{locator}:{line}" if locator is not None else f"line {line}"
        super().__init__(f"{error} at {where}")

    def _fields(self) -> Tuple[Any, ...]:
        return (self.line, self.error)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            "line": self.line,
            "cause": self.error.to_dict(),
        })
        if self.locator is not None:
            d["locator"] = str(self.locator)
        return d


class SourceIOError(CodeParseError):
    """The program source could not be opened or read."""

    code = "HH-2002"

    def __init__(self, locator: Union[str, Path], cause: Exception):
        self.locator = locator
        self.cause = cause
        super().__init__(f"cannot load file {locator} because of {cause}")

    def _fields(self) -> Tuple[Any, ...]:
        return (str(self.locator), type(self.cause), self.cause.args)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["locator"] = str(self.locator)
        return d


# =============================================================================
# EXECUTION-TIME ERRORS
# =============================================================================

class ExecutionError(HandheldError):
    """
    A VM run halted without reaching the terminal address.

    ``pointer`` is the candidate address that triggered the error and
    ``state`` is the machine state the failing transition started from, so
    ``state.accumulator`` excludes the failing instruction's effect.
    """

    code = "HH-3000"
    _template = "Execution failed at instruction {pointer}"

    def __init__(self, pointer: int, state: Optional["ProgramState"] = None):
        self.pointer = pointer
        self.state = state
        super().__init__(self._template.format(pointer=pointer))

    def _fields(self) -> Tuple[Any, ...]:
        return (self.pointer,)

    @property
    def accumulator(self) -> Optional[int]:
        return self.state.accumulator if self.state is not None else None

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["pointer"] = self.pointer
        if self.state is not None:
            d["last_pointer"] = self.state.pointer
            d["accumulator"] = self.state.accumulator
        return d


class InvalidAccess(ExecutionError):
    """The pointer would land outside [0, length] other than exactly on length."""

    code = "HH-3001"
    _template = "The program tried to access instruction at {pointer} but it is not valid"


class InfiniteLoop(ExecutionError):
    """The pointer would re-enter an already visited address."""

    code = "HH-3002"
    _template = "Infinite loop detected at instruction {pointer}"


# =============================================================================
# REPAIR ERRORS
# =============================================================================

class RepairError(HandheldError):
    """The repair search did not produce a terminating variant."""

    code = "HH-4000"


class RepairNotNeeded(RepairError):
    """The unmodified program already terminates."""

    code = "HH-4001"

    def __init__(self, accumulator: int):
        self.accumulator = accumulator
        super().__init__(
            f"Program already terminates with accumulator {accumulator}; nothing to repair"
        )

    def _fields(self) -> Tuple[Any, ...]:
        return (self.accumulator,)


class RepairExhausted(RepairError):
    """No single nop/jmp swap makes the program terminate."""

    code = "HH-4002"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"No terminating mutation found after {attempts} attempts")

    def _fields(self) -> Tuple[Any, ...]:
        return (self.attempts,)
