"""
HANDHELD Virtual Machine

Executes a ``Program`` one instruction at a time over an immutable
``ProgramState`` (instruction pointer + accumulator) and detects infinite
loops by remembering every address it has entered.

State machine:

    RUNNING     0 <= pointer < len(program)
    TERMINATED  pointer == len(program)
    FAULTED     a step raised InvalidAccess or InfiniteLoop

Transition rules for ``step()``:

    1. already terminated            -> no-op
    2. candidate pointer < 0 or > N  -> InvalidAccess(candidate)
    3. candidate pointer visited     -> InfiniteLoop(candidate), state kept
    4. otherwise                     -> commit candidate, mark visited

Landing exactly on ``len(program)`` terminates; landing beyond it faults.
A faulted machine is not resumable: further steps re-raise its error.
Every run starts from a fresh machine, so loop detection never sees another
run's history.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

from handheld.config import get_config
from handheld.errors import ExecutionError, InfiniteLoop, InvalidAccess
from handheld.instruction import Instruction, Opcode
from handheld.observability import Layer, get_logger
from handheld.program import Program

logger = get_logger("vm", Layer.VM)


# =============================================================================
# STATE
# =============================================================================

@dataclass(frozen=True)
class ProgramState:
    """Snapshot of the machine: next instruction address and accumulator."""
    pointer: int = 0
    accumulator: int = 0

    def apply(self, instruction: Instruction) -> "ProgramState":
        """State after executing instruction; the pointer is not range checked."""
        if instruction.opcode is Opcode.ACC:
            return ProgramState(self.pointer + 1, self.accumulator + instruction.argument)
        if instruction.opcode is Opcode.JMP:
            return ProgramState(self.pointer + instruction.argument, self.accumulator)
        return ProgramState(self.pointer + 1, self.accumulator)

    def to_dict(self) -> Dict[str, int]:
        return {"pointer": self.pointer, "accumulator": self.accumulator}


# =============================================================================
# EXECUTION RESULT
# =============================================================================

@dataclass
class ExecutionResult:
    """Outcome of running a program to completion on a fresh machine."""
    terminated: bool
    accumulator: int
    pointer: int
    steps: int
    error: Optional[ExecutionError] = None
    trace: List[ProgramState] = field(default_factory=list)

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "terminated": self.terminated,
            "accumulator": self.accumulator,
            "pointer": self.pointer,
            "steps": self.steps,
        }
        if self.error is not None:
            d["error"] = self.error.to_dict()
        if self.trace:
            d["trace"] = [s.to_dict() for s in self.trace]
        return d


# =============================================================================
# VIRTUAL MACHINE
# =============================================================================

class VirtualMachine:
    """
    The handheld console virtual machine.

    The machine reads its program but never modifies it.

    Example:
        program = Program.parse(["nop +0", "acc +1", "jmp -2"])
        vm = VirtualMachine(program)
        try:
            vm.run()
        except InfiniteLoop as e:
            print(e.pointer, vm.current_state.accumulator)   # 0 1
    """

    def __init__(self, program: Program, record_trace: Optional[bool] = None):
        if record_trace is None:
            record_trace = get_config().vm.record_trace.get()

        self._program = program
        self._state = ProgramState(0, 0)
        self._visited: Set[int] = {0}
        self._steps = 0
        self._error: Optional[ExecutionError] = None
        self._record_trace = record_trace
        self._trace: List[ProgramState] = [self._state] if record_trace else []

    @property
    def program(self) -> Program:
        return self._program

    @property
    def current_state(self) -> ProgramState:
        return self._state

    @property
    def terminated(self) -> bool:
        return self._state.pointer == len(self._program)

    @property
    def faulted(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> Optional[ExecutionError]:
        return self._error

    @property
    def visited(self) -> FrozenSet[int]:
        return frozenset(self._visited)

    @property
    def steps(self) -> int:
        """Number of committed transitions."""
        return self._steps

    @property
    def trace(self) -> Tuple[ProgramState, ...]:
        """States entered so far, starting with the initial state (empty unless tracing)."""
        return tuple(self._trace)

    def step(self) -> bool:
        """
        Execute one instruction.

        Returns:
            True while the machine is still running, False once terminated

        Raises:
            InvalidAccess: the pointer would leave [0, len(program)]
            InfiniteLoop: the pointer would re-enter a visited address
        """
        if self._error is not None:
            raise self._error
        if self.terminated:
            return False

        instruction = self._program.get(self._state.pointer)
        if instruction is None:
            self._fail(InvalidAccess(self._state.pointer, self._state))

        candidate = self._state.apply(instruction)
        if candidate.pointer < 0 or candidate.pointer > len(self._program):
            self._fail(InvalidAccess(candidate.pointer, self._state))
        if candidate.pointer in self._visited:
            self._fail(InfiniteLoop(candidate.pointer, self._state))

        self._visited.add(candidate.pointer)
        self._state = candidate
        self._steps += 1
        if self._record_trace:
            self._trace.append(candidate)
        return not self.terminated

    def run(self) -> int:
        """Step until terminated; returns the final accumulator."""
        while self.step():
            pass
        logger.debug(
            "Program terminated",
            operation="run",
            accumulator=self._state.accumulator,
            steps=self._steps,
        )
        return self._state.accumulator

    def _fail(self, error: ExecutionError) -> None:
        self._error = error
        logger.debug(
            str(error),
            operation="step",
            error_code=error.code,
            pointer=error.pointer,
            last_pointer=self._state.pointer,
            accumulator=self._state.accumulator,
            steps=self._steps,
        )
        raise error


def execute(program: Program, record_trace: Optional[bool] = None) -> ExecutionResult:
    """
    Run program on a fresh machine and report the outcome instead of raising.

    Args:
        program: The program to run
        record_trace: Record every state entered (defaults to vm.record_trace)

    Returns:
        ExecutionResult; on failure ``accumulator`` and ``pointer`` describe
        the state before the failing transition
    """
    vm = VirtualMachine(program, record_trace=record_trace)
    error: Optional[ExecutionError] = None
    try:
        vm.run()
    except ExecutionError as e:
        error = e

    state = vm.current_state
    return ExecutionResult(
        terminated=error is None,
        accumulator=state.accumulator,
        pointer=state.pointer,
        steps=vm.steps,
        error=error,
        trace=list(vm.trace),
    )
