"""
HANDHELD: Console VM with loop detection and repair search

A minimal virtual machine for the three-instruction handheld console
language, together with a diagnostic search that repairs a corrupted boot
program by flipping a single ``nop``/``jmp`` instruction.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                          HANDHELD CONSOLE                                │
    │                                                                          │
    │  FRONT END                                                              │
    │    cli.py           run / trace / repair / check / config commands      │
    │    config.py        YAML + environment configuration                    │
    │    observability.py Structured JSON or text logging                     │
    │                                                                          │
    │  DIAGNOSTICS                                                            │
    │    repair.py        Single-swap search, sequential or thread pooled     │
    │                                                                          │
    │  CORE                                                                   │
    │    vm.py            ProgramState, VirtualMachine, execute()             │
    │    program.py       Program: parse, load, get, replace, patched         │
    │    instruction.py   Opcode, Instruction: parse and canonical rendering  │
    │    errors.py        Parse, load, execution and repair errors            │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Usage
─────

    from handheld import Program, VirtualMachine, InfiniteLoop, repair

    program = Program.load("boot.txt")
    vm = VirtualMachine(program)
    try:
        vm.run()
    except InfiniteLoop:
        print(vm.current_state.accumulator)

    print(repair(program).accumulator)

Copyright (c) 2026 Momentum. All rights reserved.
"""

__version__ = "0.1.0"

from handheld.errors import (
    AtLine,
    CodeParseError,
    ExecutionError,
    HandheldError,
    InfiniteLoop,
    InvalidAccess,
    MissingParameter,
    ParseError,
    RepairError,
    RepairExhausted,
    RepairNotNeeded,
    SourceIOError,
    UnknownInstruction,
    UnparseableLine,
    UnparseableParameter,
)
from handheld.instruction import Instruction, Opcode
from handheld.program import Program
from handheld.vm import ExecutionResult, ProgramState, VirtualMachine, execute
from handheld.repair import RepairResult, RepairSearch, repair, swap_instruction

__all__ = [
    "__version__",
    # errors
    "HandheldError",
    "ParseError",
    "UnparseableLine",
    "UnknownInstruction",
    "MissingParameter",
    "UnparseableParameter",
    "CodeParseError",
    "AtLine",
    "SourceIOError",
    "ExecutionError",
    "InvalidAccess",
    "InfiniteLoop",
    "RepairError",
    "RepairNotNeeded",
    "RepairExhausted",
    # core
    "Opcode",
    "Instruction",
    "Program",
    "ProgramState",
    "VirtualMachine",
    "ExecutionResult",
    "execute",
    # diagnostics
    "RepairSearch",
    "RepairResult",
    "repair",
    "swap_instruction",
]
