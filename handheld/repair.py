"""
HANDHELD Repair Search

Finds the single ``nop``/``jmp`` swap that turns a looping program into one
that terminates.

Algorithm:

    1. Run the unmodified program. If it terminates there is nothing to
       repair and RepairNotNeeded is raised.
    2. For every address in ascending order whose instruction is a nop or
       jmp, swap it, run a brand-new VirtualMachine, and restore the
       original instruction before moving on.
    3. The first address whose variant terminates wins. If none does,
       RepairExhausted is raised and the program is left unchanged.

With ``workers > 1`` candidates are evaluated on a thread pool. Each worker
patches its own copy of the program, and the lowest terminating address
still wins, so both modes return the same result.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from handheld.config import get_config
from handheld.errors import ExecutionError, RepairExhausted, RepairNotNeeded
from handheld.instruction import Instruction
from handheld.observability import Layer, get_logger, timed_operation
from handheld.program import Program
from handheld.vm import VirtualMachine

logger = get_logger("search", Layer.REPAIR)


@dataclass(frozen=True)
class RepairResult:
    """The winning mutation and the accumulator of the repaired run."""
    address: int
    original: Instruction
    replacement: Instruction
    accumulator: int
    attempts: int

    def apply(self, program: Program) -> Program:
        """A copy of program with the repair applied."""
        repaired = program.copy()
        repaired.replace(self.address, self.replacement)
        return repaired

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "original": str(self.original),
            "replacement": str(self.replacement),
            "accumulator": self.accumulator,
            "attempts": self.attempts,
        }


def swap_instruction(instruction: Instruction) -> Instruction:
    """nop <-> jmp with the same argument; acc is returned unchanged."""
    return instruction.swapped()


class RepairSearch:
    """
    Single-edit repair search over a program.

    The search owns the program for its duration: exactly one mutation is
    live at a time and it is undone before the next attempt, including when
    an attempt raises.
    """

    def __init__(
        self,
        program: Program,
        workers: Optional[int] = None,
        require_nontermination: Optional[bool] = None,
    ):
        config = get_config()
        if workers is None:
            workers = config.repair.workers.get()
        if require_nontermination is None:
            require_nontermination = config.repair.require_nontermination.get()
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        self._program = program
        self._workers = workers
        self._require_nontermination = require_nontermination

    @property
    def workers(self) -> int:
        return self._workers

    def candidates(self) -> Iterator[int]:
        """Addresses eligible for mutation, ascending."""
        for address, instruction in enumerate(self._program):
            if instruction.is_swappable:
                yield address

    @timed_operation(logger, "repair")
    def search(self) -> RepairResult:
        """
        Run the search.

        Raises:
            RepairNotNeeded: the unmodified program terminates
            RepairExhausted: no single swap makes the program terminate
        """
        if self._require_nontermination:
            self._check_precondition()

        if self._workers > 1:
            result = self._search_parallel()
        else:
            result = self._search_sequential()

        logger.info(
            "Repair found",
            operation="repair",
            address=result.address,
            original=str(result.original),
            replacement=str(result.replacement),
            accumulator=result.accumulator,
            attempts=result.attempts,
        )
        return result

    def _check_precondition(self) -> None:
        vm = VirtualMachine(self._program, record_trace=False)
        try:
            accumulator = vm.run()
        except ExecutionError as e:
            logger.debug(
                "Unmodified program does not terminate",
                operation="precheck",
                error_code=e.code,
                pointer=e.pointer,
            )
            return
        raise RepairNotNeeded(accumulator)

    def _attempt(self, program: Program, address: int) -> Optional[int]:
        """Run program on a fresh machine; the accumulator if it terminates."""
        vm = VirtualMachine(program, record_trace=False)
        try:
            accumulator = vm.run()
        except ExecutionError as e:
            logger.debug(
                "Candidate rejected",
                operation="attempt",
                error_code=e.code,
                address=address,
                pointer=e.pointer,
            )
            return None
        logger.debug("Candidate terminates", operation="attempt", address=address)
        return accumulator

    def _search_sequential(self) -> RepairResult:
        attempts = 0
        for address in self.candidates():
            original = self._program.get(address)
            replacement = swap_instruction(original)
            attempts += 1
            with self._program.patched(address, replacement):
                accumulator = self._attempt(self._program, address)
            if accumulator is not None:
                return RepairResult(address, original, replacement, accumulator, attempts)
        raise RepairExhausted(attempts)

    def _search_parallel(self) -> RepairResult:
        addresses: List[int] = list(self.candidates())

        def evaluate(address: int) -> Optional[int]:
            private = self._program.copy()
            private.replace(address, swap_instruction(private.get(address)))
            return self._attempt(private, address)

        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            outcomes = list(pool.map(evaluate, addresses))

        for attempts, (address, accumulator) in enumerate(zip(addresses, outcomes), start=1):
            if accumulator is not None:
                original = self._program.get(address)
                return RepairResult(
                    address, original, swap_instruction(original), accumulator, attempts
                )
        raise RepairExhausted(len(addresses))


def repair(
    program: Program,
    workers: Optional[int] = None,
    require_nontermination: Optional[bool] = None,
) -> RepairResult:
    """Convenience wrapper around RepairSearch(...).search()."""
    return RepairSearch(
        program,
        workers=workers,
        require_nontermination=require_nontermination,
    ).search()
