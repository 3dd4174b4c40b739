"""
Repair search tests.

Run with: pytest tests/test_repair.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

import importlib

import pytest

repair_module = importlib.import_module("handheld.repair")
from handheld.errors import InfiniteLoop, RepairError, RepairExhausted, RepairNotNeeded
from handheld.instruction import Instruction
from handheld.program import Program
from handheld.repair import RepairResult, RepairSearch, repair, swap_instruction
from handheld.vm import VirtualMachine


# =============================================================================
# SEQUENTIAL SEARCH
# =============================================================================

class TestRepairSearch:
    """Tests for the sequential single-swap search."""

    def test_sample_program_repairs_at_address_7(self, sample_program):
        result = repair(sample_program)
        assert result == RepairResult(
            address=7,
            original=Instruction.jmp(-4),
            replacement=Instruction.nop(-4),
            accumulator=8,
            attempts=4,
        )

    def test_program_restored_after_success(self, sample_program):
        before = sample_program.copy()
        repair(sample_program)
        assert sample_program == before

    def test_result_is_sound(self, sample_program):
        """Re-running the mutated program on its own yields the reported accumulator."""
        result = repair(sample_program)
        repaired = result.apply(sample_program)
        assert VirtualMachine(repaired).run() == result.accumulator
        assert sample_program.get(result.address) == result.original

    def test_invalid_access_candidates_are_skipped(self):
        program = Program.parse(["nop +5", "jmp -1"])
        result = repair(program)
        assert result.address == 1
        assert result.replacement == Instruction.nop(-1)
        assert result.attempts == 2

    def test_first_terminating_address_wins(self):
        """Both swaps terminate; the lower address is reported."""
        program = Program.parse(["nop +3", "acc +1", "jmp -2"])
        result = repair(program)
        assert result.address == 0
        assert result.accumulator == 0

    def test_acc_instructions_are_never_mutated(self, sample_program):
        search = RepairSearch(sample_program)
        assert list(search.candidates()) == [0, 2, 4, 7]

    def test_to_dict(self, sample_program):
        assert repair(sample_program).to_dict() == {
            "address": 7,
            "original": "jmp -4",
            "replacement": "nop -4",
            "accumulator": 8,
            "attempts": 4,
        }


class TestRepairFailures:
    """Tests for precondition and exhaustion reporting."""

    def test_terminating_program_is_not_searched(self):
        with pytest.raises(RepairNotNeeded) as exc_info:
            repair(Program.parse(["acc +1"]))
        assert exc_info.value.accumulator == 1

    def test_precondition_can_be_disabled(self):
        program = Program.parse(["jmp +1", "acc +2"])
        result = repair(program, require_nontermination=False)
        assert result.address == 0
        assert result.accumulator == 2

    def test_precondition_disabled_by_config(self, _isolated_config):
        _isolated_config.set("repair.require_nontermination", False)
        result = repair(Program.parse(["jmp +1", "acc +2"]))
        assert result.address == 0

    def test_exhausted_search_reports_failure(self):
        program = Program.parse(["nop +0", "jmp -1", "jmp -2"])
        before = program.copy()
        with pytest.raises(RepairExhausted) as exc_info:
            repair(program)
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value, RepairError)
        assert program == before

    def test_exhausted_program_still_loops(self):
        program = Program.parse(["nop +0", "jmp -1", "jmp -2"])
        with pytest.raises(RepairExhausted):
            repair(program)
        with pytest.raises(InfiniteLoop):
            VirtualMachine(program).run()

    def test_program_of_only_acc_is_exhausted_without_attempts(self):
        with pytest.raises(RepairExhausted) as exc_info:
            repair(Program.parse(["acc +1"]), require_nontermination=False)
        assert exc_info.value.attempts == 0

    def test_invalid_worker_count(self, sample_program):
        with pytest.raises(ValueError):
            RepairSearch(sample_program, workers=0)


class TestRepairIsolation:
    """Each candidate runs on a fresh machine and every patch is undone."""

    def test_fresh_machine_per_attempt(self, sample_program, monkeypatch):
        created = []

        class RecordingVM(VirtualMachine):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                created.append(self)

        monkeypatch.setattr(repair_module, "VirtualMachine", RecordingVM)
        result = repair(sample_program)

        # one precondition run plus one per attempt
        assert len(created) == result.attempts + 1
        assert len({id(vm) for vm in created}) == len(created)
        assert all(vm.visited >= {0} for vm in created)

    def test_patch_undone_when_attempt_raises(self, sample_program, monkeypatch):
        before = sample_program.copy()
        calls = {"n": 0}
        real_run = VirtualMachine.run

        def flaky_run(self):
            calls["n"] += 1
            if calls["n"] == 3:
                raise RuntimeError("simulated crash")
            return real_run(self)

        monkeypatch.setattr(VirtualMachine, "run", flaky_run)
        with pytest.raises(RuntimeError):
            repair(sample_program)
        assert sample_program == before


# =============================================================================
# PARALLEL SEARCH
# =============================================================================

class TestParallelRepair:
    """Tests for the thread-pooled search."""

    def test_parallel_matches_sequential(self, sample_program):
        sequential = repair(sample_program, workers=1)
        parallel = repair(sample_program, workers=4)
        assert parallel == sequential

    def test_parallel_prefers_lowest_address(self):
        program = Program.parse(["nop +3", "acc +1", "jmp -2"])
        assert repair(program, workers=2).address == 0

    def test_parallel_leaves_program_untouched(self, sample_program):
        before = sample_program.copy()
        repair(sample_program, workers=3)
        assert sample_program == before

    def test_parallel_exhaustion(self):
        with pytest.raises(RepairExhausted) as exc_info:
            repair(Program.parse(["nop +0", "jmp -1", "jmp -2"]), workers=2)
        assert exc_info.value.attempts == 3

    def test_workers_from_config(self, sample_program, _isolated_config):
        _isolated_config.set("repair.workers", 3)
        assert RepairSearch(sample_program).workers == 3


class TestSwapInstruction:
    def test_swap(self):
        assert swap_instruction(Instruction.nop(2)) == Instruction.jmp(2)
        assert swap_instruction(Instruction.jmp(2)) == Instruction.nop(2)
        assert swap_instruction(Instruction.acc(2)) == Instruction.acc(2)
