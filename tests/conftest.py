import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import handheld`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


SAMPLE_PROGRAM = [
    "nop +0",
    "acc +1",
    "jmp +4",
    "acc +3",
    "jmp -3",
    "acc -99",
    "acc +1",
    "jmp -4",
    "acc +6",
]


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "perf: performance/benchmark tests (skipped unless HANDHELD_RUN_PERF=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_perf = _env_flag('HANDHELD_RUN_PERF')

    for item in items:
        if 'perf' in item.keywords and not run_perf:
            item.add_marker(pytest.mark.skip(reason='perf tests skipped; set HANDHELD_RUN_PERF=1 to enable'))


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Every test starts from default configuration with no HANDHELD_* overrides."""
    from handheld.config import get_config_manager

    for name in list(os.environ):
        if name.startswith("HANDHELD_") and not name.startswith(("HANDHELD_RUN_PERF", "HANDHELD_PERF_")):
            monkeypatch.delenv(name, raising=False)

    mgr = get_config_manager()
    mgr.reset()
    yield mgr
    mgr.reset()


@pytest.fixture
def sample_lines() -> list:
    return list(SAMPLE_PROGRAM)


@pytest.fixture
def sample_program():
    from handheld.program import Program
    return Program.parse(SAMPLE_PROGRAM)


@pytest.fixture
def sample_file(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "boot.txt"
    path.write_text("\n".join(SAMPLE_PROGRAM) + "\n", encoding="utf-8")
    return path
