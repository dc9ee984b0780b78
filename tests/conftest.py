import subprocess
from pathlib import Path

import pytest
from loguru import logger

from xtask.core.config import Settings
from xtask.services.multi_arch.arch_configs import supported_architectures


class FakeRunner:
    """Stands in for subprocess.run and records every command line"""

    def __init__(self):
        self.calls = []
        self.returncodes = {}
        self.missing = set()

    def __call__(self, cmd, *args, **kwargs):
        cmd = list(cmd)
        self.calls.append((cmd, kwargs))
        tool = cmd[0]
        if tool in self.missing:
            raise FileNotFoundError(2, "No such file or directory", tool)
        return subprocess.CompletedProcess(cmd, self.returncodes.get(tool, 0))

    @property
    def commands(self):
        return [cmd for cmd, _ in self.calls]

    def tools(self):
        return [cmd[0] for cmd in self.commands]


@pytest.fixture
def fake_run(monkeypatch):
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    return runner


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def project_root(tmp_path) -> Path:
    """A kernel project tree with one axconfig per supported architecture"""
    root = tmp_path / "loadapp"
    (root / "configs").mkdir(parents=True)
    for arch in supported_architectures():
        (root / "configs" / f"{arch}.toml").write_text(f'arch = "{arch}"\n', encoding="utf-8")
    (root / "Cargo.toml").write_text('[package]\nname = "arceos-loadapp"\n', encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    # Sinks added by the CLI point at pytest's captured streams
    logger.remove()
