import json
import os
from pathlib import Path

import pytest

from app.config import Settings
from app.services.npm_audit import CommandResult, NpmAuditor

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeNpm:
    """Stands in for the npm executable; records each call and its working directory."""

    def __init__(self, audit_stdout="", audit_stderr="", audit_exit=1, lockfile_exit=0, lockfile_stderr=""):
        self.audit_stdout = audit_stdout
        self.audit_stderr = audit_stderr
        self.audit_exit = audit_exit
        self.lockfile_exit = lockfile_exit
        self.lockfile_stderr = lockfile_stderr
        self.calls = []
        self.manifests = []
        self.raise_on = None

    async def __call__(self, cmd, cwd, timeout=None):
        self.calls.append((list(cmd), cwd))
        if self.raise_on and self.raise_on in cmd:
            raise FileNotFoundError(2, "No such file or directory", cmd[0])
        if "--package-lock-only" in cmd:
            with open(os.path.join(cwd, "package.json"), encoding="utf-8") as f:
                self.manifests.append(json.load(f))
            if self.lockfile_exit == 0:
                Path(cwd, "package-lock.json").write_text("{}", encoding="utf-8")
            return CommandResult(self.lockfile_exit, "", self.lockfile_stderr)
        if "audit" in cmd:
            return CommandResult(self.audit_exit, self.audit_stdout, self.audit_stderr)
        return CommandResult(0)

    @property
    def workdirs(self):
        return {cwd for _, cwd in self.calls}

    def commands(self):
        return [cmd for cmd, _ in self.calls]


@pytest.fixture
def settings(tmp_path):
    return Settings(temp_root=str(tmp_path))


@pytest.fixture
def make_auditor(settings):
    def _make(fake: FakeNpm) -> NpmAuditor:
        return NpmAuditor(settings, runner=fake)

    return _make
