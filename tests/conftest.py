import os
import shutil
import tempfile
from typing import List, Mapping, Optional

import pytest

from kv.executor import ExecutorBase
from kv.types import ExecResult

KV_ENV_VARS = (
    "KV_PATH",
    "KV_SHELL",
    "KV_COMMAND_TIMEOUT",
    "KV_TRIGGER_CHAIN",
)


class FakeExecutor(ExecutorBase):
    """Records every command line; returns scripted exit statuses."""

    def __init__(self, statuses: Optional[Mapping[str, int]] = None, on_execute=None):
        self.statuses = dict(statuses or {})
        self.on_execute = on_execute
        self.calls: List[str] = []
        self.envs: List[Mapping[str, str]] = []
        self.captures: List[bool] = []

    def execute(
        self,
        command_line: str,
        env: Optional[Mapping[str, str]] = None,
        capture: bool = True,
    ) -> ExecResult:
        self.calls.append(command_line)
        self.captures.append(capture)
        self.envs.append(dict(env or {}))
        if self.on_execute is not None:
            self.on_execute(command_line)
        return {"exit_status": self.statuses.get(command_line, 0), "output": ""}


@pytest.fixture(autouse=True)
def clean_kv_env(monkeypatch):
    for name in KV_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


@pytest.fixture
def tmp_dir():
    d = tempfile.mkdtemp(prefix="kv-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def store_path(tmp_dir):
    return os.path.join(tmp_dir, "kv", "kv.json")


@pytest.fixture
def executor():
    return FakeExecutor()
