"""Command execution capability.

The registry and trigger engine depend on `ExecutorBase`, so tests can inject
a fake executor instead of spawning processes.
"""

from __future__ import annotations

import os
import subprocess
from abc import ABC, abstractmethod
from typing import Mapping, Optional

from common.errors import CommandExecutionFailed
from common.logger import get_logger
from kv.types import ExecResult

DEFAULT_SHELL = "/bin/sh"


class ExecutorBase(ABC):
    @abstractmethod
    def execute(
        self,
        command_line: str,
        env: Optional[Mapping[str, str]] = None,
        capture: bool = True,
    ) -> ExecResult:
        """Run command_line and wait for it.

        `env` holds extra variables layered over the current environment.
        With `capture=False` the command writes straight to our stdout and
        the result output is empty.
        Raises CommandExecutionFailed if the command cannot be run at all; a
        non-zero exit is reported through the result instead.
        """
        ...


class ShellExecutor(ExecutorBase):
    """Runs command lines through `<shell> -c`.

    Captured stdout is decoded as UTF-8 with undecodable bytes replaced.
    """

    def __init__(self, shell: Optional[str] = None, timeout: Optional[float] = None):
        self.shell = shell or os.environ.get("SHELL") or DEFAULT_SHELL
        self.timeout = timeout

    def execute(
        self,
        command_line: str,
        env: Optional[Mapping[str, str]] = None,
        capture: bool = True,
    ) -> ExecResult:
        log = get_logger(__name__)
        log.debug("executor: run shell=%s cmd=%r", self.shell, command_line)

        full_env = {**os.environ, **env} if env else None
        try:
            proc = subprocess.run(
                [self.shell, "-c", command_line],
                stdout=subprocess.PIPE if capture else None,
                text=True,
                errors="replace",
                env=full_env,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionFailed(command_line, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise CommandExecutionFailed(command_line, f"cannot spawn {self.shell}: {e}") from e

        log.debug("executor: done exit=%d cmd=%r", proc.returncode, command_line)
        return {"exit_status": proc.returncode, "output": proc.stdout or ""}
