"""Exceptions shared by the store, the registry and the CLI."""

from __future__ import annotations

from typing import Iterable, Optional


class KVError(Exception):
    """Base exception for all kv errors."""


class UnknownCommand(KVError):
    """Raised when a command name does not resolve."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Command '{name}' does not exist")


class UnknownHook(KVError):
    """Raised when removing a hook that does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Hook '{name}' does not exist")


class DuplicateHook(KVError):
    """Raised when a hook name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Hook '{name}' already exists. To delete it try\n kv cmd del-hook {name}"
        )


class CommandInUse(KVError):
    """Raised when removing a command that hooks still reference."""

    def __init__(self, name: str, hooks: Iterable[str]) -> None:
        self.name = name
        self.hooks = list(hooks)
        super().__init__(
            f"Command '{name}' is used by hook(s): {', '.join(self.hooks)}"
        )


class InvalidTrigger(KVError, ValueError):
    """Raised when a trigger action is not one of set/get/delete."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Unknown trigger '{value}' (expected set, get or delete)")


class CorruptStore(KVError):
    """Raised when the store file exists but cannot be decoded."""

    def __init__(self, path: str, detail: str = "") -> None:
        self.path = path
        msg = f"Store file {path} is corrupt"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class PersistError(KVError):
    """Raised when the store file cannot be written."""

    def __init__(self, path: str, detail: str = "") -> None:
        self.path = path
        msg = f"Cannot write store file {path}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class CommandExecutionFailed(KVError):
    """Raised when a command cannot be spawned or does not finish in time."""

    def __init__(self, command: str, detail: str = "", exit_status: Optional[int] = None) -> None:
        self.command = command
        self.detail = detail
        self.exit_status = exit_status
        msg = f"Failed to run '{command}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
