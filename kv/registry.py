"""Registry: the in-memory keys, commands and hooks plus validated mutations.

All mutations validate before touching state, so a failed call leaves the
registry exactly as it was. Nothing is written until `save()`.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from common.errors import (
    CommandInUse,
    CorruptStore,
    DuplicateHook,
    InvalidTrigger,
    UnknownCommand,
    UnknownHook,
)
from common.logger import get_logger
from kv.executor import ExecutorBase, ShellExecutor
from kv.types import ExecResult, Hook, TriggerAction
from kvstore.base import MemoryStore, StateDocument, StoreBase


class Registry:
    def __init__(
        self,
        store: Optional[StoreBase] = None,
        executor: Optional[ExecutorBase] = None,
    ):
        self.store: StoreBase = store or MemoryStore()
        self.executor: ExecutorBase = executor or ShellExecutor()
        self._keys: Dict[str, str] = {}
        self._commands: Dict[str, str] = {}
        self._hooks: Dict[str, Hook] = {}
        self.dirty = False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, store: StoreBase, executor: Optional[ExecutorBase] = None) -> "Registry":
        """Read the store and build a registry from it."""
        return cls.from_document(store.read(), store=store, executor=executor)

    @classmethod
    def from_document(
        cls,
        document: StateDocument,
        store: Optional[StoreBase] = None,
        executor: Optional[ExecutorBase] = None,
    ) -> "Registry":
        registry = cls(store=store, executor=executor)
        hooks: Dict[str, Hook] = {}
        for name, record in document["hooks"].items():
            try:
                hooks[name] = Hook.from_record(name, record)
            except InvalidTrigger as e:
                raise CorruptStore(registry.store.get_path(), f"hooks[{name!r}]: {e}") from e
        registry._keys = dict(document["keys"])
        registry._commands = dict(document["commands"])
        registry._hooks = hooks
        return registry

    def to_document(self) -> StateDocument:
        return {
            "keys": dict(self._keys),
            "commands": dict(self._commands),
            "hooks": {name: hook.to_record() for name, hook in self._hooks.items()},
        }

    def save(self) -> None:
        self.store.write(self.to_document())
        self.dirty = False

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def set_key(self, key: str, value: str) -> Optional[str]:
        """Insert or overwrite a key. Returns the previous value, if any."""
        previous = self._keys.get(key)
        self._keys[key] = value
        self.dirty = True
        return previous

    def get_key(self, key: str) -> Optional[str]:
        return self._keys.get(key)

    def delete_key(self, key: str) -> Optional[str]:
        """Remove a key if present. Returns the previous value, if any."""
        if key not in self._keys:
            return None
        self.dirty = True
        return self._keys.pop(key)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_command(self, name: str, command_line: str) -> None:
        self._commands[name] = command_line
        self.dirty = True

    def get_command(self, name: str) -> Optional[str]:
        return self._commands.get(name)

    def remove_command(self, name: str) -> str:
        """Remove a command. Refused while any hook references it."""
        if name not in self._commands:
            raise UnknownCommand(name)
        users = [hook.name for hook in self._hooks.values() if hook.command == name]
        if users:
            raise CommandInUse(name, users)
        self.dirty = True
        return self._commands.pop(name)

    def run_command(self, name: str, env: Optional[Mapping[str, str]] = None) -> ExecResult:
        command_line = self._commands.get(name)
        if command_line is None:
            raise UnknownCommand(name)
        get_logger(__name__).info("registry: run command name=%s", name)
        return self.executor.execute(command_line, env=env)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def add_hook(self, hook_name: str, command_name: str, trigger: object, key: str) -> Hook:
        action = TriggerAction.parse(trigger)
        if command_name not in self._commands:
            raise UnknownCommand(command_name)
        if hook_name in self._hooks:
            raise DuplicateHook(hook_name)
        hook = Hook(name=hook_name, command=command_name, trigger=action, key=key)
        self._hooks[hook_name] = hook
        self.dirty = True
        return hook

    def remove_hook(self, hook_name: str) -> Hook:
        if hook_name not in self._hooks:
            raise UnknownHook(hook_name)
        self.dirty = True
        return self._hooks.pop(hook_name)

    def hooks_for(self, action: TriggerAction, key: str) -> List[Hook]:
        """Hooks bound to (action, key), in insertion order."""
        return [h for h in self._hooks.values() if h.trigger == action and h.key == key]

    # ------------------------------------------------------------------
    # Listing (fresh generator per call, insertion order)
    # ------------------------------------------------------------------

    def list_keys(self) -> Iterator[Tuple[str, str]]:
        yield from self._keys.items()

    def list_commands(self) -> Iterator[Tuple[str, str]]:
        yield from self._commands.items()

    def list_hooks(self) -> Iterator[Hook]:
        yield from self._hooks.values()
