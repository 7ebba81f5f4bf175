"""Common types for the registry and trigger engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, TypedDict

from common.errors import InvalidTrigger
from kvstore.base import HookRecord


class TriggerAction(str, Enum):
    """Storage operation that activates a hook."""

    SET = "set"
    GET = "get"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: object) -> "TriggerAction":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        text = _ALIASES.get(text, text)
        try:
            return cls(text)
        except ValueError:
            raise InvalidTrigger(value) from None

    def __str__(self) -> str:
        return self.value


_ALIASES = {
    "del": "delete",
    "on-set": "set",
    "on-get": "get",
    "on-delete": "delete",
}


@dataclass(frozen=True)
class Hook:
    name: str
    command: str
    trigger: TriggerAction
    key: str

    def to_record(self) -> HookRecord:
        return {"command": self.command, "trigger": self.trigger.value, "key": self.key}

    @classmethod
    def from_record(cls, name: str, record: HookRecord) -> "Hook":
        return cls(
            name=name,
            command=record["command"],
            trigger=TriggerAction.parse(record["trigger"]),
            key=record["key"],
        )


class ExecResult(TypedDict):
    """Result of running a command line."""
    exit_status: int
    output: str


@dataclass
class HookOutcome:
    """What happened when one matched hook ran."""

    hook: Hook
    exit_status: Optional[int] = None
    output: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.exit_status == 0

    def describe(self) -> str:
        if self.error is not None:
            return f"hook '{self.hook.name}': {self.error}"
        return (
            f"hook '{self.hook.name}': command '{self.hook.command}' "
            f"exited with status {self.exit_status}"
        )


@dataclass
class TriggerReport:
    action: TriggerAction
    key: str
    outcomes: List[HookOutcome] = field(default_factory=list)
    skipped: bool = False

    @property
    def failures(self) -> List[HookOutcome]:
        return [o for o in self.outcomes if not o.ok]
