"""Trigger engine: runs hook commands after a storage operation.

Re-entrancy: the engine tracks the (action, key) pairs whose hooks are
currently running. A fire() for a pair already in that set is skipped and
logged at info. The set is exported to hook commands as KV_TRIGGER_CHAIN, so
a hook that shells out to `kv set <same key>` stores the value without
firing the same hooks again.

Hook commands inherit our stdout, so a hook that leaves a background
process running does not hold up the storage operation.
"""

from __future__ import annotations

import json
from typing import FrozenSet, Iterable, Optional, Set, Tuple

from common.errors import CommandExecutionFailed
from common.logger import get_logger
from kv.executor import ExecutorBase
from kv.registry import Registry
from kv.types import Hook, HookOutcome, TriggerAction, TriggerReport

TRIGGER_CHAIN_ENV = "KV_TRIGGER_CHAIN"

TriggerPair = Tuple[TriggerAction, str]


def encode_chain(pairs: Iterable[TriggerPair]) -> str:
    return json.dumps(sorted([action.value, key] for action, key in pairs))


def decode_chain(raw: Optional[str]) -> FrozenSet[TriggerPair]:
    """Parse a KV_TRIGGER_CHAIN value. Raises ValueError on malformed input."""
    if not raw:
        return frozenset()
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid {TRIGGER_CHAIN_ENV}: {e}") from e
    if not isinstance(items, list):
        raise ValueError(f"Invalid {TRIGGER_CHAIN_ENV}: expected a list")
    pairs: Set[TriggerPair] = set()
    for item in items:
        if not (isinstance(item, list) and len(item) == 2 and all(isinstance(v, str) for v in item)):
            raise ValueError(f"Invalid {TRIGGER_CHAIN_ENV} entry: {item!r}")
        pairs.add((TriggerAction.parse(item[0]), item[1]))
    return frozenset(pairs)


class TriggerEngine:
    def __init__(
        self,
        registry: Registry,
        executor: Optional[ExecutorBase] = None,
        chain: Iterable[TriggerPair] = (),
    ):
        self.registry = registry
        self.executor = executor or registry.executor
        self._firing: Set[TriggerPair] = set(chain)

    @property
    def firing(self) -> FrozenSet[TriggerPair]:
        return frozenset(self._firing)

    def fire(self, action: object, key: str) -> TriggerReport:
        """Run every hook bound to (action, key), in hook insertion order.

        Hook failures are collected in the report; they never raise.
        """
        log = get_logger(__name__)
        action = TriggerAction.parse(action)
        report = TriggerReport(action=action, key=key)
        pair = (action, key)

        if pair in self._firing:
            log.info("trigger: skip re-entrant fire action=%s key=%s", action, key)
            report.skipped = True
            return report

        hooks = self.registry.hooks_for(action, key)
        if not hooks:
            return report

        log.info("trigger: fire action=%s key=%s hooks=%d", action, key, len(hooks))
        self._firing.add(pair)
        try:
            for hook in hooks:
                report.outcomes.append(self._run(hook))
        finally:
            self._firing.discard(pair)
        return report

    def _run(self, hook: Hook) -> HookOutcome:
        log = get_logger(__name__)
        command_line = self.registry.get_command(hook.command)
        if command_line is None:
            log.info("trigger: bad hook name=%s missing command=%s", hook.name, hook.command)
            return HookOutcome(hook, error=f"Bad hook! command '{hook.command}' does not exist")

        env = {TRIGGER_CHAIN_ENV: encode_chain(self._firing)}
        try:
            result = self.executor.execute(command_line, env=env, capture=False)
        except CommandExecutionFailed as e:
            log.info("trigger: hook failed name=%s err=%s", hook.name, e)
            return HookOutcome(hook, error=str(e))

        outcome = HookOutcome(hook, exit_status=result["exit_status"], output=result["output"])
        if not outcome.ok:
            log.info("trigger: hook failed name=%s exit=%d", hook.name, result["exit_status"])
        return outcome
