from kv.config import KVConfig, load_config
from kv.executor import ExecutorBase, ShellExecutor
from kv.registry import Registry
from kv.triggers import TriggerEngine
from kv.types import ExecResult, Hook, HookOutcome, TriggerAction, TriggerReport

__all__ = [
    "ExecResult",
    "ExecutorBase",
    "Hook",
    "HookOutcome",
    "KVConfig",
    "Registry",
    "ShellExecutor",
    "TriggerAction",
    "TriggerEngine",
    "TriggerReport",
    "load_config",
]
