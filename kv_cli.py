#!/usr/bin/env python3
"""
kv CLI: key-value store with command hooks.

Usage:
  kv set <key> <value>
  kv get <key>
  kv del <key>
  kv cmd add <name> <command line>
  kv cmd del <name>
  kv cmd run <name>
  kv cmd add-hook <hook> <cmd> <set|get|del> <key>
  kv cmd del-hook <hook>
  kv list [keys|cmds|hooks]

Options:
  --path <file>      Store file path (default: <config dir>/kv/kv.json, or KV_PATH)
"""
import argparse
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

# Allow running from repo root without installing
sys.path.insert(0, str(Path(__file__).resolve().parent))

from common.errors import KVError, PersistError
from common.logger import get_logger
from kv.config import load_config
from kv.executor import ExecutorBase, ShellExecutor
from kv.registry import Registry
from kv.triggers import TriggerEngine
from kv.types import TriggerAction, TriggerReport
from kvstore.store import FileStore

RULE = "-------------------"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kv",
        description="kv - key-value store that runs commands when keys change",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Hooks bind a stored command to a key and an action. For example:
  kv cmd add bg 'feh --bg-fill "$(kv get bg-path)"'
  kv cmd add-hook set-bg bg set bg-path
  kv set bg-path ~/pictures/1.png     # runs 'bg'
        """,
    )
    parser.add_argument("--path", default=None, help="Store file path")
    sub = parser.add_subparsers(dest="command", metavar="command")

    p = sub.add_parser("set", help="Set a key")
    p.add_argument("key")
    p.add_argument("value", nargs="+")

    p = sub.add_parser("get", help="Print a key's value (empty line if absent)")
    p.add_argument("key")

    p = sub.add_parser("del", help="Delete a key and print its old value")
    p.add_argument("key")

    cmd = sub.add_parser("cmd", help="Manage commands and hooks")
    cmd_sub = cmd.add_subparsers(dest="cmd_command", metavar="action")
    cmd_sub.required = True

    p = cmd_sub.add_parser("add", help="Store a command line under a name")
    p.add_argument("name")
    p.add_argument("command_line", nargs="+")

    p = cmd_sub.add_parser("del", help="Remove a command (refused while hooks use it)")
    p.add_argument("name")

    p = cmd_sub.add_parser("run", help="Run a stored command")
    p.add_argument("name")

    p = cmd_sub.add_parser("add-hook", help="Run a command when a key is accessed")
    p.add_argument("hook_name")
    p.add_argument("cmd_name")
    p.add_argument("trigger", help="set, get or del")
    p.add_argument("key")

    p = cmd_sub.add_parser("del-hook", help="Remove a hook")
    p.add_argument("hook_name")

    p = sub.add_parser("list", help="List keys, commands or hooks")
    p.add_argument("subject", nargs="?", choices=["keys", "cmds", "hooks"])

    return parser


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_value(value: Optional[str]) -> None:
    print(value if value is not None else "")


def _fire(engine: TriggerEngine, action: TriggerAction, key: str) -> None:
    # Hooks write to the same stdout; keep our own output ahead of theirs.
    sys.stdout.flush()
    _print_report(engine.fire(action, key))


def _print_report(report: TriggerReport) -> None:
    for outcome in report.outcomes:
        if outcome.output:
            sys.stdout.write(outcome.output)
    for failure in report.failures:
        print(f"Error! {failure.describe()}", file=sys.stderr)


def format_table(header: Sequence[str], rows: List[Sequence[str]]) -> str:
    """Align columns like a tab writer, with `--` between cells."""
    table = [list(header)] + [list(r) for r in rows]
    widths = [max(len(r[i]) for r in table) for i in range(len(header))]
    lines = []
    for r in table:
        cells = [c.ljust(w) for c, w in zip(r[:-1], widths)] + [r[-1]]
        lines.append("  --  ".join(cells))
    return "\n".join(lines)


def _list_keys(registry: Registry) -> str:
    return format_table(("Key", "Value"), list(registry.list_keys()))


def _list_cmds(registry: Registry) -> str:
    return format_table(("Name", "Command"), list(registry.list_commands()))


def _list_hooks(registry: Registry) -> str:
    rows = [(h.name, h.command, str(h.trigger), h.key) for h in registry.list_hooks()]
    return format_table(("Hook Name", "Cmd Name", "Trigger", "Key"), rows)


LISTERS: Dict[str, Callable[[Registry], str]] = {
    "keys": _list_keys,
    "cmds": _list_cmds,
    "hooks": _list_hooks,
}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _save_if_dirty(registry: Registry) -> None:
    if registry.dirty:
        registry.save()


def _exit_status(status: int) -> int:
    # Killed by signal N: report 128+N like a shell does.
    return status if status >= 0 else 128 - status


def dispatch(parsed: argparse.Namespace, registry: Registry, engine: TriggerEngine) -> int:
    command = parsed.command

    if command == "set":
        registry.set_key(parsed.key, " ".join(parsed.value))
        registry.save()
        _fire(engine, TriggerAction.SET, parsed.key)
        return 0

    if command == "get":
        _print_value(registry.get_key(parsed.key))
        _fire(engine, TriggerAction.GET, parsed.key)
        return 0

    if command == "del":
        previous = registry.delete_key(parsed.key)
        _save_if_dirty(registry)
        _print_value(previous)
        _fire(engine, TriggerAction.DELETE, parsed.key)
        return 0

    if command == "list":
        if parsed.subject:
            print(LISTERS[parsed.subject](registry))
        else:
            print(f"\n{RULE}\n".join(lister(registry) for lister in LISTERS.values()))
        return 0

    action = parsed.cmd_command
    if action == "add":
        registry.add_command(parsed.name, " ".join(parsed.command_line))
    elif action == "del":
        registry.remove_command(parsed.name)
    elif action == "run":
        result = registry.run_command(parsed.name)
        sys.stdout.write(result["output"])
        return _exit_status(result["exit_status"])
    elif action == "add-hook":
        registry.add_hook(parsed.hook_name, parsed.cmd_name, parsed.trigger, parsed.key)
    elif action == "del-hook":
        registry.remove_hook(parsed.hook_name)
    _save_if_dirty(registry)
    return 0


def main(argv: Optional[Sequence[str]] = None, executor: Optional[ExecutorBase] = None) -> int:
    parser = build_parser()
    parsed = parser.parse_args(argv)

    if not parsed.command:
        parser.print_help()
        return 0

    try:
        config = load_config(path=parsed.path)
    except ValueError as e:
        print(f"Error! {e}", file=sys.stderr)
        return 1

    log = get_logger("kv.cli")
    log.debug("cli: command=%s path=%s", parsed.command, config.path)

    store = FileStore(config.path)
    executor = executor or ShellExecutor(shell=config.shell, timeout=config.timeout)
    try:
        registry = Registry.load(store, executor)
        engine = TriggerEngine(registry, chain=config.trigger_chain)
        return dispatch(parsed, registry, engine)
    except PersistError as e:
        print(f"Error! {e}\nThe change may not be durable.", file=sys.stderr)
        return 1
    except KVError as e:
        print(f"Error! {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
