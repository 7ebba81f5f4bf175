"""Runtime configuration from CLI flags, environment variables and `.env`.

Env:
- KV_PATH: store file path (default: <user config dir>/kv/kv.json)
- KV_SHELL: shell used to run commands (fallback: SHELL, then /bin/sh)
- KV_COMMAND_TIMEOUT: seconds before a running command is abandoned
- KV_TRIGGER_CHAIN: set by kv itself for hook commands; see kv.triggers
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from dotenv import find_dotenv, load_dotenv

from kv.executor import DEFAULT_SHELL
from kv.triggers import TRIGGER_CHAIN_ENV, TriggerPair, decode_chain
from kvstore.store import DEFAULT_STORE_DIRNAME, DEFAULT_STORE_FILENAME


@dataclass
class KVConfig:
    path: str
    shell: str = DEFAULT_SHELL
    timeout: Optional[float] = None
    trigger_chain: FrozenSet[TriggerPair] = field(default_factory=frozenset)


def user_config_dir() -> Path:
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def default_store_path() -> str:
    return str(user_config_dir() / DEFAULT_STORE_DIRNAME / DEFAULT_STORE_FILENAME)


def _timeout_from_env() -> Optional[float]:
    raw = (os.getenv("KV_COMMAND_TIMEOUT") or "").strip()
    if not raw:
        return None
    try:
        timeout = float(raw)
    except ValueError:
        raise ValueError(f"Invalid KV_COMMAND_TIMEOUT: {raw!r}") from None
    if timeout <= 0:
        raise ValueError(f"KV_COMMAND_TIMEOUT must be positive, got {raw!r}")
    return timeout


def load_config(path: Optional[str] = None) -> KVConfig:
    """Build the config. Explicit arguments win over the environment."""
    load_dotenv(find_dotenv(usecwd=True))
    return KVConfig(
        path=path or os.getenv("KV_PATH") or default_store_path(),
        shell=os.getenv("KV_SHELL") or os.getenv("SHELL") or DEFAULT_SHELL,
        timeout=_timeout_from_env(),
        trigger_chain=decode_chain(os.getenv(TRIGGER_CHAIN_ENV)),
    )
