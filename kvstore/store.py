"""FileStore: JSON state document on disk."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from common.errors import CorruptStore, PersistError
from common.logger import get_logger
from kvstore.base import StateDocument, StoreBase, empty_document

DEFAULT_STORE_DIRNAME = "kv"
DEFAULT_STORE_FILENAME = "kv.json"
HOOK_FIELDS = ("command", "trigger", "key")


class FileStore(StoreBase):
    """File-based store (pretty JSON, one document per file)."""

    def __init__(self, file_path: str):
        self.file_path = str(file_path)

    def get_path(self) -> str:
        return self.file_path

    def read(self) -> StateDocument:
        log = get_logger(__name__)
        log.debug("store: read start path=%s", self.file_path)

        if not os.path.exists(self.file_path):
            log.debug("store: file missing, returning empty path=%s", self.file_path)
            return empty_document()
        if not os.path.isfile(self.file_path):
            raise CorruptStore(self.file_path, "not a regular file")

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                raw = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptStore(self.file_path, str(e)) from e

        if not raw.strip():
            # Zero-length file: nothing stored yet.
            log.debug("store: empty file, returning empty path=%s", self.file_path)
            return empty_document()

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStore(self.file_path, f"invalid JSON ({e})") from e

        document = _validate(self.file_path, parsed)
        log.info(
            "store: read ok path=%s keys=%d commands=%d hooks=%d",
            self.file_path,
            len(document["keys"]),
            len(document["commands"]),
            len(document["hooks"]),
        )
        return document

    def write(self, document: StateDocument) -> None:
        """Write the document to file. Atomic via tmp+rename."""
        log = get_logger(__name__)
        tmp_path = self.file_path + ".tmp"

        text = json.dumps(document, indent=2, ensure_ascii=False)

        try:
            Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            _discard(tmp_path)
            raise PersistError(self.file_path, str(e)) from e

        log.info(
            "store: write ok path=%s keys=%d commands=%d hooks=%d",
            self.file_path,
            len(document["keys"]),
            len(document["commands"]),
            len(document["hooks"]),
        )


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        get_logger(__name__).warning("store: cannot remove temp file path=%s err=%s", path, e)


def _validate(path: str, parsed: Any) -> StateDocument:
    if not isinstance(parsed, dict):
        raise CorruptStore(path, "root is not an object")

    document = empty_document()
    for section in ("keys", "commands"):
        entries = parsed.get(section, {})
        if not isinstance(entries, dict):
            raise CorruptStore(path, f"'{section}' is not an object")
        for name, value in entries.items():
            if not isinstance(value, str):
                raise CorruptStore(path, f"{section}[{name!r}] is not a string")
            document[section][name] = value  # type: ignore[literal-required]

    hooks = parsed.get("hooks", {})
    if not isinstance(hooks, dict):
        raise CorruptStore(path, "'hooks' is not an object")
    for name, record in hooks.items():
        if not isinstance(record, dict) or not all(
            isinstance(record.get(field), str) for field in HOOK_FIELDS
        ):
            raise CorruptStore(path, f"hooks[{name!r}] must have string fields {', '.join(HOOK_FIELDS)}")
        document["hooks"][name] = {field: record[field] for field in HOOK_FIELDS}  # type: ignore[misc]

    return document
