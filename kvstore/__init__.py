from kvstore.base import MemoryStore, StateDocument, StoreBase, empty_document
from kvstore.store import DEFAULT_STORE_DIRNAME, DEFAULT_STORE_FILENAME, FileStore

__all__ = [
    "DEFAULT_STORE_DIRNAME",
    "DEFAULT_STORE_FILENAME",
    "FileStore",
    "MemoryStore",
    "StateDocument",
    "StoreBase",
    "empty_document",
]
