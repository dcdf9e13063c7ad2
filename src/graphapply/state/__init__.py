from .models import StateRecord
from .store import StateStore, InMemoryStateStore, FileStateStore

__all__ = [
    "StateRecord",
    "StateStore",
    "InMemoryStateStore",
    "FileStateStore",
]
