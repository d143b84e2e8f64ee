from .base import Store
from .memory import MemoryStore
from .sql import SqlStore

__all__ = ["Store", "MemoryStore", "SqlStore"]
