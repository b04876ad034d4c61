"""Transaction cache implementations."""

from .filesystem import FilesystemTransactionCache
from .interface import TransactionCache
from .memory import MemoryTransactionCache

__all__ = ["FilesystemTransactionCache", "MemoryTransactionCache", "TransactionCache"]
