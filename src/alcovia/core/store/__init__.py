"""Student Store: 生徒・介入・チェックインログの永続化"""

from .base import DEFAULT_LOG_RETENTION, StudentStore
from .jsonl import JsonlStudentStore
from .memory import MemoryStudentStore

__all__ = [
    "DEFAULT_LOG_RETENTION",
    "JsonlStudentStore",
    "MemoryStudentStore",
    "StudentStore",
]
