from .backend import DataBackend
from .memory import MemoryBackend
from .models import (
    BatchResult,
    CompensationRecord,
    DeleteOp,
    InsertOp,
    Operation,
    OperationKind,
    UpdateOp,
    WriteResult,
)
from .sql_backend import NativeSqlBackend, SqlBackend

__all__ = [
    "DataBackend",
    "MemoryBackend",
    "SqlBackend",
    "NativeSqlBackend",
    "Operation",
    "OperationKind",
    "InsertOp",
    "UpdateOp",
    "DeleteOp",
    "CompensationRecord",
    "WriteResult",
    "BatchResult",
]
