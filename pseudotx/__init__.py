from .coordinator import TransactionCoordinator
from .config import CompletionMarker, CoordinatorConfig, MarkerConfig, MarkerMode
from .db.models import BatchResult, DeleteOp, InsertOp, Operation, UpdateOp
from .wallets import WalletService

__all__ = [
    "TransactionCoordinator",
    "CoordinatorConfig",
    "CompletionMarker",
    "MarkerConfig",
    "MarkerMode",
    "BatchResult",
    "Operation",
    "InsertOp",
    "UpdateOp",
    "DeleteOp",
    "WalletService",
]
