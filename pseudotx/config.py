from dataclasses import dataclass
from enum import Enum


class MarkerMode(str, Enum):
    NONE = "none"
    RPC = "rpc"


class CompletionMarker(str, Enum):
    COMMIT = "commit"
    ROLLBACK = "rollback"


@dataclass
class MarkerConfig:
    mode: MarkerMode = MarkerMode.RPC
    begin_rpc: str = "begin_transaction"
    commit_rpc: str = "commit_transaction"
    rollback_rpc: str = "rollback_transaction"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        self.mode = MarkerMode(self.mode)
        if self.mode == MarkerMode.RPC:
            for name in (self.begin_rpc, self.commit_rpc, self.rollback_rpc):
                if not name:
                    raise ValueError("marker RPC names must be non-empty in rpc mode")


@dataclass
class CoordinatorConfig:
    id_column: str = "id"
    # Marker fired after a clean compensation replay. The hosted backend
    # integration fires commit here; rollback is only the fallback.
    rollback_completion_marker: CompletionMarker = CompletionMarker.COMMIT

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.id_column:
            raise ValueError("id_column must be non-empty")
        self.rollback_completion_marker = CompletionMarker(self.rollback_completion_marker)
