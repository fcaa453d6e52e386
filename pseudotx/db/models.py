from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from ..errors import InvalidOperationError


class OperationKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


def _require_collection(collection: str) -> None:
    if not isinstance(collection, str) or not collection:
        raise InvalidOperationError("collection must be a non-empty string")


def _require_mapping(value: Any, what: str, kind: OperationKind) -> None:
    if not isinstance(value, Mapping) or not value:
        raise InvalidOperationError(f"{kind.value} operation requires a non-empty {what}")


@dataclass(frozen=True)
class InsertOp:
    """
    Insert one record into a collection.

    Inserts carry no filter. The payload doubles as the filter used to look
    for a pre-existing record before the write.
    """
    collection: str
    payload: Mapping[str, Any]
    kind: OperationKind = field(default=OperationKind.INSERT, init=False)

    def __post_init__(self) -> None:
        _require_collection(self.collection)
        _require_mapping(self.payload, "payload", self.kind)

    @property
    def capture_filter(self) -> Mapping[str, Any]:
        return self.payload


@dataclass(frozen=True)
class UpdateOp:
    """
    Update every record of a collection matching ``match`` with ``payload``.
    """
    collection: str
    payload: Mapping[str, Any]
    match: Mapping[str, Any]
    kind: OperationKind = field(default=OperationKind.UPDATE, init=False)

    def __post_init__(self) -> None:
        _require_collection(self.collection)
        _require_mapping(self.payload, "payload", self.kind)
        _require_mapping(self.match, "match", self.kind)

    @property
    def capture_filter(self) -> Mapping[str, Any]:
        return self.match


@dataclass(frozen=True)
class DeleteOp:
    """
    Delete every record of a collection matching ``match``.
    """
    collection: str
    match: Mapping[str, Any]
    kind: OperationKind = field(default=OperationKind.DELETE, init=False)

    def __post_init__(self) -> None:
        _require_collection(self.collection)
        _require_mapping(self.match, "match", self.kind)

    @property
    def capture_filter(self) -> Mapping[str, Any]:
        return self.match


Operation = Union[InsertOp, UpdateOp, DeleteOp]


@dataclass(frozen=True)
class CompensationRecord:
    """
    Pre-image of a record captured before ``source`` was written.

    ``restore`` writes the pre-image back, matched on the record identifier.
    """
    source: Operation
    pre_image: Mapping[str, Any]
    restore: UpdateOp

    @classmethod
    def capture(
        cls, source: Operation, pre_image: Mapping[str, Any], id_column: str
    ) -> "CompensationRecord":
        restore = UpdateOp(
            collection=source.collection,
            payload=dict(pre_image),
            match={id_column: pre_image[id_column]},
        )
        return cls(source=source, pre_image=dict(pre_image), restore=restore)


@dataclass(frozen=True)
class WriteResult:
    error: Optional[str] = None
    rowcount: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one batch. All-or-nothing from the caller's perspective.
    """
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "BatchResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "BatchResult":
        return cls(success=False, error=error)
