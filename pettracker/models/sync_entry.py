from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntryStatus(str, Enum):
    PENDING = "pending"
    FAILED = "failed"


@dataclass
class SyncQueueEntry:
    """One pending operation in the outbox."""
    operation: Operation
    collection: str
    record_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    op_id: Optional[str] = None
    attempts: int = 0
    last_error: str = ""
    created_at: str = ""
    status: EntryStatus = EntryStatus.PENDING
    last_attempt_at: Optional[str] = None
    seq: Optional[int] = None

    def __post_init__(self):
        self.operation = Operation(self.operation)
        self.status = EntryStatus(self.status)

    @property
    def remote_id(self) -> Optional[str]:
        return self.payload.get("remote_id")
