"""Domain types for gs_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from enum import Enum

from src.gs_common.errors import AppError


class ProvisionStatus(str, Enum):
    CREATED = "CREATED"
    CONFLICT = "CONFLICT"  # username/id already taken, nothing written
    FAILED = "FAILED"      # any other error, transaction rolled back


@dataclass(frozen=True)
class ProvisionResult:
    status: ProvisionStatus
    user_id: str | None = None
    error: AppError | None = None

    @property
    def ok(self) -> bool:
        return self.status is ProvisionStatus.CREATED
