# ledger/outcome.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OutcomeStatus(str, Enum):
    COMMITTED = "COMMITTED"
    COMMITTED_WITH_WARNING = "COMMITTED_WITH_WARNING"


@dataclass
class LedgerOutcome:
    """
    Result of a committed ledger transition.

    The main transaction always committed when an outcome is returned. A
    warning means a best-effort follow-up write (referral code flag,
    notification) failed and the related row is stale until fixed.
    """

    message: str
    status: OutcomeStatus = OutcomeStatus.COMMITTED
    warning: Optional[str] = None
    record_id: Optional[int] = None

    @classmethod
    def committed(cls, message, record_id=None):
        return cls(message=message, record_id=record_id)

    def with_warning(self, warning):
        self.status = OutcomeStatus.COMMITTED_WITH_WARNING
        self.warning = warning
        return self

    @property
    def has_warning(self) -> bool:
        return self.status == OutcomeStatus.COMMITTED_WITH_WARNING

    def to_dict(self):
        payload = {"success": True, "message": self.message}
        if self.warning:
            payload["warning"] = self.warning
        return payload
