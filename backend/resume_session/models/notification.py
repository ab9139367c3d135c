"""
User-facing notifications raised by the session core
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from resume_session.models.enums import FailureReason

MESSAGES = {
    FailureReason.NETWORK_ERROR: "We couldn't reach the server. Please check your connection and try again.",
    FailureReason.NOT_FOUND: "That resume could not be found. It may have been deleted.",
    FailureReason.LIMIT_REACHED: "You've reached the resume limit for your plan.",
}


@dataclass
class Notification:
    """Dismissible error notice; retry is offered for transient failures."""
    message: str
    reason: Optional[FailureReason] = None
    retry: bool = False
    dismissible: bool = True

    @classmethod
    def for_reason(cls, reason: FailureReason, message: str = None) -> 'Notification':
        return cls(
            message=message or MESSAGES[reason],
            reason=reason,
            retry=reason == FailureReason.NETWORK_ERROR,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': self.message,
            'reason': self.reason.value if self.reason else None,
            'retry': self.retry,
            'dismissible': self.dismissible,
        }
