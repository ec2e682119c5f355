"""
Core components for the Mutual Aid directory service.
"""

from .bulk_intake import BulkIntakeProcessor, BulkIntakeResult, RowFailure
from .login_throttle import LoginThrottle, ThrottleDecision, ThrottleSweeper
from .submission_store import SubmissionStore
from .user_store import UserStore
from .validator import validate_login, validate_registration, validate_status_update, validate_submission

__all__ = [
    "BulkIntakeProcessor",
    "BulkIntakeResult",
    "RowFailure",
    "LoginThrottle",
    "ThrottleDecision",
    "ThrottleSweeper",
    "SubmissionStore",
    "UserStore",
    "validate_login",
    "validate_registration",
    "validate_status_update",
    "validate_submission",
]
