"""Translation of backend failures into user-facing errors."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional

from orgchart.utils.errors import (
    RETRYABLE_SHEETS_ERRORS,
    SheetsError,
    SheetsErrorCode,
    classify_sheets_failure,
)

logger = logging.getLogger(__name__)


ERROR_MESSAGES: Dict[SheetsErrorCode, str] = {
    SheetsErrorCode.NOT_CONFIGURED: "Google Sheets integration is not configured",
    SheetsErrorCode.PERMISSION_DENIED: "Access to Google Sheets was denied",
    SheetsErrorCode.NOT_FOUND: "Spreadsheet not found",
    SheetsErrorCode.QUOTA_EXCEEDED: "Google Sheets API quota exceeded",
    SheetsErrorCode.TIMEOUT: "Connection to Google Sheets timed out",
    SheetsErrorCode.UNKNOWN: "Unknown Google Sheets error",
}

ERROR_DETAILS: Dict[SheetsErrorCode, str] = {
    SheetsErrorCode.NOT_CONFIGURED: "Set SHEETS_PROXY_URL to the proxy function endpoint",
    SheetsErrorCode.PERMISSION_DENIED: "Check that the service account has editor access to the spreadsheet",
    SheetsErrorCode.NOT_FOUND: "Check that the spreadsheet ID is correct and the spreadsheet exists",
    SheetsErrorCode.QUOTA_EXCEEDED: "Try again in a few minutes and reduce the request rate",
    SheetsErrorCode.TIMEOUT: "Google Sheets took too long to answer. Try again",
}

USER_MESSAGES: Dict[SheetsErrorCode, str] = {
    SheetsErrorCode.NOT_CONFIGURED: "Google Sheets is not connected. Configure it in the admin settings.",
    SheetsErrorCode.PERMISSION_DENIED: "No permission to access the spreadsheet. Check the sharing settings.",
    SheetsErrorCode.NOT_FOUND: "Spreadsheet not found. Check the spreadsheet ID in the settings.",
    SheetsErrorCode.QUOTA_EXCEEDED: "Too many requests. Wait a few minutes and try again.",
    SheetsErrorCode.TIMEOUT: "Slow connection. Try again in a few seconds.",
}


@dataclass
class AppError:
    """A recorded, user-presentable failure."""

    code: str
    message: str
    details: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ErrorHandlingService:
    """
    Keeps a log of recent failures and explains them to users.

    Only quota and timeout failures are reported as retryable; nothing is
    retried automatically.
    """

    def __init__(self, retention: timedelta = timedelta(hours=1), max_errors: int = 100):
        self.retention = retention
        self._errors: Deque[AppError] = deque(maxlen=max_errors)

    def record(self, error: AppError) -> None:
        """Add an error to the log, dropping entries older than the retention window."""
        self._prune()
        self._errors.append(error)
        logger.error(f"[{error.code}] {error.message}")

    def _prune(self) -> None:
        cutoff = datetime.now(timezone.utc) - self.retention
        while self._errors and self._errors[0].timestamp <= cutoff:
            self._errors.popleft()

    def from_sheets_error(self, error: Exception) -> AppError:
        """Build an AppError from a backend failure."""
        if isinstance(error, SheetsError):
            code = error.code
            original = error.message
        else:
            original = str(error)
            code = classify_sheets_failure(None, original)

        return AppError(
            code=code.value,
            message=ERROR_MESSAGES[code],
            details=ERROR_DETAILS.get(code, original or "Unidentified error"),
            context={"original_error": original},
        )

    def user_message(self, error: AppError) -> str:
        """Short text suitable for a notification."""
        try:
            return USER_MESSAGES[SheetsErrorCode(error.code)]
        except (KeyError, ValueError):
            return error.message

    def is_retryable(self, error: AppError) -> bool:
        try:
            return SheetsErrorCode(error.code) in RETRYABLE_SHEETS_ERRORS
        except ValueError:
            return False

    def recent_errors(self, within: timedelta = timedelta(hours=1)) -> List[AppError]:
        """Errors recorded within the given window."""
        cutoff = datetime.now(timezone.utc) - within
        return [error for error in self._errors if error.timestamp > cutoff]

    def clear(self) -> None:
        self._errors.clear()
