"""Custom exception classes and error response utilities."""

from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, List, Optional


@dataclass
class FieldError:
    """Error details for a specific field."""

    field: str
    message: str
    code: str = "invalid"

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON response."""
        return {
            "field": self.field,
            "message": self.message,
            "code": self.code,
        }


@dataclass
class ErrorResponse:
    """Structured error response for API endpoints."""

    message: str
    status_code: int
    error_code: str
    details: Optional[Dict[str, Any]] = None
    field_errors: List[FieldError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "error": {
                "message": self.message,
                "code": self.error_code,
            }
        }

        if self.details:
            result["error"]["details"] = self.details

        if self.field_errors:
            result["error"]["field_errors"] = [
                fe.to_dict() for fe in self.field_errors
            ]

        return result


class APIError(Exception):
    """Base exception for API errors."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        field_errors: Optional[List[FieldError]] = None,
    ):
        self.message = message or self.__class__.message
        self.details = details
        self.field_errors = field_errors or []
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to structured error response."""
        return ErrorResponse(
            message=self.message,
            status_code=self.status_code,
            error_code=self.error_code,
            details=self.details,
            field_errors=self.field_errors,
        )


class ValidationError(APIError):
    """Exception for request validation failures."""

    status_code: int = HTTPStatus.BAD_REQUEST
    error_code: str = "validation_error"
    message: str = "Request validation failed"


class NotFoundError(APIError):
    """Exception for resource not found."""

    status_code: int = HTTPStatus.NOT_FOUND
    error_code: str = "not_found"
    message: str = "Resource not found"


class DuplicateError(APIError):
    """Exception for duplicate resource conflicts."""

    status_code: int = HTTPStatus.CONFLICT
    error_code: str = "duplicate"
    message: str = "Resource already exists"


class SheetsErrorCode(str, Enum):
    """Transport-level failure categories of the spreadsheet backend."""

    NOT_CONFIGURED = "SHEETS_NOT_CONFIGURED"
    PERMISSION_DENIED = "SHEETS_PERMISSION_DENIED"
    NOT_FOUND = "SHEETS_NOT_FOUND"
    QUOTA_EXCEEDED = "SHEETS_QUOTA_EXCEEDED"
    TIMEOUT = "SHEETS_TIMEOUT"
    UNKNOWN = "SHEETS_UNKNOWN_ERROR"


RETRYABLE_SHEETS_ERRORS = frozenset({
    SheetsErrorCode.QUOTA_EXCEEDED,
    SheetsErrorCode.TIMEOUT,
})


class SheetsError(APIError):
    """Exception for failures talking to the spreadsheet backend."""

    status_code: int = HTTPStatus.BAD_GATEWAY
    error_code: str = "sheets_error"
    message: str = "Spreadsheet backend request failed"

    def __init__(
        self,
        code: SheetsErrorCode = SheetsErrorCode.UNKNOWN,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        sheet: Optional[str] = None,
    ):
        self.code = code
        self.sheet = sheet
        super().__init__(message=message, details=details)
        if code == SheetsErrorCode.NOT_CONFIGURED:
            self.status_code = HTTPStatus.SERVICE_UNAVAILABLE

    @property
    def retryable(self) -> bool:
        """Only quota and timeout failures are worth retrying."""
        return self.code in RETRYABLE_SHEETS_ERRORS

    def to_response(self) -> ErrorResponse:
        """Include the failure category and retry hint in the response."""
        response = super().to_response()
        response.error_code = self.code.value
        response.details = {
            **(self.details or {}),
            "retryable": self.retryable,
        }
        if self.sheet:
            response.details["sheet"] = self.sheet
        return response


def classify_sheets_failure(
    status_code: Optional[int],
    message: str = "",
) -> SheetsErrorCode:
    """
    Map an HTTP status and/or error text from the proxy to a failure category.

    The proxy reports upstream Google errors as text ("Google Sheets API
    error: 403"), so the message is inspected as well as the status code.
    """
    text = (message or "").lower()

    if status_code == HTTPStatus.FORBIDDEN or "403" in text or "forbidden" in text:
        return SheetsErrorCode.PERMISSION_DENIED
    if status_code == HTTPStatus.NOT_FOUND or "404" in text or "not found" in text:
        return SheetsErrorCode.NOT_FOUND
    if status_code == HTTPStatus.TOO_MANY_REQUESTS or "429" in text or "quota" in text:
        return SheetsErrorCode.QUOTA_EXCEEDED
    if status_code in (HTTPStatus.REQUEST_TIMEOUT, HTTPStatus.GATEWAY_TIMEOUT) or "timeout" in text:
        return SheetsErrorCode.TIMEOUT
    return SheetsErrorCode.UNKNOWN


def create_not_found_error(resource_type: str, identifier: Any) -> NotFoundError:
    """Create a not found error for a specific resource."""
    return NotFoundError(
        message=f"{resource_type} not found",
        details={"resource_type": resource_type, "identifier": str(identifier)},
    )


def create_duplicate_error(
    resource_type: str,
    field: str,
    value: Any,
) -> DuplicateError:
    """Create a duplicate error for a specific field."""
    return DuplicateError(
        message=f"{resource_type} with {field} '{value}' already exists",
        field_errors=[
            FieldError(
                field=field,
                message=f"This {field} is already in use",
                code="duplicate",
            )
        ],
    )
