"""Tests for error handling service."""

from datetime import datetime, timedelta, timezone

import pytest

from orgchart.services.error_handling_service import AppError, ErrorHandlingService
from orgchart.utils.errors import SheetsError, SheetsErrorCode, classify_sheets_failure


@pytest.fixture
def service():
    return ErrorHandlingService()


class TestClassifySheetsFailure:
    """Tests for classify_sheets_failure."""

    @pytest.mark.parametrize(
        "status_code,message,expected",
        [
            (403, "", SheetsErrorCode.PERMISSION_DENIED),
            (None, "Google Sheets API error: 403", SheetsErrorCode.PERMISSION_DENIED),
            (404, "", SheetsErrorCode.NOT_FOUND),
            (None, "Requested entity Not Found", SheetsErrorCode.NOT_FOUND),
            (429, "", SheetsErrorCode.QUOTA_EXCEEDED),
            (None, "Quota exceeded for quota metric", SheetsErrorCode.QUOTA_EXCEEDED),
            (None, "Connection timeout", SheetsErrorCode.TIMEOUT),
            (500, "Internal error", SheetsErrorCode.UNKNOWN),
        ],
    )
    def test_classification(self, status_code, message, expected):
        assert classify_sheets_failure(status_code, message) == expected


class TestSheetsError:
    """Tests for SheetsError."""

    def test_retryable_codes(self):
        assert SheetsError(SheetsErrorCode.QUOTA_EXCEEDED).retryable is True
        assert SheetsError(SheetsErrorCode.TIMEOUT).retryable is True
        assert SheetsError(SheetsErrorCode.PERMISSION_DENIED).retryable is False
        assert SheetsError(SheetsErrorCode.UNKNOWN).retryable is False

    def test_response_carries_code_and_retry_hint(self):
        error = SheetsError(SheetsErrorCode.TIMEOUT, "Timed out", sheet="Funcionarios")

        body = error.to_response().to_dict()

        assert body["error"]["code"] == "SHEETS_TIMEOUT"
        assert body["error"]["details"] == {"retryable": True, "sheet": "Funcionarios"}

    def test_not_configured_is_unavailable(self):
        assert SheetsError(SheetsErrorCode.NOT_CONFIGURED).status_code == 503
        assert SheetsError(SheetsErrorCode.UNKNOWN).status_code == 502


class TestErrorHandlingService:
    """Tests for ErrorHandlingService."""

    def test_from_sheets_error(self, service):
        app_error = service.from_sheets_error(
            SheetsError(SheetsErrorCode.PERMISSION_DENIED, "Google Sheets API error: 403")
        )

        assert app_error.code == "SHEETS_PERMISSION_DENIED"
        assert app_error.context["original_error"] == "Google Sheets API error: 403"
        assert "permission" in service.user_message(app_error).lower()
        assert service.is_retryable(app_error) is False

    def test_from_plain_exception(self, service):
        app_error = service.from_sheets_error(RuntimeError("quota exceeded"))

        assert app_error.code == "SHEETS_QUOTA_EXCEEDED"
        assert service.is_retryable(app_error) is True

    def test_unknown_error_keeps_original_details(self, service):
        app_error = service.from_sheets_error(RuntimeError("something odd"))

        assert app_error.code == "SHEETS_UNKNOWN_ERROR"
        assert app_error.details == "something odd"
        assert service.user_message(app_error) == app_error.message

    def test_recent_errors_window(self):
        """Test only errors inside the window are returned."""
        service = ErrorHandlingService(retention=timedelta(hours=3))
        old = AppError(
            code="SHEETS_TIMEOUT",
            message="old",
            timestamp=datetime.now(timezone.utc) - timedelta(hours=2),
        )
        new = AppError(code="SHEETS_TIMEOUT", message="new")
        service.record(old)
        service.record(new)

        assert service.recent_errors() == [new]
        assert len(service.recent_errors(within=timedelta(hours=3))) == 2

        service.clear()
        assert service.recent_errors() == []

    def test_expired_errors_pruned_on_record(self, service):
        """Test errors older than the retention window are dropped from the log."""
        service.record(AppError(
            code="SHEETS_TIMEOUT",
            message="old",
            timestamp=datetime.now(timezone.utc) - timedelta(hours=2),
        ))
        new = AppError(code="SHEETS_TIMEOUT", message="new")
        service.record(new)

        assert service.recent_errors(within=timedelta(days=1)) == [new]

    def test_log_is_bounded(self):
        service = ErrorHandlingService(max_errors=3)

        for i in range(10):
            service.record(AppError(code="SHEETS_UNKNOWN_ERROR", message=f"failure {i}"))

        assert [error.message for error in service.recent_errors()] == [
            "failure 7",
            "failure 8",
            "failure 9",
        ]
