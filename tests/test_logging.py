"""
Unit tests for logging utilities, the audit sink and the exception types.
"""

import json
from unittest.mock import Mock, patch

import pytest

from docguard.app.core.exceptions import (
    ErrorCode,
    InvalidArgumentError,
    ValidationError,
    raise_invalid_argument,
    require_property_name,
)
from docguard.app.utils import logging as docguard_logging
from docguard.app.utils.logging import (
    DocGuardLogFormatter,
    ValidationAuditLogger,
    correlation_context,
    get_correlation_id,
    get_validation_audit_logger,
    performance_context,
)


class TestCorrelationContext:
    """Test suite for correlation ID scoping."""

    def test_scoped_id_is_cleared(self):
        """Test the correlation ID is cleared when its scope ends."""
        with correlation_context("upload-123") as correlation_id:
            assert correlation_id == "upload-123"
            assert get_correlation_id() == "upload-123"

        assert get_correlation_id() is None

    def test_nested_scope_restores_outer_id(self):
        """Test a nested scope restores the outer correlation ID."""
        with correlation_context("outer"):
            with correlation_context() as inner:
                assert get_correlation_id() == inner
                assert inner != "outer"
            assert get_correlation_id() == "outer"


class TestPerformanceContext:
    """Test suite for performance_context."""

    def test_errors_are_re_raised(self):
        """Test errors inside a timed block propagate."""
        with pytest.raises(RuntimeError):
            with performance_context("file_validation", file_name="brief.pdf"):
                raise RuntimeError("boom")

    def test_yields_context(self):
        """Test the timed block yields its context."""
        with performance_context("file_validation", file_name="brief.pdf") as context:
            assert context == {"file_name": "brief.pdf"}


class TestLogFormatter:
    """Test suite for DocGuardLogFormatter."""

    def test_json_output(self):
        """Test JSON rendering of an event."""
        formatter = DocGuardLogFormatter(use_json=True)

        output = formatter(None, "info", {"event": "File validated", "size": 2048})

        assert json.loads(output) == {"event": "File validated", "size": 2048}

    def test_console_output(self):
        """Test console rendering of an event."""
        formatter = DocGuardLogFormatter()

        output = formatter(None, "info", {
            "event": "File validated",
            "level": "info",
            "logger": "docguard.audit",
            "size": 2048,
        })

        assert output == "INFO     docguard.audit File validated size=2048"


class TestValidationAuditLogger:
    """Test suite for the audit sink."""

    def setup_method(self):
        """Set up test fixtures before each test method."""
        self.audit_logger = ValidationAuditLogger()
        self.audit_logger.logger = Mock()

    def file_validated(self, is_valid):
        self.audit_logger.file_validated(
            file_name="brief.pdf",
            extension=".pdf",
            size=2048,
            mime_type="application/pdf",
            has_content=True,
            is_valid=is_valid,
            errors=[] if is_valid else ["File content is empty."],
            warnings=[]
        )

    def test_valid_file_logs_info(self):
        """Test a valid file is audited at info level."""
        self.file_validated(True)

        self.audit_logger.logger.info.assert_called_once()
        self.audit_logger.logger.warning.assert_not_called()

    def test_invalid_file_logs_warning(self):
        """Test an invalid file is audited at warning level with its errors."""
        self.file_validated(False)

        self.audit_logger.logger.warning.assert_called_once()
        kwargs = self.audit_logger.logger.warning.call_args.kwargs
        assert kwargs["error_count"] == 1
        assert kwargs["errors"] == ["File content is empty."]

    def test_revision_validated(self):
        """Test revision checks are audited with their arguments."""
        self.audit_logger.revision_validated(operation="next_number", is_valid=False, candidate=5)

        self.audit_logger.logger.warning.assert_called_once_with(
            "Revision validation audited",
            operation="next_number",
            is_valid=False,
            candidate=5
        )

    def test_collection_validated(self):
        """Test collection checks are audited with their counts."""
        self.audit_logger.collection_validated(property_name="revisions", item_count=3, result_count=1)

        kwargs = self.audit_logger.logger.info.call_args.kwargs
        assert kwargs["is_valid"] is False
        assert kwargs["item_count"] == 3

    def test_shared_audit_logger_disabled(self):
        """Test no shared audit logger exists when auditing is off."""
        settings = Mock()
        settings.logging.enable_audit_logging = False

        with patch("docguard.app.utils.logging.get_settings", return_value=settings):
            assert get_validation_audit_logger() is None

    def test_shared_audit_logger_enabled(self):
        """Test the shared audit logger is created once when auditing is on."""
        settings = Mock()
        settings.logging.enable_audit_logging = True

        with patch("docguard.app.utils.logging.get_settings", return_value=settings):
            first = get_validation_audit_logger()
            second = get_validation_audit_logger()

        assert isinstance(first, ValidationAuditLogger)
        assert first is second
        assert first is docguard_logging._audit_logger


class TestExceptions:
    """Test suite for the exception hierarchy."""

    def test_invalid_argument_is_a_value_error(self):
        """Test InvalidArgumentError is also a ValueError."""
        with pytest.raises(ValueError) as exc_info:
            raise_invalid_argument("size must be an integer", argument_name="size", argument_value="10")

        error = exc_info.value
        assert isinstance(error, InvalidArgumentError)
        assert str(error) == "[2002] size must be an integer"
        assert error.argument_name == "size"
        assert error.details == {"argument_name": "size", "argument_value": "'10'"}

    def test_to_dict(self):
        """Test the serialized form of an exception."""
        error = ValidationError("File validation failed with 1 error(s)", errors=["File content is empty."])

        data = error.to_dict()

        assert data["error_code"] == ErrorCode.FILE_VALIDATION_FAILED
        assert data["http_status_code"] == 422
        assert data["details"]["errors"] == ["File content is empty."]
        assert data["user_message"] == "The uploaded file failed validation."
        assert error.errors == ["File content is empty."]

    def test_add_context(self):
        """Test context is added to the exception details."""
        error = ValidationError("failed")
        error.add_context("file_name", "brief.pdf")

        assert error.details["file_name"] == "brief.pdf"

    def test_require_property_name(self):
        """Test property names are required and non-blank."""
        assert require_property_name("file_name") == "file_name"

        with pytest.raises(InvalidArgumentError) as exc_info:
            require_property_name("   ")

        assert exc_info.value.error_code == ErrorCode.ARGUMENT_REQUIRED
        assert exc_info.value.argument_name == "property_name"
