"""
File Integrity Validation Service

Decides whether an uploaded file and its claimed metadata are safe to store.
A single validate() call runs every check and reports all problems at once so
the caller can build a complete user-facing report:

1. File name: presence, length, OS-invalid and problematic characters,
   reserved device names
2. Extension: format, length, allow-list membership
3. Size: bounds, distinguishing empty from too large
4. MIME type: shape and allow-list membership
5. Checksum: SHA-256 hex digest format
6. Content (when bytes are supplied): signature detection, claimed versus
   detected type, SHA-256 integrity, claimed versus actual size

Business-rule violations are returned as data. Type and extension
mismatches are warnings because benign aliases (.jpg/.jpeg) are common;
integrity and size mismatches are errors.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from docguard.app.core.allow_list import AllowList, get_default_allow_list
from docguard.app.core.exceptions import ErrorCode, raise_invalid_argument, require_property_name
from docguard.app.models.domain.validation import NormalizedFileMetadata, ValidationOutcome
from docguard.app.processors.content_classifier import ContentClassifier, get_content_classifier
from docguard.app.utils.file_utils import (
    DEFAULT_FILE_NAME,
    INVALID_FILE_NAME_CHARS,
    PROBLEMATIC_FILE_NAME_CHARS,
    calculate_file_checksum,
    clean_file_name,
    extract_base_file_name,
    extract_extension,
    format_file_size,
    has_invalid_characters,
    has_problematic_characters,
    normalize_extension,
    normalize_mime_type,
)
from docguard.app.utils.logging import ValidationAuditLogger, get_logger, get_validation_audit_logger, performance_context
from docguard.app.utils.validators import ValidationResult, create_validation_result
from docguard.config.settings import FileValidationSettings, get_settings

logger = get_logger(__name__)


CHECKSUM_PATTERN = re.compile(r"[A-Fa-f0-9]{64}")
MIME_TYPE_PATTERN = re.compile(r"[\w.\-]+/[\w.\-+]+")
EXTENSION_PATTERN = re.compile(r"\.[a-z0-9]{1,10}")

# Equivalent spellings of the same type
EXTENSION_ALIASES = {
    ".jpeg": ".jpg",
    ".jpe": ".jpg",
    ".tiff": ".tif",
    ".mpeg": ".mpg",
}

MIME_TYPE_ALIASES = {
    "audio/x-wav": "audio/wav",
    "audio/mp3": "audio/mpeg",
    "application/csv": "text/csv",
}

GENERIC_FILE_NAME_SUGGESTIONS = (
    "Document",
    "File",
    "Legal_Document",
    "New_File",
    "Untitled",
)

# Labels used in the aggregated outcome messages
FILE_NAME_LABEL = "File name"
EXTENSION_LABEL = "File extension"
FILE_SIZE_LABEL = "File size"
MIME_TYPE_LABEL = "MIME type"
CHECKSUM_LABEL = "Checksum"


def _canonical_extension(extension: Optional[str]) -> str:
    normalized = normalize_extension(extension)
    return EXTENSION_ALIASES.get(normalized, normalized)


def _canonical_mime_type(mime_type: Optional[str]) -> str:
    normalized = normalize_mime_type(mime_type)
    return MIME_TYPE_ALIASES.get(normalized, normalized)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _require_size(size: int, argument_name: str = "size") -> int:
    if isinstance(size, bool) or not isinstance(size, int):
        raise_invalid_argument(
            f"{argument_name} must be an integer number of bytes",
            argument_name=argument_name,
            argument_value=size,
            error_code=ErrorCode.ARGUMENT_INVALID
        )
    return size


def _require_content(content: Optional[bytes]) -> Optional[bytes]:
    if content is None:
        return None
    if not isinstance(content, (bytes, bytearray, memoryview)):
        raise_invalid_argument(
            "content must be a bytes-like object",
            argument_name="content",
            argument_value=type(content).__name__,
            error_code=ErrorCode.ARGUMENT_INVALID
        )
    return bytes(content)


class FileIntegrityValidator:
    """
    Validates uploaded files against the allow-list and their own content.

    Holds only immutable collaborators (allow-list, classifier, settings),
    so one instance can serve concurrent uploads.
    """

    def __init__(
        self,
        allow_list: Optional[AllowList] = None,
        classifier: Optional[ContentClassifier] = None,
        settings: Optional[FileValidationSettings] = None,
        audit_logger: Optional[ValidationAuditLogger] = None
    ):
        """
        Initialize the validator.

        Args:
            allow_list: Accepted extensions/MIME types; defaults to the shared one
            classifier: Content classifier; a default one is created if omitted
            settings: File validation limits; defaults to loaded settings
            audit_logger: Audit sink; defaults to the shared one when enabled
        """
        self.settings = settings or get_settings().file_validation
        self.allow_list = allow_list or get_default_allow_list()
        self.classifier = classifier or ContentClassifier(settings=self.settings)
        self.audit_logger = audit_logger

    # Aggregated validation

    def validate(
        self,
        file_name: Optional[str],
        extension: Optional[str],
        size: int,
        mime_type: Optional[str],
        checksum: Optional[str],
        content: Optional[bytes] = None
    ) -> ValidationOutcome:
        """
        Run every file check and collect all errors and warnings.

        Args:
            file_name: Claimed file name, including its extension
            extension: Claimed extension, with or without the leading dot
            size: Claimed size in bytes
            mime_type: Claimed MIME type
            checksum: Claimed SHA-256 hex digest
            content: Optional raw bytes for content cross-validation

        Returns:
            ValidationOutcome; is_valid is True only when there are no errors

        Raises:
            InvalidArgumentError: If size is not an integer or content is not
                bytes-like
        """
        size = _require_size(size)
        content = _require_content(content)

        with performance_context("file_validation", file_name=file_name, size=size):
            outcome = ValidationOutcome(
                metadata=NormalizedFileMetadata(
                    file_name=(file_name or "").strip(),
                    extension=normalize_extension(extension),
                    size=size,
                    mime_type=normalize_mime_type(mime_type),
                    checksum=(checksum or "").lower(),
                )
            )

            field_checks = (
                self.validate_file_name_field(file_name, FILE_NAME_LABEL),
                self.validate_extension_field(extension, EXTENSION_LABEL),
                self.validate_file_size_field(size, FILE_SIZE_LABEL),
                self.validate_mime_type_field(mime_type, MIME_TYPE_LABEL),
                self.validate_checksum_field(checksum, CHECKSUM_LABEL),
            )
            for results in field_checks:
                for result in results:
                    outcome.add_error(result.message)

            if content is not None:
                self._validate_content(content, extension, size, mime_type, checksum, outcome)

        if outcome.is_valid:
            logger.debug(
                "File validation passed",
                file_name=file_name,
                warning_count=len(outcome.warnings)
            )
        else:
            logger.info(
                "File validation failed",
                file_name=file_name,
                error_count=len(outcome.errors),
                warning_count=len(outcome.warnings)
            )

        self._audit(file_name, extension, size, mime_type, content, outcome)
        return outcome

    def _validate_content(
        self,
        content: bytes,
        extension: Optional[str],
        size: int,
        mime_type: Optional[str],
        checksum: Optional[str],
        outcome: ValidationOutcome
    ) -> None:
        if not content:
            outcome.add_error("File content is empty.")
            return

        detection = self.classifier.detect(content)
        outcome.detected_mime_type = detection.mime_type
        outcome.detected_extension = detection.extension

        if not detection.recognized:
            outcome.add_error(
                "File content validation failed. Unrecognized file signature "
                f"(leading bytes: {detection.diagnostic_hex})."
            )
        elif not self.classifier.is_allowed(detection, self.allow_list):
            outcome.add_error(
                "File content validation failed. "
                f"Detected type {detection.mime_type} ({detection.extension}) is not allowed."
            )
        else:
            if not _is_blank(mime_type) and _canonical_mime_type(mime_type) != _canonical_mime_type(detection.mime_type):
                outcome.add_warning(
                    f"MIME type mismatch. Claimed: {mime_type}, Detected: {detection.mime_type}"
                )
            if not _is_blank(extension) and _canonical_extension(extension) != _canonical_extension(detection.extension):
                outcome.add_warning(
                    f"File extension mismatch. Claimed: {extension}, Detected: {detection.extension}"
                )
            if detection.low_confidence:
                outcome.add_warning(
                    f"File type detected with low confidence as {detection.mime_type} "
                    f"({detection.extension}); the content could not be fully inspected."
                )

        if self.is_valid_checksum(checksum) and not self.validate_file_integrity(content, checksum):
            outcome.add_error("File integrity validation failed. Checksum does not match file content.")

        if len(content) != size:
            outcome.add_error(
                f"File size mismatch. Claimed: {format_file_size(size)}, "
                f"Actual: {format_file_size(len(content))}"
            )

    def _audit(
        self,
        file_name: Optional[str],
        extension: Optional[str],
        size: int,
        mime_type: Optional[str],
        content: Optional[bytes],
        outcome: ValidationOutcome
    ) -> None:
        sink = self.audit_logger or get_validation_audit_logger()
        if sink is None:
            return
        try:
            sink.file_validated(
                file_name=file_name,
                extension=extension,
                size=size,
                mime_type=mime_type,
                has_content=content is not None,
                is_valid=outcome.is_valid,
                errors=list(outcome.errors),
                warnings=list(outcome.warnings),
                detected_mime_type=outcome.detected_mime_type
            )
        except Exception as e:
            logger.error("Audit sink failed", file_name=file_name, error=str(e))

    # Field-scoped validation

    def validate_file_name_field(self, file_name: Optional[str], property_name: str) -> List[ValidationResult]:
        property_name = require_property_name(property_name)
        if _is_blank(file_name):
            return [create_validation_result(f"{property_name} is required and cannot be empty.", property_name)]

        results = []
        trimmed = file_name.strip()

        if len(trimmed) < self.settings.min_file_name_length:
            results.append(create_validation_result(
                f"{property_name} must be at least {self.settings.min_file_name_length} character(s) long.",
                property_name
            ))
        elif len(trimmed) > self.settings.max_file_name_length:
            results.append(create_validation_result(
                f"{property_name} cannot exceed {self.settings.max_file_name_length} characters.",
                property_name
            ))

        if has_invalid_characters(trimmed):
            results.append(create_validation_result(
                f"{property_name} contains invalid file name characters.", property_name
            ))

        if has_problematic_characters(trimmed):
            results.append(create_validation_result(
                f"{property_name} contains problematic characters (< > : \" | ? *) that may cause issues.",
                property_name
            ))

        if self.is_reserved_file_name(trimmed):
            results.append(create_validation_result(
                f"{property_name} uses a reserved system name and cannot be used.", property_name
            ))

        return results

    def validate_extension_field(self, extension: Optional[str], property_name: str) -> List[ValidationResult]:
        property_name = require_property_name(property_name)
        if _is_blank(extension):
            return [create_validation_result(f"{property_name} is required and cannot be empty.", property_name)]

        normalized = normalize_extension(extension)
        if not EXTENSION_PATTERN.fullmatch(normalized):
            return [create_validation_result(f"{property_name} format is invalid.", property_name)]

        results = []
        length = len(normalized) - 1
        if length < self.settings.min_extension_length:
            results.append(create_validation_result(
                f"{property_name} must be at least {self.settings.min_extension_length} character(s) long.",
                property_name
            ))
        elif length > self.settings.max_extension_length:
            results.append(create_validation_result(
                f"{property_name} cannot exceed {self.settings.max_extension_length} characters.",
                property_name
            ))

        if not self.allow_list.is_extension_allowed(normalized):
            results.append(create_validation_result(
                f"{property_name} '{extension}' is not allowed. "
                f"Allowed extensions: {', '.join(self.allow_list.allowed_extensions_list())}.",
                property_name
            ))

        return results

    def validate_file_size_field(self, size: int, property_name: str) -> List[ValidationResult]:
        property_name = require_property_name(property_name)
        size = _require_size(size, property_name)

        if size <= 0:
            return [create_validation_result(f"{property_name} must be greater than 0 bytes.", property_name)]
        if size > self.settings.max_file_size_bytes:
            return [create_validation_result(
                f"{property_name} {format_file_size(size)} exceeds the maximum allowed size of "
                f"{format_file_size(self.settings.max_file_size_bytes)}.",
                property_name
            )]
        if size < self.settings.min_file_size_bytes:
            return [create_validation_result(
                f"{property_name} {size:,} bytes is invalid. Must be between "
                f"{self.settings.min_file_size_bytes:,} and {self.settings.max_file_size_bytes:,} bytes.",
                property_name
            )]
        return []

    def validate_mime_type_field(self, mime_type: Optional[str], property_name: str) -> List[ValidationResult]:
        property_name = require_property_name(property_name)
        if _is_blank(mime_type):
            return [create_validation_result(f"{property_name} is required and cannot be empty.", property_name)]

        normalized = normalize_mime_type(mime_type)
        if not MIME_TYPE_PATTERN.fullmatch(normalized):
            return [create_validation_result(f"{property_name} format is invalid.", property_name)]

        if not self.allow_list.is_mime_type_allowed(normalized):
            return [create_validation_result(f"{property_name} '{mime_type}' is not allowed.", property_name)]
        return []

    def validate_checksum_field(self, checksum: Optional[str], property_name: str) -> List[ValidationResult]:
        property_name = require_property_name(property_name)
        if _is_blank(checksum):
            return [create_validation_result(f"{property_name} is required and cannot be empty.", property_name)]

        if self.is_valid_checksum(checksum):
            return []
        if len(checksum) != self.settings.checksum_length:
            return [create_validation_result(
                f"{property_name} must be exactly {self.settings.checksum_length} characters long. "
                f"Provided: {len(checksum)} characters.",
                property_name
            )]
        return [create_validation_result(
            f"{property_name} must contain only hexadecimal characters (0-9, A-F).", property_name
        )]

    # Predicates

    def is_file_name_valid(self, file_name: Optional[str]) -> bool:
        return not self.validate_file_name_field(file_name, FILE_NAME_LABEL)

    def is_reserved_file_name(self, file_name: Optional[str]) -> bool:
        """True when the name without its last extension is a reserved name."""
        if _is_blank(file_name):
            return False
        return self.allow_list.is_reserved_name(extract_base_file_name(file_name))

    def is_extension_allowed(self, extension: Optional[str]) -> bool:
        normalized = normalize_extension(extension)
        return bool(EXTENSION_PATTERN.fullmatch(normalized)) and self.allow_list.is_extension_allowed(normalized)

    def is_mime_type_allowed(self, mime_type: Optional[str]) -> bool:
        normalized = normalize_mime_type(mime_type)
        return bool(MIME_TYPE_PATTERN.fullmatch(normalized)) and self.allow_list.is_mime_type_allowed(normalized)

    def is_file_size_valid(self, size: int) -> bool:
        if isinstance(size, bool) or not isinstance(size, int):
            return False
        return self.settings.min_file_size_bytes <= size <= self.settings.max_file_size_bytes

    @staticmethod
    def is_valid_checksum(checksum: Optional[str]) -> bool:
        """True for exactly 64 hexadecimal characters, either case."""
        return isinstance(checksum, str) and CHECKSUM_PATTERN.fullmatch(checksum) is not None

    def validate_file_integrity(self, content: Optional[bytes], checksum: Optional[str]) -> bool:
        """Recompute the SHA-256 digest and compare it case-insensitively."""
        content = _require_content(content)
        if content is None or not self.is_valid_checksum(checksum):
            return False
        return calculate_file_checksum(content) == checksum.lower()

    # Suggestions

    def suggest_alternative_file_names(
        self,
        attempted_file_name: Optional[str],
        max_suggestions: int = 10,
        now: Optional[datetime] = None
    ) -> List[str]:
        """
        Propose valid alternatives for a rejected file name.

        Candidates come in priority order: offending characters replaced or
        stripped, suffixes for reserved names, date stamps, short random
        tokens. Candidates equal to the attempt or themselves reserved are
        dropped.

        Args:
            attempted_file_name: The rejected name
            max_suggestions: How many to return, capped by settings
            now: Clock value for date stamps; defaults to the current UTC time

        Returns:
            De-duplicated list of at most max_suggestions names
        """
        if isinstance(max_suggestions, bool) or not isinstance(max_suggestions, int) or max_suggestions < 1:
            raise_invalid_argument(
                "max_suggestions must be at least 1",
                argument_name="max_suggestions",
                argument_value=max_suggestions,
                error_code=ErrorCode.ARGUMENT_OUT_OF_RANGE
            )
        limit = min(max_suggestions, self.settings.max_file_name_suggestions)

        if _is_blank(attempted_file_name):
            return list(GENERIC_FILE_NAME_SUGGESTIONS[:limit])

        attempted = attempted_file_name.strip()
        base_name = extract_base_file_name(attempted)
        extension = "".join(
            char for char in extract_extension(attempted)
            if char not in INVALID_FILE_NAME_CHARS and char not in PROBLEMATIC_FILE_NAME_CHARS
        )
        clean_base = clean_file_name(base_name)
        stripped_base = "".join(
            char for char in base_name
            if char not in INVALID_FILE_NAME_CHARS and char not in PROBLEMATIC_FILE_NAME_CHARS
        ).strip() or DEFAULT_FILE_NAME

        now = now or datetime.now(timezone.utc)
        token = uuid.uuid4().hex[:8]

        candidates = [
            f"{clean_base}{extension}",
            f"{stripped_base}{extension}",
        ]
        if self.allow_list.is_reserved_name(base_name):
            candidates.extend([
                f"{clean_base}_File{extension}",
                f"Legal_{clean_base}{extension}",
                f"Doc_{clean_base}{extension}",
                f"{clean_base}_Document{extension}",
            ])
        candidates.extend([
            f"{clean_base}_{now:%Y%m%d}{extension}",
            f"{clean_base}_{now:%Y%m%d_%H%M}{extension}",
            f"{DEFAULT_FILE_NAME}_{now:%Y%m%d}{extension}",
        ])
        candidates.extend([
            f"{clean_base}_{token}{extension}",
            f"File_{token}{extension}",
            f"{DEFAULT_FILE_NAME}_{token}{extension}",
        ])

        return self._select_suggestions(candidates, attempted, limit)

    def _select_suggestions(self, candidates: Iterable[str], attempted: str, limit: int) -> List[str]:
        suggestions: List[str] = []
        for candidate in candidates:
            if candidate == attempted or candidate in suggestions:
                continue
            if self.is_reserved_file_name(candidate):
                continue
            suggestions.append(candidate)
            if len(suggestions) == limit:
                break
        return suggestions


_file_integrity_validator: Optional[FileIntegrityValidator] = None


def get_file_integrity_validator() -> FileIntegrityValidator:
    """Get global file integrity validator instance."""
    global _file_integrity_validator
    if _file_integrity_validator is None:
        _file_integrity_validator = FileIntegrityValidator(classifier=get_content_classifier())
    return _file_integrity_validator
