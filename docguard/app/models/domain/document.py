"""
Self-validating domain models for documents and revisions.

These models describe what a caller wants to store (a new document, a new
revision, a document together with its revision history) and know how to
check themselves. Validation follows one template for every model:

1. Core properties (each field on its own)
2. Business rules
3. Cross-property rules
4. Collections (through validate_collection, under a child context that
   copies this model's items and adds document-level data for the nested
   revisions)
5. Custom rules

Shared data for cross-field rules travels in ValidationContext.items:
- "existing_revision_numbers": numbers already stored for the document
- "document_creation_date": creation date of the owning document
- "file_validator" / "revision_sequencer": validator instances to use
  instead of the shared ones
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from docguard.app.core.exceptions import ErrorCode, raise_validation_error
from docguard.app.services.file_validation_service import (
    FileIntegrityValidator,
    get_file_integrity_validator,
)
from docguard.app.services.revision_service import RevisionSequencer, get_revision_sequencer
from docguard.app.utils.file_utils import format_file_size, normalize_extension, normalize_mime_type
from docguard.app.utils.logging import get_logger
from docguard.app.utils.validators import (
    SelfValidatable,
    ValidationContext,
    ValidationResult,
    create_validation_result,
    validate_collection,
    validate_model,
)

logger = get_logger(__name__)


MAX_DESCRIPTION_LENGTH = 256

EXISTING_REVISION_NUMBERS_KEY = "existing_revision_numbers"
DOCUMENT_CREATION_DATE_KEY = "document_creation_date"
FILE_VALIDATOR_KEY = "file_validator"
REVISION_SEQUENCER_KEY = "revision_sequencer"

# Extensions whose MIME type is unambiguous
EXPECTED_MIME_TYPES: Dict[str, List[str]] = {
    ".pdf": ["application/pdf"],
    ".doc": ["application/msword"],
    ".docx": ["application/vnd.openxmlformats-officedocument.wordprocessingml.document"],
    ".xls": ["application/vnd.ms-excel"],
    ".xlsx": ["application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"],
    ".ppt": ["application/vnd.ms-powerpoint"],
    ".pptx": ["application/vnd.openxmlformats-officedocument.presentationml.presentation"],
    ".rtf": ["application/rtf"],
    ".txt": ["text/plain"],
    ".csv": ["text/csv", "application/csv"],
    ".msg": ["application/vnd.ms-outlook"],
    ".eml": ["message/rfc822"],
    ".jpg": ["image/jpeg"],
    ".jpeg": ["image/jpeg"],
    ".png": ["image/png"],
    ".zip": ["application/zip"],
}


class BaseValidatedModel(SelfValidatable):
    """
    Template for self-validating models.

    Subclasses override the step methods they need; validate() runs them in
    order and concatenates the results.
    """

    validation_error_code = ErrorCode.MODEL_VALIDATION_FAILED

    def validate(self, context: ValidationContext) -> List[ValidationResult]:
        steps: List[Callable[[ValidationContext], List[ValidationResult]]] = [
            self.validate_core_properties,
            self.validate_business_rules,
            self.validate_cross_property_rules,
            self.validate_collections,
            self.validate_custom_rules,
        ]
        results: List[ValidationResult] = []
        for step in steps:
            results.extend(step(context))

        if results:
            logger.debug(
                "Model validation found violations",
                model=type(self).__name__,
                violation_count=len(results)
            )
        return results

    def validate_core_properties(self, context: ValidationContext) -> List[ValidationResult]:
        return []

    def validate_business_rules(self, context: ValidationContext) -> List[ValidationResult]:
        return []

    def validate_cross_property_rules(self, context: ValidationContext) -> List[ValidationResult]:
        return []

    def validate_collections(self, context: ValidationContext) -> List[ValidationResult]:
        return []

    def validate_custom_rules(self, context: ValidationContext) -> List[ValidationResult]:
        return []

    def get_validation_results(self, items: Optional[Dict[str, Any]] = None) -> List[ValidationResult]:
        """Validate with a fresh context holding the given items."""
        return validate_model(self, items)

    def is_valid(self, items: Optional[Dict[str, Any]] = None) -> bool:
        return not self.get_validation_results(items)

    def ensure_valid(self, items: Optional[Dict[str, Any]] = None) -> None:
        """Raise ValidationError carrying every violation when the model is invalid."""
        results = self.get_validation_results(items)
        if results:
            raise_validation_error(
                f"{type(self).__name__} failed validation with {len(results)} violation(s)",
                errors=[str(result) for result in results],
                field_errors=[result.model_dump() for result in results],
                error_code=self.validation_error_code
            )

    @staticmethod
    def file_validator(context: ValidationContext) -> FileIntegrityValidator:
        return context.get_item(FILE_VALIDATOR_KEY) or get_file_integrity_validator()

    @staticmethod
    def revision_sequencer(context: ValidationContext) -> RevisionSequencer:
        return context.get_item(REVISION_SEQUENCER_KEY) or get_revision_sequencer()


@dataclass
class DocumentForCreation(BaseValidatedModel):
    """Metadata of a document about to be created."""

    file_name: Optional[str]
    extension: Optional[str]
    file_size: int
    mime_type: Optional[str]
    checksum: Optional[str]
    description: Optional[str] = None
    is_checked_out: bool = False

    @property
    def formatted_file_size(self) -> str:
        return format_file_size(self.file_size)

    @property
    def display_text(self) -> str:
        if self.description and self.description.strip():
            return f"{self.file_name} - {self.description.strip()}"
        return self.file_name or ""

    def validate_core_properties(self, context: ValidationContext) -> List[ValidationResult]:
        validator = self.file_validator(context)
        results = []
        results.extend(validator.validate_file_name_field(self.file_name, "file_name"))
        results.extend(validator.validate_extension_field(self.extension, "extension"))
        results.extend(validator.validate_file_size_field(self.file_size, "file_size"))
        results.extend(validator.validate_mime_type_field(self.mime_type, "mime_type"))
        results.extend(validator.validate_checksum_field(self.checksum, "checksum"))

        if self.description is not None and len(self.description) > MAX_DESCRIPTION_LENGTH:
            results.append(create_validation_result(
                f"description cannot exceed {MAX_DESCRIPTION_LENGTH} characters.", "description"
            ))
        return results

    def validate_business_rules(self, context: ValidationContext) -> List[ValidationResult]:
        results = self._file_name_content_rules()
        if self.is_checked_out:
            results.append(create_validation_result(
                "A new document should not be checked out during creation; "
                "create it first, then check it out.",
                "is_checked_out"
            ))
        return results

    def validate_cross_property_rules(self, context: ValidationContext) -> List[ValidationResult]:
        extension = normalize_extension(self.extension)
        mime_type = normalize_mime_type(self.mime_type)
        expected = EXPECTED_MIME_TYPES.get(extension)
        if not expected or not mime_type or mime_type in expected:
            return []
        return [create_validation_result(
            f"MIME type '{self.mime_type}' is inconsistent with file extension '{self.extension}'. "
            f"Expected: {' or '.join(expected)}.",
            "mime_type",
            "extension"
        )]

    def _file_name_content_rules(self) -> List[ValidationResult]:
        if self.file_name and self.file_name.strip() and not any(c.isalnum() for c in self.file_name):
            return [create_validation_result(
                "file_name must contain at least one letter or digit.", "file_name"
            )]
        return []


@dataclass
class RevisionForCreation(BaseValidatedModel):
    """
    A revision about to be added to a document.

    Reads "existing_revision_numbers" and "document_creation_date" from the
    context items when present.
    """

    validation_error_code = ErrorCode.REVISION_VALIDATION_FAILED

    revision_number: int
    creation_date: Optional[datetime]
    modification_date: Optional[datetime]
    is_deleted: bool = False

    def validate_core_properties(self, context: ValidationContext) -> List[ValidationResult]:
        sequencer = self.revision_sequencer(context)
        results = []
        results.extend(sequencer.validate_revision_number(self.revision_number, "revision_number"))
        results.extend(sequencer.validate_date(self.creation_date, "creation_date"))
        results.extend(sequencer.validate_date(self.modification_date, "modification_date"))
        return results

    def validate_business_rules(self, context: ValidationContext) -> List[ValidationResult]:
        sequencer = self.revision_sequencer(context)
        existing = context.get_item(EXISTING_REVISION_NUMBERS_KEY)
        if existing is None or not sequencer.is_valid_revision_number(self.revision_number):
            return []
        return sequencer.validate_revision_sequence(self.revision_number, existing, "revision_number")

    def validate_cross_property_rules(self, context: ValidationContext) -> List[ValidationResult]:
        if self.creation_date is None or self.modification_date is None:
            return []

        sequencer = self.revision_sequencer(context)
        results = sequencer.validate_temporal_pair(
            self.creation_date,
            self.modification_date,
            "creation_date",
            "modification_date"
        )

        document_creation_date = context.get_item(DOCUMENT_CREATION_DATE_KEY)
        if document_creation_date is not None:
            if sequencer.normalize_to_utc(self.creation_date) < sequencer.normalize_to_utc(document_creation_date):
                results.append(create_validation_result(
                    "creation_date cannot be earlier than the document creation date.",
                    "creation_date"
                ))
        return results


@dataclass
class DocumentWithRevisions(DocumentForCreation):
    """A stored document together with its full revision history."""

    creation_date: Optional[datetime] = None
    revisions: Optional[List[Optional[RevisionForCreation]]] = field(default_factory=list)
    is_deleted: bool = False

    @property
    def revision_count(self) -> int:
        return len(self.revisions or [])

    @property
    def current_revision(self) -> Optional[RevisionForCreation]:
        candidates = [r for r in self.revisions or [] if r is not None and not r.is_deleted]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.revision_number)

    def validate_core_properties(self, context: ValidationContext) -> List[ValidationResult]:
        results = super().validate_core_properties(context)
        results.extend(self.revision_sequencer(context).validate_date(self.creation_date, "creation_date"))
        return results

    def validate_business_rules(self, context: ValidationContext) -> List[ValidationResult]:
        results = self._file_name_content_rules()

        if self.is_checked_out and self.is_deleted:
            results.append(create_validation_result(
                "A document cannot be both checked out and deleted.",
                "is_checked_out",
                "is_deleted"
            ))

        numbers = sorted(
            r.revision_number for r in self.revisions or []
            if r is not None and isinstance(r.revision_number, int)
        )
        first = self.revision_sequencer(context).settings.min_revision_number
        if numbers and numbers != list(range(first, first + len(numbers))):
            results.append(create_validation_result(
                f"Revision numbering must be sequential starting from {first} without gaps or duplicates.",
                "revisions"
            ))
        return results

    def validate_collections(self, context: ValidationContext) -> List[ValidationResult]:
        # The inherited items are shared with sibling documents; never write into them
        items = dict(context.items)
        if self.creation_date is not None:
            items[DOCUMENT_CREATION_DATE_KEY] = self.creation_date
        revisions_context = ValidationContext(instance=self, items=items, parent=context)
        return validate_collection(
            self.revisions,
            "revisions",
            parent_context=revisions_context,
            allow_empty=False
        )
