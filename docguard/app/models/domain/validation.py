"""
Outcome model returned by the file integrity validator.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from docguard.app.core.exceptions import ErrorCode, raise_validation_error


class NormalizedFileMetadata(BaseModel):
    """Echo of the claimed file metadata after normalization."""

    file_name: str = ""
    extension: str = ""
    size: int = 0
    mime_type: str = ""
    checksum: str = ""


class ValidationOutcome(BaseModel):
    """
    Aggregated result of validating one uploaded file.

    Validity is derived from the error list; warnings never affect it.
    """

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    metadata: NormalizedFileMetadata = Field(default_factory=NormalizedFileMetadata)
    detected_mime_type: Optional[str] = None
    detected_extension: Optional[str] = None

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def raise_if_invalid(self) -> None:
        """Raise ValidationError carrying the error list when invalid."""
        if self.errors:
            raise_validation_error(
                f"File validation failed with {len(self.errors)} error(s)",
                errors=self.errors,
                error_code=ErrorCode.FILE_VALIDATION_FAILED
            )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
