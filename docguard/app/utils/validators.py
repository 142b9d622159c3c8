"""
Field-scoped validation results and collection aggregation.

Every validator in the engine reports violations in one shape: an ordered
list of ValidationResult items, each pairing a message with the path of the
offending field. Models that can check themselves implement SelfValidatable,
and validate_collection folds their results into bracketed paths such as
"revisions[2].file_name" for precise error binding.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from docguard.app.core.exceptions import (
    ErrorCode,
    raise_invalid_argument,
    require_property_name,
)
from docguard.app.utils.logging import ValidationAuditLogger, get_logger, get_validation_audit_logger

logger = get_logger(__name__)


class ValidationResult(BaseModel):
    """A single violation and the path of the field it concerns."""

    model_config = ConfigDict(frozen=True)

    message: str
    field_path: List[str] = Field(default_factory=list)

    def __str__(self) -> str:
        if self.field_path:
            return f"{', '.join(self.field_path)}: {self.message}"
        return self.message


def create_validation_result(message: str, *field_path: str) -> ValidationResult:
    """Shorthand for ValidationResult(message=..., field_path=[...])."""
    return ValidationResult(message=message, field_path=list(field_path))


@dataclass
class ValidationContext:
    """
    State handed to SelfValidatable.validate.

    items carries shared data for cross-field rules (for example the
    revision numbers already stored for a document). Nested contexts built by
    validate_collection share their parent's items mapping.
    """

    instance: Any
    items: Dict[str, Any] = field(default_factory=dict)
    parent: Optional["ValidationContext"] = None

    def get_item(self, key: str, default: Any = None) -> Any:
        return self.items.get(key, default)


class SelfValidatable(ABC):
    """Implemented by models that can report their own violations."""

    @abstractmethod
    def validate(self, context: ValidationContext) -> List[ValidationResult]:
        """Return every violation found; never raise for bad data."""


def _prefix_result(result: ValidationResult, prefix: str) -> ValidationResult:
    if result.field_path:
        field_path = [f"{prefix}.{member}" if member else prefix for member in result.field_path]
    else:
        field_path = [prefix]
    return ValidationResult(message=f"{prefix}: {result.message}", field_path=field_path)


def validate_collection(
    items: Optional[Sequence[Any]],
    property_name: str,
    parent_context: Optional[ValidationContext] = None,
    allow_empty: bool = True,
    audit_logger: Optional[ValidationAuditLogger] = None
) -> List[ValidationResult]:
    """
    Validate every item of a collection of self-validating models.

    Args:
        items: The collection; None is reported as a violation
        property_name: Name of the collection property, used in paths
        parent_context: Context whose items mapping nested validation shares
        allow_empty: Whether an empty collection is acceptable
        audit_logger: Audit sink; defaults to the shared one when enabled

    Returns:
        Ordered list of ValidationResult, empty when everything is valid
    """
    property_name = require_property_name(property_name)
    results: List[ValidationResult] = []

    if items is None:
        results.append(create_validation_result(
            f"{property_name} collection is required.", property_name
        ))
    elif not allow_empty and len(items) == 0:
        results.append(create_validation_result(
            f"{property_name} collection must contain at least one item.", property_name
        ))
    else:
        shared_items = parent_context.items if parent_context is not None else {}

        for index, item in enumerate(items):
            prefix = f"{property_name}[{index}]"

            if item is None:
                results.append(create_validation_result(f"{prefix} is null.", prefix))
                continue

            if not isinstance(item, SelfValidatable):
                raise_invalid_argument(
                    f"{prefix} of type {type(item).__name__} does not support self-validation",
                    argument_name=property_name,
                    error_code=ErrorCode.ARGUMENT_INVALID
                )

            context = ValidationContext(instance=item, items=shared_items, parent=parent_context)
            for inner in item.validate(context):
                results.append(_prefix_result(inner, prefix))

    logger.debug(
        "Collection validated",
        property_name=property_name,
        item_count=None if items is None else len(items),
        result_count=len(results)
    )

    sink = audit_logger or get_validation_audit_logger()
    if sink is not None:
        try:
            sink.collection_validated(
                property_name=property_name,
                item_count=None if items is None else len(items),
                result_count=len(results)
            )
        except Exception as e:
            logger.error("Audit sink failed", property_name=property_name, error=str(e))

    return results


def validate_model(
    instance: Optional[SelfValidatable],
    items: Optional[Dict[str, Any]] = None
) -> List[ValidationResult]:
    """
    Validate a single self-validating model.

    A missing model is reported as a violation rather than raised.
    """
    if instance is None:
        return [create_validation_result("A value is required.")]

    if not isinstance(instance, SelfValidatable):
        raise_invalid_argument(
            f"{type(instance).__name__} does not support self-validation",
            argument_name="instance",
            error_code=ErrorCode.ARGUMENT_INVALID
        )

    return instance.validate(ValidationContext(instance=instance, items=dict(items or {})))


__all__ = [
    "ValidationResult",
    "ValidationContext",
    "SelfValidatable",
    "create_validation_result",
    "validate_collection",
    "validate_model",
]
