"""
Revision Sequencing Service

Enforces the numbering and dating rules for document revisions:

- Revision numbers of a document are always exactly {1, 2, ..., k}. The only
  number that may be added next is max(existing) + 1, or 1 for a document
  without revisions. Gaps and duplicates are both rejected.
- Creation and modification dates are normalized to UTC and must lie between
  the minimum allowed date and a small tolerance past the current time.
- A modification date may not precede its creation date, and the two may not
  be further apart than the maximum span.

Violations are reported as booleans or ValidationResult lists. Caller misuse
(a None collection, blank property names, non-integer numbers, non-datetime
values) raises InvalidArgumentError.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from docguard.app.core.exceptions import ErrorCode, raise_invalid_argument, require_property_name
from docguard.app.utils.logging import ValidationAuditLogger, get_logger, get_validation_audit_logger
from docguard.app.utils.validators import ValidationResult, create_validation_result
from docguard.config.settings import RevisionValidationSettings, get_settings

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RevisionSequencer:
    """
    Validates revision numbers and the temporal stamps of revisions.

    The clock is injectable so date rules can be tested deterministically.
    """

    def __init__(
        self,
        settings: Optional[RevisionValidationSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        audit_logger: Optional[ValidationAuditLogger] = None
    ):
        self.settings = settings or get_settings().revision_validation
        self.clock = clock or utc_now
        self.audit_logger = audit_logger

    # Argument checks

    @staticmethod
    def _require_number(value: Any, argument_name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise_invalid_argument(
                f"{argument_name} must be an integer",
                argument_name=argument_name,
                argument_value=value,
                error_code=ErrorCode.ARGUMENT_INVALID
            )
        return value

    def _require_existing(self, existing: Optional[Iterable[int]]) -> Set[int]:
        if existing is None:
            raise_invalid_argument(
                "existing revision numbers are required",
                argument_name="existing",
                error_code=ErrorCode.ARGUMENT_REQUIRED
            )
        return {self._require_number(number, "existing") for number in existing}

    @staticmethod
    def _require_datetime(value: Any, argument_name: str) -> datetime:
        if not isinstance(value, datetime):
            raise_invalid_argument(
                f"{argument_name} must be a datetime",
                argument_name=argument_name,
                argument_value=value,
                error_code=ErrorCode.ARGUMENT_REQUIRED if value is None else ErrorCode.ARGUMENT_INVALID
            )
        return value

    # Dates

    def now(self) -> datetime:
        return self.normalize_to_utc(self.clock())

    @property
    def max_allowed_date(self) -> datetime:
        return self.now() + self.settings.future_date_tolerance

    def normalize_to_utc(self, value: datetime) -> datetime:
        """Naive datetimes are taken as UTC; aware ones are converted."""
        value = self._require_datetime(value, "value")
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def is_valid_date(self, value: datetime) -> bool:
        normalized = self.normalize_to_utc(value)
        return self.settings.min_allowed_date <= normalized <= self.max_allowed_date

    def is_valid_temporal_pair(
        self,
        creation: datetime,
        modification: datetime,
        max_span: Optional[timedelta] = None
    ) -> bool:
        """
        Both dates valid, modification not before creation, and the two no
        further apart than max_span (the configured span by default).
        """
        span_limit = self._resolve_span(max_span)
        creation_utc = self.normalize_to_utc(creation)
        modification_utc = self.normalize_to_utc(modification)

        is_valid = (
            self.is_valid_date(creation_utc)
            and self.is_valid_date(modification_utc)
            and modification_utc >= creation_utc
            and modification_utc - creation_utc <= span_limit
        )
        self._audit(
            "temporal_pair",
            is_valid,
            creation=creation_utc.isoformat(),
            modification=modification_utc.isoformat()
        )
        return is_valid

    def _resolve_span(self, max_span: Optional[timedelta]) -> timedelta:
        if max_span is None:
            return self.settings.max_date_span
        if not isinstance(max_span, timedelta) or max_span < timedelta(0):
            raise_invalid_argument(
                "max_span must be a non-negative timedelta",
                argument_name="max_span",
                argument_value=max_span,
                error_code=ErrorCode.ARGUMENT_OUT_OF_RANGE
            )
        return max_span

    # Revision numbers

    def is_valid_revision_number(self, number: int) -> bool:
        number = self._require_number(number, "number")
        return self.settings.min_revision_number <= number <= self.settings.max_revision_number

    def next_number(self, existing: Iterable[int]) -> int:
        """max(existing) + 1, or the first revision number when empty."""
        numbers = self._require_existing(existing)
        if not numbers:
            return self.settings.min_revision_number
        return max(numbers) + 1

    def is_valid_next_number(self, candidate: int, existing: Iterable[int]) -> bool:
        """True only for the number that continues the sequence without a gap."""
        candidate = self._require_number(candidate, "candidate")
        numbers = self._require_existing(existing)

        is_valid = (
            self.is_valid_revision_number(candidate)
            and candidate not in numbers
            and candidate == self.next_number(numbers)
        )
        self._audit("next_number", is_valid, candidate=candidate, existing_count=len(numbers))
        return is_valid

    def suggest_revision_numbers(
        self,
        attempted: int,
        existing: Iterable[int],
        max_suggestions: Optional[int] = None
    ) -> List[int]:
        """
        Advisory replacements for a rejected revision number.

        The next legal number comes first, then the nearest bound when the
        attempt was out of range, then consecutive numbers.
        """
        attempted = self._require_number(attempted, "attempted")
        numbers = self._require_existing(existing)
        if max_suggestions is None:
            max_suggestions = self.settings.max_revision_suggestions
        if isinstance(max_suggestions, bool) or not isinstance(max_suggestions, int) or max_suggestions < 1:
            raise_invalid_argument(
                "max_suggestions must be at least 1",
                argument_name="max_suggestions",
                argument_value=max_suggestions,
                error_code=ErrorCode.ARGUMENT_OUT_OF_RANGE
            )

        low = self.settings.min_revision_number
        high = self.settings.max_revision_number
        suggestions: List[int] = []

        def add(number: int) -> None:
            if number not in suggestions:
                suggestions.append(number)

        next_valid = self.next_number(numbers)
        if next_valid <= high:
            add(next_valid)

        if attempted < low:
            add(low)
        elif attempted > high:
            add(high)

        current = suggestions[-1] if suggestions else high
        while len(suggestions) < max_suggestions and current < high:
            current += 1
            add(current)

        return suggestions[:max_suggestions]

    # Field-scoped validation

    def validate_revision_number(self, number: int, property_name: str) -> List[ValidationResult]:
        property_name = require_property_name(property_name)
        number = self._require_number(number, property_name)

        if number < self.settings.min_revision_number:
            return [create_validation_result(
                f"{property_name} must be at least {self.settings.min_revision_number} "
                "(revision numbering starts from 1).",
                property_name
            )]
        if number > self.settings.max_revision_number:
            return [create_validation_result(
                f"{property_name} cannot exceed {self.settings.max_revision_number} "
                "(maximum allowed revision number).",
                property_name
            )]
        return []

    def validate_revision_sequence(
        self,
        candidate: int,
        existing: Iterable[int],
        property_name: str
    ) -> List[ValidationResult]:
        """Sequence violations for a candidate, each embedding suggestions."""
        property_name = require_property_name(property_name)
        candidate = self._require_number(candidate, property_name)
        numbers = self._require_existing(existing)

        results: List[ValidationResult] = []
        range_results = self.validate_revision_number(candidate, property_name)

        if range_results or candidate in numbers or candidate != self.next_number(numbers):
            suggestions = self.suggest_revision_numbers(candidate, numbers)
            hint = (
                f" Suggested revision numbers: {', '.join(str(n) for n in suggestions)}."
                if suggestions else " The document has reached the maximum number of revisions."
            )

            if range_results:
                results.extend(
                    ValidationResult(message=result.message + hint, field_path=result.field_path)
                    for result in range_results
                )
            elif candidate in numbers:
                results.append(create_validation_result(
                    f"{property_name} {candidate} already exists for this document.{hint}",
                    property_name
                ))
            else:
                results.append(create_validation_result(
                    f"{property_name} {candidate} is out of sequence; revision numbers must be "
                    f"consecutive starting from {self.settings.min_revision_number}.{hint}",
                    property_name
                ))

        self._audit(
            "revision_sequence",
            not results,
            candidate=candidate,
            existing_count=len(numbers)
        )
        return results

    def validate_date(self, value: Optional[datetime], property_name: str) -> List[ValidationResult]:
        property_name = require_property_name(property_name)
        if value is None:
            return [create_validation_result(f"{property_name} is required.", property_name)]

        normalized = self.normalize_to_utc(value)
        if normalized < self.settings.min_allowed_date:
            return [create_validation_result(
                f"{property_name} cannot be earlier than {self.settings.min_allowed_date:%Y-%m-%d}.",
                property_name
            )]
        if normalized > self.max_allowed_date:
            return [create_validation_result(f"{property_name} cannot be in the future.", property_name)]
        return []

    def validate_temporal_pair(
        self,
        creation: datetime,
        modification: datetime,
        creation_property: str,
        modification_property: str
    ) -> List[ValidationResult]:
        """Ordering and span violations between a creation and modification date."""
        creation_property = require_property_name(creation_property, "creation_property")
        modification_property = require_property_name(modification_property, "modification_property")
        creation_utc = self.normalize_to_utc(creation)
        modification_utc = self.normalize_to_utc(modification)

        results: List[ValidationResult] = []
        if modification_utc < creation_utc:
            results.append(create_validation_result(
                "Modification date cannot be earlier than creation date.",
                creation_property,
                modification_property
            ))
        elif modification_utc - creation_utc > self.settings.max_date_span:
            results.append(create_validation_result(
                "Time span between creation and modification dates is too large "
                f"(maximum allowed: {self.settings.max_date_span_days} days).",
                creation_property,
                modification_property
            ))

        self._audit(
            "temporal_pair",
            not results,
            creation=creation_utc.isoformat(),
            modification=modification_utc.isoformat()
        )
        return results

    # Diagnostics

    def temporal_diagnostics(self, creation: datetime, modification: datetime) -> Dict[str, Any]:
        """Breakdown of every temporal rule for a pair of dates."""
        creation_utc = self.normalize_to_utc(creation)
        modification_utc = self.normalize_to_utc(modification)
        span = modification_utc - creation_utc

        return {
            "is_valid_creation_date": self.is_valid_date(creation_utc),
            "is_valid_modification_date": self.is_valid_date(modification_utc),
            "is_valid_sequence": modification_utc >= creation_utc,
            "is_valid_time_span": timedelta(0) <= span <= self.settings.max_date_span,
            "exceeds_max_time_span": span > self.settings.max_date_span,
            "time_span": span,
            "time_span_days": span.total_seconds() / 86400,
            "time_span_hours": span.total_seconds() / 3600,
            "creation_date_was_naive": creation.tzinfo is None,
            "modification_date_was_naive": modification.tzinfo is None,
            "creation_date_utc": creation_utc,
            "modification_date_utc": modification_utc,
        }

    def validation_rules(self) -> Dict[str, Any]:
        """Current limits and rule descriptions, for diagnostics endpoints."""
        return {
            "min_revision_number": self.settings.min_revision_number,
            "max_revision_number": self.settings.max_revision_number,
            "min_allowed_date": self.settings.min_allowed_date,
            "max_allowed_date": self.max_allowed_date,
            "future_date_tolerance_minutes": self.settings.future_date_tolerance_minutes,
            "max_date_span_days": self.settings.max_date_span_days,
            "max_revision_suggestions": self.settings.max_revision_suggestions,
            "rules": {
                "revision_number_range": (
                    f"Must be between {self.settings.min_revision_number} "
                    f"and {self.settings.max_revision_number}"
                ),
                "date_range": (
                    f"Must be between {self.settings.min_allowed_date:%Y-%m-%d} and current time "
                    f"plus {self.settings.future_date_tolerance_minutes} minutes"
                ),
                "date_sequence": "Modification date must be >= creation date",
                "revision_sequence": "Must be sequential without gaps or duplicates",
                "time_span_limit": f"Maximum time span between dates: {self.settings.max_date_span_days} days",
            },
        }

    def generate_validation_report(
        self,
        revision_number: int,
        creation: datetime,
        modification: datetime,
        existing: Optional[Iterable[int]] = None
    ) -> str:
        """Human-readable report of every revision rule for the given values."""
        def yes_no(flag: bool) -> str:
            return "Yes" if flag else "No"

        lines = ["Revision Validation Report", "=" * 30]

        lines.append(f"Revision Number: {revision_number}")
        lines.append(f"  Valid Number: {yes_no(self.is_valid_revision_number(revision_number))}")
        numbers: Optional[List[int]] = None
        if existing is not None:
            numbers = sorted(self._require_existing(existing))
            lines.append(f"  Valid Sequence: {yes_no(self.is_valid_next_number(revision_number, numbers))}")
            lines.append(f"  Existing Numbers: [{', '.join(str(n) for n in numbers)}]")
            lines.append(f"  Suggested Next: {self.next_number(numbers)}")

        diagnostics = self.temporal_diagnostics(creation, modification)
        for label, value, valid_key in (
            ("Creation Date", diagnostics["creation_date_utc"], "is_valid_creation_date"),
            ("Modification Date", diagnostics["modification_date_utc"], "is_valid_modification_date"),
        ):
            lines.append("")
            lines.append(f"{label}: {value:%Y-%m-%d %H:%M:%S} UTC")
            lines.append(f"  Valid Date: {yes_no(diagnostics[valid_key])}")

        lines.append("")
        lines.append("Temporal Analysis:")
        lines.append(f"  Valid Sequence: {yes_no(diagnostics['is_valid_sequence'])}")
        lines.append(f"  Valid Time Span: {yes_no(diagnostics['is_valid_time_span'])}")
        lines.append(
            f"  Time Difference: {diagnostics['time_span_days']:.1f} days, "
            f"{diagnostics['time_span_hours']:.1f} hours"
        )

        if numbers is not None and not self.is_valid_next_number(revision_number, numbers):
            lines.append("")
            lines.append("Revision Number Suggestions:")
            for suggestion in self.suggest_revision_numbers(revision_number, numbers, 3):
                lines.append(f"  - {suggestion}")

        return "\n".join(lines)

    def _audit(self, operation: str, is_valid: bool, **context: Any) -> None:
        sink = self.audit_logger or get_validation_audit_logger()
        if sink is None:
            return
        try:
            sink.revision_validated(operation=operation, is_valid=is_valid, **context)
        except Exception as e:
            logger.error("Audit sink failed", operation=operation, error=str(e))


_revision_sequencer: Optional[RevisionSequencer] = None


def get_revision_sequencer() -> RevisionSequencer:
    """Get global revision sequencer instance."""
    global _revision_sequencer
    if _revision_sequencer is None:
        _revision_sequencer = RevisionSequencer()
    return _revision_sequencer
