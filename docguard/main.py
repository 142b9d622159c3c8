"""
DocGuard engine entry point.

The engine has no server of its own; the document store calls
initialize_engine() once at startup. Startup order:

1. Load settings (environment variables and .env, cached for the process)
2. Configure structured logging from the logging section
3. Check the configuration and refuse to start on inconsistent limits
4. Build the shared read-only components (allow-list, content classifier,
   file integrity validator, revision sequencer)

Called without settings, the returned ValidationEngine holds the same
instances the module-level getters hand out. Called with settings, it holds
components built from those settings.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from docguard.app.core.allow_list import AllowList, get_default_allow_list
from docguard.app.core.exceptions import ConfigurationError, ErrorCode
from docguard.app.processors.content_classifier import ContentClassifier, get_content_classifier
from docguard.app.services.file_validation_service import FileIntegrityValidator, get_file_integrity_validator
from docguard.app.services.revision_service import RevisionSequencer, get_revision_sequencer
from docguard.app.utils.logging import get_logger, initialize_logging_from_settings
from docguard.config.settings import Settings, get_settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidationEngine:
    """The shared components, built once and safe to use from any thread."""

    settings: Settings
    allow_list: AllowList
    classifier: ContentClassifier
    file_validator: FileIntegrityValidator
    revision_sequencer: RevisionSequencer


def check_configuration(settings: Settings) -> None:
    """
    Raise ConfigurationError when the loaded limits are inconsistent.

    Args:
        settings: Settings to check

    Raises:
        ConfigurationError: With every problem found, grouped by section,
            under details["problems"]
    """
    problems: Dict[str, List[str]] = settings.validate_configuration()
    if not problems:
        return

    messages = [message for section_problems in problems.values() for message in section_problems]
    error = ConfigurationError(
        f"Invalid configuration: {'; '.join(messages)}",
        error_code=ErrorCode.CONFIG_INVALID_VALUE,
        config_section=next(iter(problems))
    )
    error.add_context("problems", problems)
    logger.error("Configuration validation failed", problems=problems)
    raise error


def _build_engine(settings: Settings) -> ValidationEngine:
    """Build components that enforce exactly the limits in the given settings."""
    allow_list = get_default_allow_list()
    classifier = ContentClassifier(settings=settings.file_validation)
    return ValidationEngine(
        settings=settings,
        allow_list=allow_list,
        classifier=classifier,
        file_validator=FileIntegrityValidator(
            allow_list=allow_list,
            classifier=classifier,
            settings=settings.file_validation
        ),
        revision_sequencer=RevisionSequencer(settings=settings.revision_validation),
    )


def initialize_engine(
    settings: Optional[Settings] = None,
    configure_logging: bool = True
) -> ValidationEngine:
    """
    Initialize the validation engine.

    Without explicit settings the engine wraps the shared components handed
    out by the module-level getters. With explicit settings it builds its own
    components from them, so every validator enforces those limits.

    Args:
        settings: Settings to run with; defaults to the loaded settings
        configure_logging: Whether to configure logging from the settings

    Returns:
        ValidationEngine with components matching its settings

    Raises:
        ConfigurationError: If the configuration is inconsistent
    """
    use_shared_components = settings is None
    settings = settings or get_settings()

    if configure_logging:
        initialize_logging_from_settings(settings.logging)

    logger.info("=== DocGuard Validation Engine Starting Up ===", environment=settings.environment)
    check_configuration(settings)

    if use_shared_components:
        engine = ValidationEngine(
            settings=settings,
            allow_list=get_default_allow_list(),
            classifier=get_content_classifier(),
            file_validator=get_file_integrity_validator(),
            revision_sequencer=get_revision_sequencer(),
        )
    else:
        engine = _build_engine(settings)

    logger.info(
        "Validation engine initialized",
        shared_components=use_shared_components,
        allowed_extension_count=len(engine.allow_list.extensions),
        allowed_mime_type_count=len(engine.allow_list.mime_types),
        signature_count=len(engine.classifier.signatures),
        audit_logging=settings.logging.enable_audit_logging
    )
    return engine
