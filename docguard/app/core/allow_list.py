"""
Allow-lists for uploaded legal documents.

Defines the file extensions and MIME types the document store accepts and the
base file names it refuses. The default allow-list is built once and shared
read-only by every validator in the process.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import FrozenSet, Iterable, List, Optional

from docguard.app.utils.logging import get_logger

logger = get_logger(__name__)


# Office documents, mail, text/PDF, images, audio, video, archives
DEFAULT_ALLOWED_EXTENSIONS = (
    # Word
    ".doc", ".docx", ".dot", ".dotx", ".docm", ".dotm", ".rtf",
    # Excel
    ".xls", ".xlsx", ".xlt", ".xltx", ".xlsm", ".xltm", ".csv",
    # PowerPoint
    ".ppt", ".pptx", ".pps", ".ppsx", ".pot", ".potx", ".pptm", ".potm", ".ppsm",
    # Outlook and mail
    ".msg", ".eml", ".pst", ".ost",
    # Text and PDF
    ".pdf", ".txt", ".md", ".log",
    # Images
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff", ".webp",
    # Audio
    ".mp3", ".wav", ".wma", ".aac", ".ogg", ".flac", ".m4a",
    # Video
    ".mp4", ".avi", ".mov", ".wmv", ".mkv", ".flv", ".webm", ".mpeg", ".mpg",
    # Archives
    ".zip", ".7z", ".rar",
)

DEFAULT_ALLOWED_MIME_TYPES = (
    # Archives
    "application/zip",
    "application/x-7z-compressed",
    "application/vnd.rar",
    # Word
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-word.document.macroenabled.12",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.template",
    "application/vnd.ms-word.template.macroenabled.12",
    "application/rtf",
    # Excel
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.template",
    "application/vnd.ms-excel.template.macroenabled.12",
    "text/csv",
    "application/csv",
    # PowerPoint
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/vnd.ms-powerpoint.presentation.macroenabled.12",
    "application/vnd.openxmlformats-officedocument.presentationml.template",
    "application/vnd.ms-powerpoint.template.macroenabled.12",
    "application/vnd.openxmlformats-officedocument.presentationml.slideshow",
    "application/vnd.ms-powerpoint.slideshow.macroenabled.12",
    # Outlook and mail
    "application/vnd.ms-outlook",
    "application/vnd.ms-outlook.pst",
    "application/vnd.ms-outlook.ost",
    "message/rfc822",
    # Text and PDF
    "application/pdf",
    "text/plain",
    "text/markdown",
    "text/x-log",
    # Images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/tiff",
    "image/webp",
    "image/svg+xml",
    # Audio
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/x-ms-wma",
    "audio/aac",
    "audio/ogg",
    "audio/flac",
    "audio/mp4",
    "audio/m4a",
    # Video
    "video/mp4",
    "video/x-msvideo",
    "video/quicktime",
    "video/x-ms-wmv",
    "video/x-matroska",
    "video/x-flv",
    "video/webm",
    "video/mpeg",
)

# Windows device names plus NTFS/system reserved tokens
DEFAULT_RESERVED_NAMES = (
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
    "CLOCK$", "CONFIG$", "KEYBD$", "SCREEN$",
    "$MFTMIRR", "$LOGFILE", "$VOLUME",
)


def _casefold_set(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(value.strip().lower() for value in values)


@dataclass(frozen=True)
class AllowList:
    """
    Immutable sets of accepted extensions and MIME types and refused names.

    Every membership test is case-insensitive; entries are stored lowercased.
    Extensions carry their leading dot.
    """

    extensions: FrozenSet[str]
    mime_types: FrozenSet[str]
    reserved_names: FrozenSet[str]

    @classmethod
    def create(
        cls,
        extensions: Iterable[str],
        mime_types: Iterable[str],
        reserved_names: Iterable[str] = DEFAULT_RESERVED_NAMES
    ) -> "AllowList":
        """Build an allow-list from arbitrary iterables of entries."""
        normalized_extensions = frozenset(
            ext if ext.startswith(".") else f".{ext}"
            for ext in _casefold_set(extensions)
        )
        return cls(
            extensions=normalized_extensions,
            mime_types=_casefold_set(mime_types),
            reserved_names=_casefold_set(reserved_names),
        )

    @classmethod
    def default(cls) -> "AllowList":
        """Build the allow-list used for legal document uploads."""
        return cls.create(
            DEFAULT_ALLOWED_EXTENSIONS,
            DEFAULT_ALLOWED_MIME_TYPES,
            DEFAULT_RESERVED_NAMES,
        )

    def is_extension_allowed(self, extension: Optional[str]) -> bool:
        if not extension:
            return False
        normalized = extension.strip().lower()
        if not normalized.startswith("."):
            normalized = f".{normalized}"
        return normalized in self.extensions

    def is_mime_type_allowed(self, mime_type: Optional[str]) -> bool:
        if not mime_type:
            return False
        return mime_type.strip().lower() in self.mime_types

    def is_reserved_name(self, base_name: Optional[str]) -> bool:
        if not base_name:
            return False
        return base_name.strip().lower() in self.reserved_names

    def allowed_extensions_list(self) -> List[str]:
        """Sorted extensions, for user-facing messages."""
        return sorted(self.extensions)


@lru_cache()
def get_default_allow_list() -> AllowList:
    """Get the shared default allow-list."""
    allow_list = AllowList.default()
    logger.debug(
        "Default allow-list built",
        extension_count=len(allow_list.extensions),
        mime_type_count=len(allow_list.mime_types),
        reserved_name_count=len(allow_list.reserved_names)
    )
    return allow_list
