"""
Content classifier for uploaded legal documents.

Identifies the real type of a byte buffer from its leading magic bytes rather
than from the name or MIME type the uploader claims. Signature matches for
container formats are provisional and re-examined:

- ZIP archives are opened and their [Content_Types].xml manifest is read to
  tell Office Open XML documents (.docx/.xlsx/.pptx and their macro and
  template variants) from plain archives. When the archive cannot be parsed
  (typically a truncated upload) the local file header names are scanned for
  word/, xl/ or ppt/ folders instead and the detection is flagged as low
  confidence.
- OLE compound files are told apart by the UTF-16LE stream names in their
  directory (.doc, .xls, .ppt, .msg).
- RIFF files are told apart by the form type at offset 8 (.wav, .webp, .avi).
"""

import io
import zipfile
import xml.etree.ElementTree as ET
from typing import Dict, Optional, Sequence, Tuple

from docguard.app.core.allow_list import AllowList, get_default_allow_list
from docguard.app.core.exceptions import ErrorCode, raise_invalid_argument
from docguard.app.models.domain.signature import (
    FILE_SIGNATURES,
    ContainerFormat,
    ContentDetection,
    FileSignature,
)
from docguard.app.utils.file_utils import hex_prefix
from docguard.app.utils.logging import get_logger
from docguard.config.settings import FileValidationSettings, get_settings

logger = get_logger(__name__)


CONTENT_TYPES_MANIFEST = "[Content_Types].xml"

# Manifests larger than this are not decompressed
MAX_MANIFEST_BYTES = 1024 * 1024

# Office Open XML main part content type -> (MIME type, extension)
OFFICE_OPEN_XML_TYPES: Dict[str, Tuple[str, str]] = {
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document", ".docx"),
    "application/vnd.ms-word.document.macroenabled.main+xml": (
        "application/vnd.ms-word.document.macroenabled.12", ".docm"),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.template.main+xml": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.template", ".dotx"),
    "application/vnd.ms-word.template.macroenabledtemplate.main+xml": (
        "application/vnd.ms-word.template.macroenabled.12", ".dotm"),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx"),
    "application/vnd.ms-excel.sheet.macroenabled.main+xml": (
        "application/vnd.ms-excel.sheet.macroenabled.12", ".xlsm"),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.template.main+xml": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.template", ".xltx"),
    "application/vnd.ms-excel.template.macroenabled.main+xml": (
        "application/vnd.ms-excel.template.macroenabled.12", ".xltm"),
    "application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml": (
        "application/vnd.openxmlformats-officedocument.presentationml.presentation", ".pptx"),
    "application/vnd.ms-powerpoint.presentation.macroenabled.main+xml": (
        "application/vnd.ms-powerpoint.presentation.macroenabled.12", ".pptm"),
    "application/vnd.openxmlformats-officedocument.presentationml.template.main+xml": (
        "application/vnd.openxmlformats-officedocument.presentationml.template", ".potx"),
    "application/vnd.ms-powerpoint.template.macroenabled.main+xml": (
        "application/vnd.ms-powerpoint.template.macroenabled.12", ".potm"),
    "application/vnd.openxmlformats-officedocument.presentationml.slideshow.main+xml": (
        "application/vnd.openxmlformats-officedocument.presentationml.slideshow", ".ppsx"),
    "application/vnd.ms-powerpoint.slideshow.macroenabled.main+xml": (
        "application/vnd.ms-powerpoint.slideshow.macroenabled.12", ".ppsm"),
}

# Folder markers in local file headers when the manifest is unreadable
ZIP_FOLDER_HINTS: Sequence[Tuple[bytes, str, str]] = (
    (b"word/", "application/vnd.openxmlformats-officedocument.wordprocessingml.document", ".docx"),
    (b"xl/", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx"),
    (b"ppt/", "application/vnd.openxmlformats-officedocument.presentationml.presentation", ".pptx"),
)

# OLE directory stream names, checked in order
OLE_STREAM_HINTS: Sequence[Tuple[bytes, str, str]] = (
    ("__substg1.0_".encode("utf-16-le"), "application/vnd.ms-outlook", ".msg"),
    ("WordDocument".encode("utf-16-le"), "application/msword", ".doc"),
    ("Workbook".encode("utf-16-le"), "application/vnd.ms-excel", ".xls"),
    ("Book".encode("utf-16-le"), "application/vnd.ms-excel", ".xls"),
    ("PowerPoint Document".encode("utf-16-le"), "application/vnd.ms-powerpoint", ".ppt"),
)

# RIFF form type at offset 8
RIFF_FORM_TYPES: Dict[bytes, Tuple[str, str]] = {
    b"WAVE": ("audio/wav", ".wav"),
    b"WEBP": ("image/webp", ".webp"),
    b"AVI ": ("video/x-msvideo", ".avi"),
}


class ContentClassifier:
    """
    Classifies byte buffers against the ordered signature catalog.

    Stateless apart from its configuration, so one instance can be shared
    across threads.
    """

    def __init__(
        self,
        signatures: Sequence[FileSignature] = FILE_SIGNATURES,
        settings: Optional[FileValidationSettings] = None
    ):
        self.signatures = tuple(signatures)
        self.settings = settings or get_settings().file_validation

    def detect(self, data: bytes) -> ContentDetection:
        """
        Identify the type of a non-empty byte buffer.

        Args:
            data: Raw file content

        Returns:
            ContentDetection; recognized is False when no signature matches

        Raises:
            InvalidArgumentError: If data is None, empty or not bytes-like
        """
        if data is None or not isinstance(data, (bytes, bytearray, memoryview)):
            raise_invalid_argument(
                "data must be a bytes-like object",
                argument_name="data",
                error_code=ErrorCode.ARGUMENT_REQUIRED if data is None else ErrorCode.ARGUMENT_INVALID
            )
        data = bytes(data)
        if not data:
            raise_invalid_argument(
                "data cannot be empty",
                argument_name="data",
                error_code=ErrorCode.ARGUMENT_REQUIRED
            )

        signature = self.match_signature(data)
        if signature is None:
            return self._unrecognized(data, reason="no matching signature")

        if signature.container == ContainerFormat.ZIP:
            detection = self._classify_zip(data, signature)
        elif signature.container == ContainerFormat.OLE:
            detection = self._classify_ole(data, signature)
        elif signature.container == ContainerFormat.RIFF:
            detection = self._classify_riff(data, signature)
        else:
            detection = ContentDetection.from_signature(signature)

        if detection.recognized:
            logger.debug(
                "Content classified",
                mime_type=detection.mime_type,
                extension=detection.extension,
                container=detection.container.value if detection.container else None,
                low_confidence=detection.low_confidence
            )
        return detection

    def match_signature(self, data: bytes) -> Optional[FileSignature]:
        """First catalog entry whose magic bytes prefix the buffer."""
        for signature in self.signatures:
            if signature.matches(data):
                return signature
        return None

    def is_allowed(self, detection: ContentDetection, allow_list: Optional[AllowList] = None) -> bool:
        """True when the detected type is recognized and on the allow-list."""
        if not detection.recognized:
            return False
        allow_list = allow_list or get_default_allow_list()
        return (
            allow_list.is_extension_allowed(detection.extension)
            and allow_list.is_mime_type_allowed(detection.mime_type)
        )

    def _unrecognized(self, data: bytes, reason: str) -> ContentDetection:
        diagnostic_hex = hex_prefix(data, self.settings.diagnostic_prefix_bytes)
        logger.warning(
            "Unrecognized file content",
            reason=reason,
            size=len(data),
            leading_bytes=diagnostic_hex
        )
        return ContentDetection.unrecognized(diagnostic_hex)

    def _classify_zip(self, data: bytes, signature: FileSignature) -> ContentDetection:
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                try:
                    manifest_info = archive.getinfo(CONTENT_TYPES_MANIFEST)
                except KeyError:
                    return ContentDetection.from_signature(signature)

                if manifest_info.file_size > MAX_MANIFEST_BYTES:
                    logger.warning(
                        "Office manifest too large to inspect",
                        manifest_size=manifest_info.file_size
                    )
                    return self._guess_zip_from_entry_names(data, signature)

                manifest = archive.read(manifest_info)
            content_type = self._main_part_content_type(manifest)
        except (zipfile.BadZipFile, ET.ParseError, EOFError, OSError, RuntimeError, NotImplementedError) as e:
            logger.debug("ZIP manifest could not be read", error=str(e))
            return self._guess_zip_from_entry_names(data, signature)

        if content_type is None:
            return ContentDetection.from_signature(signature)

        mime_type, extension = OFFICE_OPEN_XML_TYPES[content_type]
        return ContentDetection.from_signature(signature, mime_type, extension)

    @staticmethod
    def _main_part_content_type(manifest: bytes) -> Optional[str]:
        root = ET.fromstring(manifest)
        for element in root.iter():
            if not element.tag.endswith("Override"):
                continue
            content_type = (element.get("ContentType") or "").strip().lower()
            if content_type in OFFICE_OPEN_XML_TYPES:
                return content_type
        return None

    def _guess_zip_from_entry_names(self, data: bytes, signature: FileSignature) -> ContentDetection:
        for marker, mime_type, extension in ZIP_FOLDER_HINTS:
            if marker in data:
                logger.warning(
                    "Office format guessed from archive entry names",
                    extension=extension
                )
                return ContentDetection.from_signature(signature, mime_type, extension, low_confidence=True)

        logger.warning("Archive could not be parsed; treating as plain ZIP")
        return ContentDetection.from_signature(signature, low_confidence=True)

    def _classify_ole(self, data: bytes, signature: FileSignature) -> ContentDetection:
        for marker, mime_type, extension in OLE_STREAM_HINTS:
            if marker in data:
                return ContentDetection.from_signature(signature, mime_type, extension)

        logger.warning("OLE compound file without known streams; assuming Word document")
        return ContentDetection.from_signature(signature, low_confidence=True)

    def _classify_riff(self, data: bytes, signature: FileSignature) -> ContentDetection:
        form_type = RIFF_FORM_TYPES.get(data[8:12])
        if form_type is None:
            return self._unrecognized(data, reason=f"unknown RIFF form type {data[8:12]!r}")

        mime_type, extension = form_type
        return ContentDetection.from_signature(signature, mime_type, extension)


_content_classifier: Optional[ContentClassifier] = None


def get_content_classifier() -> ContentClassifier:
    """Get global content classifier instance."""
    global _content_classifier
    if _content_classifier is None:
        _content_classifier = ContentClassifier()
    return _content_classifier
