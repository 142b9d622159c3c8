"""
Unit tests for the content classifier.

Test Coverage:
- Signature catalog ordering and round trip over every entry
- Office Open XML detection from the [Content_Types].xml manifest
- Heuristic fallback for archives that cannot be parsed
- OLE compound file and RIFF form type refinement
- Unrecognized content diagnostics and contract violations
"""

import io
import zipfile

import pytest

from docguard.app.core.allow_list import AllowList
from docguard.app.core.exceptions import InvalidArgumentError
from docguard.app.models.domain.signature import FILE_SIGNATURES, ContainerFormat
from docguard.app.processors.content_classifier import ContentClassifier


DOCX_MAIN = "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"
XLSX_MAIN = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"
PPTM_MAIN = "application/vnd.ms-powerpoint.presentation.macroEnabled.main+xml"


def build_office_zip(main_content_type: str, folder: str) -> bytes:
    """Build a minimal Office Open XML package in memory."""
    manifest = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Default Extension="xml" ContentType="application/xml"/>'
        f'<Override PartName="/{folder}/main.xml" ContentType="{main_content_type}"/>'
        '</Types>'
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_STORED) as archive:
        archive.writestr("[Content_Types].xml", manifest)
        archive.writestr(f"{folder}/main.xml", "<root/>")
    return buffer.getvalue()


def build_ole(stream_name: str = "") -> bytes:
    header = b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1" + b"\x00" * 504
    return header + stream_name.encode("utf-16-le") + b"\x00" * 64


class TestSignatureCatalog:
    """Test suite for the ordered signature catalog."""

    def test_no_signature_shadows_a_later_one(self):
        """An earlier entry must never be a strict prefix of a later one."""
        for index, earlier in enumerate(FILE_SIGNATURES):
            for later in FILE_SIGNATURES[index + 1:]:
                shadows = (
                    len(earlier.magic_bytes) < len(later.magic_bytes)
                    and later.magic_bytes.startswith(earlier.magic_bytes)
                )
                assert not shadows, f"{earlier.magic_hex} shadows {later.magic_hex}"

    def test_every_signature_round_trips(self):
        """Each catalog entry classifies to its own MIME type and extension."""
        classifier = ContentClassifier()
        # Bytes 8-11 carry a RIFF form type so the RIFF entry resolves too
        padding = b"\x00\x00\x00\x00WAVE" + b"\x00" * 32

        for signature in FILE_SIGNATURES:
            detection = classifier.detect(signature.magic_bytes + padding)

            assert detection.recognized, signature.magic_hex
            assert detection.signature == signature
            assert detection.mime_type == signature.mime_type
            assert detection.extension == signature.extension

    def test_buffer_shorter_than_magic_does_not_match(self):
        """Test a buffer shorter than a signature never matches it."""
        png = next(s for s in FILE_SIGNATURES if s.extension == ".png")
        assert not png.matches(png.magic_bytes[:-1])
        assert png.matches(png.magic_bytes)


class TestContentClassifier:
    """Test suite for ContentClassifier."""

    def setup_method(self):
        """Set up test fixtures before each test method."""
        self.classifier = ContentClassifier()

    def test_detect_pdf(self):
        """Test PDF content is detected from its header."""
        detection = self.classifier.detect(b"%PDF-1.7\n%\xE2\xE3\xCF\xD3\n")

        assert detection.recognized
        assert detection.mime_type == "application/pdf"
        assert detection.extension == ".pdf"
        assert detection.container is None
        assert not detection.low_confidence

    def test_detect_jpeg(self):
        """Test JPEG content is detected from its header."""
        detection = self.classifier.detect(b"\xFF\xD8\xFF\xE0\x00\x10JFIF\x00")

        assert detection.mime_type == "image/jpeg"
        assert detection.extension == ".jpg"

    def test_unrecognized_content_carries_diagnostics(self):
        """Test unrecognized content reports its leading bytes as hex."""
        data = b"MZ\x90\x00\x03\x00\x00\x00\x04\x00\x00\x00\xFF\xFF\x00\x00\xB8\x00\x00"

        detection = self.classifier.detect(data)

        assert not detection.recognized
        assert detection.mime_type is None
        assert detection.extension is None
        assert detection.diagnostic_hex == data[:16].hex().upper()

    @pytest.mark.parametrize("data", [None, b"", bytearray()])
    def test_detect_requires_content(self, data):
        """Test detection of missing content raises InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            self.classifier.detect(data)

    def test_detect_rejects_text(self):
        """Test detection of a str raises InvalidArgumentError."""
        with pytest.raises(InvalidArgumentError):
            self.classifier.detect("%PDF-1.7")

    def test_detect_accepts_bytearray(self):
        """Test a bytearray is classified like bytes."""
        detection = self.classifier.detect(bytearray(b"GIF89a\x01\x00"))
        assert detection.extension == ".gif"

    def test_is_allowed(self):
        """Test detected types are checked against the allow-list."""
        detection = self.classifier.detect(b"%PDF-1.4\n")
        restrictive = AllowList.create(extensions=[".docx"], mime_types=["application/msword"])

        assert self.classifier.is_allowed(detection)
        assert not self.classifier.is_allowed(detection, restrictive)

    def test_unrecognized_is_never_allowed(self):
        """Test unrecognized content is never allowed."""
        detection = self.classifier.detect(b"\x00\x01\x02\x03")
        assert not self.classifier.is_allowed(detection)


class TestZipClassification:
    """Test suite for Office Open XML and ZIP refinement."""

    def setup_method(self):
        """Set up test fixtures before each test method."""
        self.classifier = ContentClassifier()

    @pytest.mark.parametrize("main_type,folder,mime_type,extension", [
        (DOCX_MAIN, "word",
         "application/vnd.openxmlformats-officedocument.wordprocessingml.document", ".docx"),
        (XLSX_MAIN, "xl",
         "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx"),
        (PPTM_MAIN, "ppt",
         "application/vnd.ms-powerpoint.presentation.macroenabled.12", ".pptm"),
    ])
    def test_office_package_from_manifest(self, main_type, folder, mime_type, extension):
        """Test Office packages are typed from the content types manifest."""
        detection = self.classifier.detect(build_office_zip(main_type, folder))

        assert detection.recognized
        assert detection.container == ContainerFormat.ZIP
        assert detection.mime_type == mime_type
        assert detection.extension == extension
        assert not detection.low_confidence

    def test_plain_archive_stays_zip(self):
        """Test an ordinary archive is reported as zip."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("exhibits/exhibit-a.txt", "Exhibit A")

        detection = self.classifier.detect(buffer.getvalue())

        assert detection.mime_type == "application/zip"
        assert detection.extension == ".zip"
        assert not detection.low_confidence

    def test_manifest_without_office_part_stays_zip(self):
        """Test a manifest without an Office main part stays zip."""
        detection = self.classifier.detect(build_office_zip("application/xml", "data"))

        assert detection.extension == ".zip"
        assert not detection.low_confidence

    def test_truncated_office_package_is_guessed_with_low_confidence(self):
        """Test a truncated Office package is guessed from folder names with low confidence."""
        data = build_office_zip(XLSX_MAIN, "xl")
        truncated = data[:-30]

        detection = self.classifier.detect(truncated)

        assert detection.recognized
        assert detection.extension == ".xlsx"
        assert detection.low_confidence

    def test_unparseable_archive_without_hints(self):
        """Test a broken archive without folder hints falls back to zip."""
        detection = self.classifier.detect(b"PK\x03\x04" + b"\x00" * 60)

        assert detection.extension == ".zip"
        assert detection.mime_type == "application/zip"
        assert detection.low_confidence


class TestOleAndRiffClassification:
    """Test suite for OLE compound file and RIFF refinement."""

    def setup_method(self):
        """Set up test fixtures before each test method."""
        self.classifier = ContentClassifier()

    @pytest.mark.parametrize("stream_name,mime_type,extension", [
        ("WordDocument", "application/msword", ".doc"),
        ("Workbook", "application/vnd.ms-excel", ".xls"),
        ("PowerPoint Document", "application/vnd.ms-powerpoint", ".ppt"),
        ("__substg1.0_0037001F", "application/vnd.ms-outlook", ".msg"),
    ])
    def test_ole_stream_names(self, stream_name, mime_type, extension):
        """Test OLE documents are typed from their stream names."""
        detection = self.classifier.detect(build_ole(stream_name))

        assert detection.container == ContainerFormat.OLE
        assert detection.mime_type == mime_type
        assert detection.extension == extension
        assert not detection.low_confidence

    def test_ole_without_known_streams_falls_back_to_word(self):
        """Test an OLE file without known streams falls back to doc with low confidence."""
        detection = self.classifier.detect(build_ole())

        assert detection.extension == ".doc"
        assert detection.low_confidence

    @pytest.mark.parametrize("form_type,mime_type,extension", [
        (b"WAVE", "audio/wav", ".wav"),
        (b"WEBP", "image/webp", ".webp"),
        (b"AVI ", "video/x-msvideo", ".avi"),
    ])
    def test_riff_form_types(self, form_type, mime_type, extension):
        """Test RIFF containers are typed from their form type."""
        detection = self.classifier.detect(b"RIFF\x24\x00\x00\x00" + form_type + b"fmt \x10\x00")

        assert detection.container == ContainerFormat.RIFF
        assert detection.mime_type == mime_type
        assert detection.extension == extension

    def test_unknown_riff_form_type_is_unrecognized(self):
        """Test an unknown RIFF form type is unrecognized."""
        detection = self.classifier.detect(b"RIFF\x24\x00\x00\x00CDDA" + b"\x00" * 8)

        assert not detection.recognized
        assert detection.diagnostic_hex.startswith("52494646")
