"""
Binary file signatures used for content-based type detection.

FILE_SIGNATURES is the ordered ground truth for the content classifier. The
first entry whose magic bytes prefix the buffer wins, so no entry may be a
strict prefix of a later entry's magic bytes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ContainerFormat(str, Enum):
    """Container families whose signature match needs re-examination."""

    ZIP = "zip"
    OLE = "ole"
    RIFF = "riff"


@dataclass(frozen=True)
class FileSignature:
    """A magic-byte prefix and the type it identifies."""

    magic_bytes: bytes
    mime_type: str
    extension: str
    container: Optional[ContainerFormat] = None

    def matches(self, data: bytes) -> bool:
        """True when the buffer is long enough and starts with the magic bytes."""
        return len(data) >= len(self.magic_bytes) and data[:len(self.magic_bytes)] == self.magic_bytes

    @property
    def magic_hex(self) -> str:
        return self.magic_bytes.hex().upper()


FILE_SIGNATURES: Tuple[FileSignature, ...] = (
    # Documents
    FileSignature(b"%PDF", "application/pdf", ".pdf"),
    FileSignature(b"{\\rtf", "application/rtf", ".rtf"),

    # Images
    FileSignature(b"\xFF\xD8\xFF", "image/jpeg", ".jpg"),
    FileSignature(b"\x89PNG\r\n\x1A\n", "image/png", ".png"),
    FileSignature(b"GIF87a", "image/gif", ".gif"),
    FileSignature(b"GIF89a", "image/gif", ".gif"),
    FileSignature(b"BM", "image/bmp", ".bmp"),
    FileSignature(b"II*\x00", "image/tiff", ".tif"),
    FileSignature(b"MM\x00*", "image/tiff", ".tif"),

    # Containers, refined by the classifier
    FileSignature(b"PK\x03\x04", "application/zip", ".zip", ContainerFormat.ZIP),
    FileSignature(b"PK\x05\x06", "application/zip", ".zip"),
    FileSignature(b"PK\x07\x08", "application/zip", ".zip"),
    FileSignature(b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1", "application/msword", ".doc", ContainerFormat.OLE),
    FileSignature(b"RIFF", "audio/wav", ".wav", ContainerFormat.RIFF),

    # Archives
    FileSignature(b"Rar!\x1A\x07\x00", "application/vnd.rar", ".rar"),
    FileSignature(b"Rar!\x1A\x07\x01\x00", "application/vnd.rar", ".rar"),
    FileSignature(b"7z\xBC\xAF\x27\x1C", "application/x-7z-compressed", ".7z"),

    # Audio
    FileSignature(b"ID3", "audio/mpeg", ".mp3"),
    FileSignature(b"\xFF\xFB", "audio/mpeg", ".mp3"),
    FileSignature(b"OggS", "audio/ogg", ".ogg"),
    FileSignature(b"fLaC", "audio/flac", ".flac"),

    # Video
    FileSignature(b"\x00\x00\x00\x18ftyp", "video/mp4", ".mp4"),
    FileSignature(b"\x00\x00\x00\x1Cftyp", "video/mp4", ".mp4"),
    FileSignature(b"\x00\x00\x00\x20ftyp", "video/mp4", ".mp4"),
    FileSignature(b"\x1A\x45\xDF\xA3", "video/x-matroska", ".mkv"),
    FileSignature(b"FLV", "video/x-flv", ".flv"),

    # UTF-8 text with byte order mark
    FileSignature(b"\xEF\xBB\xBF", "text/plain", ".txt"),
)


@dataclass(frozen=True)
class ContentDetection:
    """
    Outcome of classifying a byte buffer.

    An unrecognized buffer is a normal result: recognized is False and
    diagnostic_hex carries the leading bytes for logging.
    """

    recognized: bool
    mime_type: Optional[str] = None
    extension: Optional[str] = None
    signature: Optional[FileSignature] = None
    container: Optional[ContainerFormat] = None
    low_confidence: bool = False
    diagnostic_hex: Optional[str] = None

    @classmethod
    def unrecognized(cls, diagnostic_hex: str) -> "ContentDetection":
        return cls(recognized=False, diagnostic_hex=diagnostic_hex)

    @classmethod
    def from_signature(
        cls,
        signature: FileSignature,
        mime_type: Optional[str] = None,
        extension: Optional[str] = None,
        low_confidence: bool = False
    ) -> "ContentDetection":
        return cls(
            recognized=True,
            mime_type=mime_type or signature.mime_type,
            extension=extension or signature.extension,
            signature=signature,
            container=signature.container,
            low_confidence=low_confidence,
        )
