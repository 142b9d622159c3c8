"""
File handling helpers shared by the validation services.

Covers content hashing, human-readable sizes, and the name/extension/MIME
normalization rules applied before any allow-list lookup.
"""

import hashlib
import re
from typing import Optional

from docguard.app.core.exceptions import ErrorCode, raise_invalid_argument
from docguard.app.utils.logging import get_logger

logger = get_logger(__name__)


# Characters the operating system refuses in file names
INVALID_FILE_NAME_CHARS = frozenset([chr(code) for code in range(32)] + ["/", "\\"])

# Characters that break shells, URLs or Windows paths
PROBLEMATIC_FILE_NAME_CHARS = frozenset('<>:"|?*')

DEFAULT_FILE_NAME = "Document"

FILE_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")

_WHITESPACE_RUN = re.compile(r"\s+")


def calculate_file_hash(file_content: bytes, algorithm: str = "sha256") -> str:
    """
    Calculate hash of file content.

    Args:
        file_content: File content as bytes
        algorithm: Hash algorithm (md5, sha1, sha256, sha512)

    Returns:
        Hexadecimal hash string
    """
    hash_algorithms = {
        "md5": hashlib.md5,
        "sha1": hashlib.sha1,
        "sha256": hashlib.sha256,
        "sha512": hashlib.sha512
    }

    if algorithm not in hash_algorithms:
        raise_invalid_argument(
            f"Unsupported hash algorithm: {algorithm}",
            argument_name="algorithm",
            argument_value=algorithm,
            error_code=ErrorCode.ARGUMENT_OUT_OF_RANGE
        )

    hash_obj = hash_algorithms[algorithm]()
    hash_obj.update(file_content)
    return hash_obj.hexdigest()


def calculate_file_checksum(file_content: bytes) -> str:
    """Lowercase SHA-256 hex digest of the content."""
    if file_content is None:
        raise_invalid_argument(
            "file_content is required",
            argument_name="file_content",
            error_code=ErrorCode.ARGUMENT_REQUIRED
        )
    return calculate_file_hash(bytes(file_content), "sha256")


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count for display, e.g. 1536 -> "1.50 KB".

    Whole bytes are shown without decimals; larger units with two.
    """
    if size_bytes < 0:
        return "0 B"

    size = float(size_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(FILE_SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{size:.0f} {FILE_SIZE_UNITS[unit_index]}"
    return f"{size:.2f} {FILE_SIZE_UNITS[unit_index]}"


def normalize_extension(extension: Optional[str]) -> str:
    """Lowercase the extension and make sure it starts with a dot."""
    if not extension:
        return ""
    normalized = extension.strip().lower()
    if normalized and not normalized.startswith("."):
        normalized = f".{normalized}"
    return normalized


def normalize_mime_type(mime_type: Optional[str]) -> str:
    if not mime_type:
        return ""
    return mime_type.strip().lower()


def extract_base_file_name(file_name: str) -> str:
    """
    Strip the last extension segment from a file name.

    A leading dot does not start an extension, so ".env" stays ".env".
    """
    name = file_name.strip()
    dot_index = name.rfind(".")
    if dot_index > 0:
        return name[:dot_index]
    return name


def extract_extension(file_name: str) -> str:
    """Return the last extension segment including its dot, or ""."""
    name = file_name.strip()
    dot_index = name.rfind(".")
    if dot_index > 0:
        return name[dot_index:]
    return ""


def has_invalid_characters(file_name: str) -> bool:
    return any(char in INVALID_FILE_NAME_CHARS for char in file_name)


def has_problematic_characters(file_name: str) -> bool:
    return any(char in PROBLEMATIC_FILE_NAME_CHARS for char in file_name)


def clean_file_name(file_name: Optional[str]) -> str:
    """
    Replace invalid and problematic characters with underscores.

    Whitespace runs collapse to one space. An empty result falls back to
    DEFAULT_FILE_NAME.
    """
    if not file_name:
        return DEFAULT_FILE_NAME

    cleaned = "".join(
        "_" if char in INVALID_FILE_NAME_CHARS or char in PROBLEMATIC_FILE_NAME_CHARS else char
        for char in file_name
    )
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()

    if not cleaned.strip("_. "):
        return DEFAULT_FILE_NAME
    return cleaned


def hex_prefix(data: bytes, length: int = 16) -> str:
    """Uppercase hex of the leading bytes, for diagnostics."""
    return data[:length].hex().upper()
