"""Upload admission rules: file name, extension, size and content type."""

import os
from typing import Optional

from common.constants import (
    FORBIDDEN_FILE_EXTENSIONS,
    FORBIDDEN_FILE_NAME_CHARACTERS,
    KNOWN_FILE_EXTENSIONS,
    MAX_FILE_NAME_LENGTH,
    MAX_FILE_SIZE_BYTES,
    MIN_FILE_NAME_LENGTH,
    MIN_FILE_SIZE_BYTES,
    RESERVED_FILE_NAMES,
)
from common.logging_config import get_logger
from common.types import FileMetadata
from chunking.exceptions import InputError

logger = get_logger(__name__)


def validate_file_name(name: str) -> None:
    """
    Reject blank names, names outside the length bounds, names containing
    path or shell metacharacters and Windows reserved device names.

    Raises:
        InputError: name is not acceptable
    """
    if name is None or not name.strip():
        raise InputError("File name must not be empty")

    if not MIN_FILE_NAME_LENGTH <= len(name) <= MAX_FILE_NAME_LENGTH:
        raise InputError(
            f"File name must be {MIN_FILE_NAME_LENGTH}-{MAX_FILE_NAME_LENGTH} characters, got {len(name)}"
        )

    forbidden = sorted(FORBIDDEN_FILE_NAME_CHARACTERS.intersection(name))
    if forbidden:
        raise InputError(f"File name contains invalid characters: {' '.join(forbidden)}")

    stem = os.path.splitext(name)[0]
    if stem.upper() in RESERVED_FILE_NAMES:
        raise InputError(f"File name {name} is reserved")


def file_extension(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def validate_file_type(name: str) -> bool:
    """
    Reject executable extensions.

    Returns:
        True for a known extension, False for an unknown one that is still accepted

    Raises:
        InputError: extension is forbidden
    """
    extension = file_extension(name)
    if extension in FORBIDDEN_FILE_EXTENSIONS:
        raise InputError(f"File type {extension} is not allowed")
    return extension in KNOWN_FILE_EXTENSIONS


def validate_file_size(size: int, max_size: int = MAX_FILE_SIZE_BYTES) -> None:
    if size < MIN_FILE_SIZE_BYTES:
        raise InputError(f"File size must be at least {MIN_FILE_SIZE_BYTES} byte, got {size}")
    if size > max_size:
        raise InputError(f"File size {size} exceeds maximum allowed size of {max_size} bytes")


def is_valid_content_type(content_type: Optional[str]) -> bool:
    """A `type/subtype` token with no whitespace."""
    if not content_type or not content_type.strip():
        return False
    if "/" not in content_type:
        return False
    return not any(ch.isspace() for ch in content_type)


def validate_upload(
    name: str,
    size: int,
    metadata: Optional[FileMetadata] = None,
    max_size: int = MAX_FILE_SIZE_BYTES
) -> None:
    """
    Check an upload before any record is created or byte is read.

    Raises:
        InputError: the first rule the upload violates
    """
    validate_file_name(name)
    validate_file_size(size, max_size=max_size)
    if not validate_file_type(name):
        logger.warning(f"File type {file_extension(name) or '(none)'} of {name} may not be supported")
    if metadata is not None and not is_valid_content_type(metadata.content_type):
        raise InputError(f"Invalid content type: {metadata.content_type!r}")
