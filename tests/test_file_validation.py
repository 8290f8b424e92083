"""Tests for upload admission rules."""

import pytest

from common.constants import MAX_FILE_SIZE_BYTES
from common.types import FileMetadata
from chunking.exceptions import InputError
from chunking.file_validation import (
    is_valid_content_type,
    validate_file_name,
    validate_file_size,
    validate_file_type,
    validate_upload,
)


class TestFileName:
    """Test file name rules."""

    @pytest.mark.parametrize("name", ["report.pdf", "a", "archive.tar.gz", "console.txt", "x" * 255])
    def test_accepted(self, name):
        validate_file_name(name)

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 256])
    def test_blank_or_too_long(self, name):
        with pytest.raises(InputError):
            validate_file_name(name)

    @pytest.mark.parametrize("char", list('<>:"|?*\\/'))
    def test_forbidden_characters(self, char):
        with pytest.raises(InputError) as exc_info:
            validate_file_name(f"bad{char}name.txt")

        assert char in str(exc_info.value)

    @pytest.mark.parametrize("name", ["CON", "prn.txt", "Aux.log", "COM1", "lpt9.dat"])
    def test_reserved_names(self, name):
        with pytest.raises(InputError):
            validate_file_name(name)


class TestFileType:
    """Test extension rules."""

    def test_known_extension(self):
        assert validate_file_type("photo.JPG")

    def test_unknown_extension_is_accepted(self):
        assert not validate_file_type("data.bin")
        assert not validate_file_type("README")

    @pytest.mark.parametrize("name", ["setup.exe", "run.BAT", "app.js", "lib.jar"])
    def test_forbidden_extension(self, name):
        with pytest.raises(InputError):
            validate_file_type(name)


class TestFileSize:
    """Test size bounds."""

    def test_bounds(self):
        validate_file_size(1)
        validate_file_size(MAX_FILE_SIZE_BYTES)

        with pytest.raises(InputError):
            validate_file_size(0)
        with pytest.raises(InputError):
            validate_file_size(MAX_FILE_SIZE_BYTES + 1)

    def test_custom_maximum(self):
        with pytest.raises(InputError):
            validate_file_size(11, max_size=10)


class TestContentType:
    """Test content type format."""

    @pytest.mark.parametrize("content_type", ["text/plain", "application/vnd.ms-excel", "image/svg+xml"])
    def test_valid(self, content_type):
        assert is_valid_content_type(content_type)

    @pytest.mark.parametrize("content_type", ["", None, "text", "text/ plain", "text/plain\n"])
    def test_invalid(self, content_type):
        assert not is_valid_content_type(content_type)


def test_validate_upload_checks_every_rule():
    validate_upload("notes.txt", 10, FileMetadata(content_type="text/plain"))

    with pytest.raises(InputError):
        validate_upload("notes.txt", 0)
    with pytest.raises(InputError):
        validate_upload("virus.exe", 10)
    with pytest.raises(InputError):
        validate_upload("notes.txt", 10, FileMetadata(content_type="plain"))
