"""Service locator for the process-wide file service."""

from typing import Optional

from controller.services.file_service import FileService

_file_service: Optional[FileService] = None


def set_file_service(service: Optional[FileService]):
    """Set global file service instance"""
    global _file_service
    _file_service = service


def get_file_service() -> FileService:
    """Get global file service instance, creating it on first use"""
    global _file_service
    if _file_service is None:
        _file_service = FileService()
    return _file_service
