"""Storage backend API routes."""

from fastapi import APIRouter, Depends, status

from controller.schemas.common import ErrorResponse
from controller.schemas.backends import (
    BackendResponse,
    ListBackendsResponse,
    RegisterBackendRequest
)
from controller.service_locator import get_file_service
from controller.services.file_service import FileService

router = APIRouter(prefix="/backends", tags=["Backends"])


@router.post(
    "",
    response_model=BackendResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}}
)
async def register_backend(
    request: RegisterBackendRequest,
    file_service: FileService = Depends(get_file_service)
):
    """
    Register a storage backend.

    Parameters:
        - name: Display name
        - kind: Backend kind (FileSystem, ObjectStore)
        - connection_info: Root directory or bucket URL

    Raises:
        - 400: Unsupported backend kind
    """
    descriptor = file_service.register_backend(
        name=request.name,
        kind=request.kind,
        connection_info=request.connection_info,
    )
    return BackendResponse.from_descriptor(descriptor)


@router.get("", response_model=ListBackendsResponse)
async def list_backends(file_service: FileService = Depends(get_file_service)):
    """
    List every registered backend, active or not.
    """
    return ListBackendsResponse(
        backends=[BackendResponse.from_descriptor(d) for d in file_service.list_backends()]
    )


@router.post("/{backend_id}/health", response_model=BackendResponse)
async def check_backend_health(
    backend_id: str,
    file_service: FileService = Depends(get_file_service)
):
    """
    Probe a backend and update its active flag from the result.

    Raises:
        - 404: Backend not found
    """
    descriptor = await file_service.check_backend_health(backend_id)
    return BackendResponse.from_descriptor(descriptor)
