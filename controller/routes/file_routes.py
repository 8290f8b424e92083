"""File operation API routes."""

import json
import os
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response

from common.types import FileMetadata
from controller.schemas.common import ErrorResponse
from controller.schemas.files import (
    ChunkHealthResponse,
    ChunkResultResponse,
    DeleteFileResponse,
    FileHealthResponse,
    FileMetadataResponse,
    ListFilesResponse,
    ProgressResponse,
    ReplicationPlanResponse,
    StoreFileResponse
)
from controller.service_locator import get_file_service
from controller.services.file_service import FileService

router = APIRouter(prefix="/files", tags=["Files"])


def _parse_properties(properties: Optional[str]) -> dict:
    if not properties:
        return {}
    try:
        parsed = json.loads(properties)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"properties must be a JSON object: {e}"
        )
    if not isinstance(parsed, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="properties must be a JSON object"
        )
    return {str(key): str(value) for key, value in parsed.items()}


@router.post("", response_model=StoreFileResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
    properties: Optional[str] = Form(None),
    file_service: FileService = Depends(get_file_service)
):
    """
    Upload a file; it is chunked and spread across the active backends.

    Parameters:
        - file: File to upload (multipart/form-data)
        - description: Optional free-text description
        - properties: Optional JSON object of string properties

    Returns:
        - file metadata, overall success and per-chunk results

    Raises:
        - 400: Invalid name, type, size or content type, too many chunks, or no active backends
    """
    metadata = FileMetadata(
        content_type=file.content_type or "application/octet-stream",
        description=description,
        properties=_parse_properties(properties),
    )

    file.file.seek(0, os.SEEK_END)
    file_size = file.file.tell()
    file.file.seek(0)

    result = await file_service.store_file(
        name=file.filename,
        stream=file.file,
        size=file_size,
        metadata=metadata,
    )

    return StoreFileResponse(
        file=FileMetadataResponse.from_record(result.file),
        chunk_count=result.outcome.chunk_count,
        success=result.success,
        chunks=[
            ChunkResultResponse(
                chunk_id=r.chunk_id,
                order=r.order,
                size=r.size,
                digest=r.digest,
                backend_id=r.backend_id,
                success=r.success,
                error=r.error,
                cancelled=r.cancelled,
                processing_duration=r.processing_duration,
            )
            for r in result.outcome.results
        ],
    )


@router.get("", response_model=ListFilesResponse)
async def list_files(file_service: FileService = Depends(get_file_service)):
    return ListFilesResponse(
        files=[FileMetadataResponse.from_record(f) for f in file_service.list_files()]
    )


@router.get(
    "/{file_id}",
    response_model=FileMetadataResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_file(file_id: str, file_service: FileService = Depends(get_file_service)):
    """
    Get file metadata and status.

    Raises:
        - 404: File not found
    """
    return FileMetadataResponse.from_record(file_service.get_file_status(file_id))


@router.get(
    "/{file_id}/content",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)
async def download_file(file_id: str, file_service: FileService = Depends(get_file_service)):
    """
    Download the reconstructed, integrity-checked file.

    Raises:
        - 404: File not found
        - 409: File not fully stored
        - 500: Integrity validation failed
        - 503: A backend could not return a chunk
    """
    file, data = await file_service.retrieve_file(file_id)
    return Response(
        content=data,
        media_type=file.metadata.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{file.name}"',
            "X-Content-SHA256": file.digest,
        }
    )


@router.delete("/{file_id}", response_model=DeleteFileResponse)
async def delete_file(file_id: str, file_service: FileService = Depends(get_file_service)):
    chunk_ids = await file_service.delete_file(file_id)
    return DeleteFileResponse(file_id=file_id, deleted_chunk_count=len(chunk_ids))


@router.get("/{file_id}/progress", response_model=ProgressResponse)
async def get_progress(file_id: str, file_service: FileService = Depends(get_file_service)):
    """
    Processing progress of a file stored by this process.

    POST /files answers only after the store finishes, so through this API
    the snapshot always shows the final counts. Records are kept for
    CHUNKVAULT_PROGRESS_RETENTION_SECONDS after the store finishes.

    Raises:
        - 404: No progress tracked for this file, or the record expired
    """
    snapshot = file_service.get_progress(file_id)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No progress tracked for file {file_id}"
        )

    return ProgressResponse(
        file_id=snapshot.file_id,
        total_chunks=snapshot.total_chunks,
        processed_chunks=snapshot.processed_chunks,
        succeeded_chunks=snapshot.succeeded_chunks,
        failed_chunks=snapshot.failed_chunks,
        total_bytes=snapshot.total_bytes,
        bytes_processed=snapshot.bytes_processed,
        percent_complete=snapshot.percent_complete,
        elapsed_seconds=snapshot.elapsed_seconds,
        estimated_remaining_seconds=snapshot.estimated_remaining_seconds,
        finished=snapshot.finished,
    )


@router.get("/{file_id}/health", response_model=FileHealthResponse)
async def get_file_health(file_id: str, file_service: FileService = Depends(get_file_service)):
    """
    Per-chunk health and proposed replication plans.

    Raises:
        - 404: File not found
    """
    report = file_service.health_report(file_id)

    chunks = []
    for entry in report.chunks:
        plan = entry.replication_plan
        chunks.append(ChunkHealthResponse(
            chunk_id=entry.chunk.chunk_id,
            order=entry.chunk.order,
            backend_id=entry.chunk.backend_id,
            status=entry.chunk.status.value,
            health=entry.health.value,
            replication_plan=ReplicationPlanResponse(
                source_backend_id=plan.source_backend_id,
                target_backend_ids=plan.target_backend_ids,
                priority=plan.priority.name,
                estimated_duration_seconds=plan.estimated_duration.total_seconds(),
            ) if plan else None,
        ))

    return FileHealthResponse(
        file_id=report.file_id,
        healthy=report.is_healthy,
        summary={health.value: count for health, count in report.summary.items()},
        chunks=chunks,
    )
