"""File repository for database operations."""

import json
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from common.types import FileMetadata, FileRecord, FileStatus
from controller.database import get_db_connection

logger = get_logger(__name__)

_FILE_COLUMNS = (
    "file_id, name, size, digest, status, content_type, description, properties, created_at"
)


def _row_to_file(row) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        name=row["name"],
        size=row["size"],
        digest=row["digest"],
        status=FileStatus(row["status"]),
        metadata=FileMetadata(
            content_type=row["content_type"],
            description=row["description"],
            properties=json.loads(row["properties"]),
        ),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class FileRepository:
    @staticmethod
    def create_file(file: FileRecord, conn=None) -> FileRecord:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                INSERT INTO files ({_FILE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    file.file_id,
                    file.name,
                    file.size,
                    file.digest,
                    file.status.value,
                    file.metadata.content_type,
                    file.metadata.description,
                    json.dumps(file.metadata.properties),
                    file.created_at.isoformat(),
                )
            )
            if should_close:
                conn.commit()
            logger.debug(f"Created file record [file_id={file.file_id}, name={file.name}]")
            return file
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def get_by_id(file_id: str) -> Optional[FileRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_FILE_COLUMNS} FROM files WHERE file_id = ?",
                (file_id,)
            )
            row = cursor.fetchone()
            return _row_to_file(row) if row else None

    @staticmethod
    def list_files() -> List[FileRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_FILE_COLUMNS} FROM files ORDER BY created_at")
            return [_row_to_file(row) for row in cursor.fetchall()]

    @staticmethod
    def update_status(file_id: str, status: FileStatus, digest: Optional[str] = None, conn=None) -> bool:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            if digest is None:
                cursor.execute(
                    "UPDATE files SET status = ? WHERE file_id = ?",
                    (status.value, file_id)
                )
            else:
                cursor.execute(
                    "UPDATE files SET status = ?, digest = ? WHERE file_id = ?",
                    (status.value, digest, file_id)
                )
            if should_close:
                conn.commit()
            return cursor.rowcount > 0
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def delete_file(file_id: str, conn=None) -> bool:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM files WHERE file_id = ?", (file_id,))
            if should_close:
                conn.commit()
            deleted = cursor.rowcount > 0
            if deleted:
                logger.info(f"Deleted file record [file_id={file_id}]")
            return deleted
        finally:
            if should_close:
                conn.close()
