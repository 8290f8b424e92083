"""Chunk repository for database operations."""

from typing import List

from common.logging_config import get_logger
from common.types import Chunk, ChunkStatus
from controller.database import get_db_connection

logger = get_logger(__name__)


def _row_to_chunk(row) -> Chunk:
    return Chunk(
        chunk_id=row["chunk_id"],
        file_id=row["file_id"],
        order=row["chunk_order"],
        size=row["size"],
        digest=row["digest"],
        backend_id=row["backend_id"],
        status=ChunkStatus(row["status"]),
    )


class ChunkRepository:
    @staticmethod
    def create_chunks(chunks: List[Chunk], conn=None) -> None:
        if not chunks:
            return

        logger.debug(f"Creating {len(chunks)} chunks for file_id={chunks[0].file_id}")
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.executemany(
                """
                INSERT INTO chunks (chunk_id, file_id, chunk_order, size, digest, backend_id, status)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        chunk.chunk_id,
                        chunk.file_id,
                        chunk.order,
                        chunk.size,
                        chunk.digest,
                        chunk.backend_id,
                        chunk.status.value,
                    )
                    for chunk in chunks
                ]
            )
            if should_close:
                conn.commit()
            logger.info(f"Created {len(chunks)} chunks successfully")
        except Exception as e:
            logger.error(f"Failed to create chunks: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def get_chunks_by_file(file_id: str) -> List[Chunk]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT chunk_id, file_id, chunk_order, size, digest, backend_id, status
                FROM chunks
                WHERE file_id = ?
                ORDER BY chunk_order
                """,
                (file_id,)
            )
            return [_row_to_chunk(row) for row in cursor.fetchall()]

    @staticmethod
    def update_status(chunk_id: str, status: ChunkStatus, conn=None) -> bool:
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE chunks SET status = ? WHERE chunk_id = ?",
                (status.value, chunk_id)
            )
            if should_close:
                conn.commit()
            return cursor.rowcount > 0
        finally:
            if should_close:
                conn.close()

    @staticmethod
    def delete_chunks(file_id: str, conn=None) -> List[str]:
        logger.debug(f"Deleting chunks [file_id={file_id}]")
        should_close = conn is None
        if conn is None:
            conn = get_db_connection().__enter__()

        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT chunk_id FROM chunks WHERE file_id = ?",
                (file_id,)
            )
            chunk_ids = [row["chunk_id"] for row in cursor.fetchall()]

            cursor.execute("DELETE FROM chunks WHERE file_id = ?", (file_id,))
            if should_close:
                conn.commit()

            logger.info(f"Deleted {len(chunk_ids)} chunks [file_id={file_id}]")
            return chunk_ids
        except Exception as e:
            logger.error(f"Failed to delete chunks [file_id={file_id}]: {e}", exc_info=True)
            raise
        finally:
            if should_close:
                conn.close()
