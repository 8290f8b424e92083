"""Backend descriptor repository for database operations."""

from typing import List, Optional

from common.logging_config import get_logger
from common.types import BackendDescriptor
from controller.database import get_db_connection

logger = get_logger(__name__)


def _row_to_descriptor(row) -> BackendDescriptor:
    return BackendDescriptor(
        backend_id=row["backend_id"],
        name=row["name"],
        kind=row["kind"],
        connection_info=row["connection_info"],
        is_active=bool(row["is_active"]),
    )


class BackendRepository:
    @staticmethod
    def save(descriptor: BackendDescriptor) -> BackendDescriptor:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO backends (backend_id, name, kind, connection_info, is_active)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    descriptor.backend_id,
                    descriptor.name,
                    descriptor.kind,
                    descriptor.connection_info,
                    int(descriptor.is_active),
                )
            )
            conn.commit()
        return descriptor

    @staticmethod
    def get_by_id(backend_id: str) -> Optional[BackendDescriptor]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT backend_id, name, kind, connection_info, is_active FROM backends WHERE backend_id = ?",
                (backend_id,)
            )
            row = cursor.fetchone()
            return _row_to_descriptor(row) if row else None

    @staticmethod
    def list_all() -> List[BackendDescriptor]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT backend_id, name, kind, connection_info, is_active FROM backends ORDER BY name"
            )
            return [_row_to_descriptor(row) for row in cursor.fetchall()]

    @staticmethod
    def set_active(backend_id: str, is_active: bool) -> bool:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE backends SET is_active = ? WHERE backend_id = ?",
                (int(is_active), backend_id)
            )
            conn.commit()
            return cursor.rowcount > 0
