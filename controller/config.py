"""Configuration settings for the chunkvault server."""

import os

from common.constants import (
    BACKEND_OVERLOAD_THRESHOLD,
    DEFAULT_MAX_INFLIGHT_BYTES,
    DEFAULT_PROGRESS_RETENTION_SECONDS,
    DEFAULT_STORE_TIMEOUT_SECONDS,
    MAX_CHUNK_COUNT,
    MAX_FILE_SIZE_BYTES,
    MAX_REPLICATION_TARGETS,
    MIN_REPLICATION_BACKENDS,
    REPLICATION_THROUGHPUT_BYTES_PER_SECOND,
    STREAM_PIECE_SIZE_BYTES,
)


DATABASE_PATH = os.environ.get("CHUNKVAULT_DATABASE_PATH", "/app/data/metadata.db")

STORAGE_ROOT = os.environ.get("CHUNKVAULT_STORAGE_ROOT", "/app/data/chunks")

SERVER_HOST = os.environ.get("CHUNKVAULT_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("CHUNKVAULT_PORT", "8000"))

MAX_CHUNK_COUNT_LIMIT = int(os.environ.get("CHUNKVAULT_MAX_CHUNK_COUNT", str(MAX_CHUNK_COUNT)))

# Unset means one worker per CPU.
PARALLELISM = int(os.environ["CHUNKVAULT_PARALLELISM"]) if os.environ.get("CHUNKVAULT_PARALLELISM") else None

READ_BUFFER_BYTES = int(os.environ.get("CHUNKVAULT_READ_BUFFER_BYTES", str(STREAM_PIECE_SIZE_BYTES)))

STORE_TIMEOUT_SECONDS = float(
    os.environ.get("CHUNKVAULT_STORE_TIMEOUT_SECONDS", str(DEFAULT_STORE_TIMEOUT_SECONDS))
)

MAX_INFLIGHT_BYTES = int(os.environ.get("CHUNKVAULT_MAX_INFLIGHT_BYTES", str(DEFAULT_MAX_INFLIGHT_BYTES)))

MIN_REPLICATION_BACKENDS_LIMIT = int(
    os.environ.get("CHUNKVAULT_MIN_REPLICATION_BACKENDS", str(MIN_REPLICATION_BACKENDS))
)

MAX_REPLICATION_TARGETS_LIMIT = int(
    os.environ.get("CHUNKVAULT_MAX_REPLICATION_TARGETS", str(MAX_REPLICATION_TARGETS))
)

REPLICATION_THROUGHPUT_BYTES = int(
    os.environ.get("CHUNKVAULT_REPLICATION_THROUGHPUT_BYTES", str(REPLICATION_THROUGHPUT_BYTES_PER_SECOND))
)

MAX_FILE_SIZE = int(os.environ.get("CHUNKVAULT_MAX_FILE_SIZE_BYTES", str(MAX_FILE_SIZE_BYTES)))

BACKEND_OVERLOAD_LIMIT = int(
    os.environ.get("CHUNKVAULT_BACKEND_OVERLOAD_THRESHOLD", str(BACKEND_OVERLOAD_THRESHOLD))
)

PROGRESS_RETENTION_SECONDS = float(
    os.environ.get("CHUNKVAULT_PROGRESS_RETENTION_SECONDS", str(DEFAULT_PROGRESS_RETENTION_SECONDS))
)
