"""Project-wide constants (chunk size classes, limits, IO sizes)."""

KIB: int = 1024
MIB: int = 1024 * KIB
GIB: int = 1024 * MIB

# Chunk size step function: (inclusive upper bound of file size, chunk size).
# Files above the last bound use LARGE_FILE_CHUNK_SIZE_BYTES.
CHUNK_SIZE_TABLE = (
    (1 * MIB, 64 * KIB),
    (100 * MIB - 1, 1 * MIB),
    (1 * GIB - 1, 10 * MIB),
)
LARGE_FILE_CHUNK_SIZE_BYTES: int = 100 * MIB

MAX_CHUNK_COUNT: int = 10_000

STREAM_PIECE_SIZE_BYTES: int = 64 * KIB  # bounded read increment

DEFAULT_MAX_INFLIGHT_BYTES: int = 1 * GIB
DEFAULT_STORE_TIMEOUT_SECONDS: float = 30.0

MIN_REPLICATION_BACKENDS: int = 2
MAX_REPLICATION_TARGETS: int = 5
REPLICATION_THROUGHPUT_BYTES_PER_SECOND: int = 10 * MIB

BACKEND_OVERLOAD_THRESHOLD: int = 100

CHUNK_FILE_SUFFIX: str = ".chunk"
OBJECT_STORE_KEY_PREFIX: str = "chunks"

BACKEND_KIND_FILESYSTEM: str = "FileSystem"
BACKEND_KIND_OBJECT_STORE: str = "ObjectStore"

# Replication target preference, lower-latency kinds first.
BACKEND_KIND_PREFERENCE = {
    BACKEND_KIND_FILESYSTEM: 1,
    "NetworkStorage": 2,
    "Database": 3,
    BACKEND_KIND_OBJECT_STORE: 4,
    "CloudStorage": 4,
}

MIN_FILE_SIZE_BYTES: int = 1
MAX_FILE_SIZE_BYTES: int = 10 * GIB

MIN_FILE_NAME_LENGTH: int = 1
MAX_FILE_NAME_LENGTH: int = 255

FORBIDDEN_FILE_NAME_CHARACTERS = frozenset('<>:"|?*\\/')

RESERVED_FILE_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)

FORBIDDEN_FILE_EXTENSIONS = frozenset(
    [".exe", ".bat", ".cmd", ".com", ".pif", ".scr", ".vbs", ".js", ".jar", ".app"]
)

# Extensions outside this set are accepted with a warning.
KNOWN_FILE_EXTENSIONS = frozenset([
    ".txt", ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".svg",
    ".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm",
    ".mp3", ".wav", ".flac", ".aac", ".ogg",
    ".zip", ".rar", ".7z", ".tar", ".gz",
])

DEFAULT_PROGRESS_RETENTION_SECONDS: float = 3600.0
