"""Custom exception classes for the chunkvault server."""


class DFSException(Exception):
    """
    Base exception class for all server-level errors.
    """
    pass


class FileNotFoundError(DFSException):
    """
    Raised when a requested file does not exist.
    """
    pass


class FileNotReadyError(DFSException):
    """
    Raised when a file is requested before all of its chunks are stored.
    """
    pass


class ChecksumMismatchError(DFSException):
    """
    Raised when chunk or whole-file checksum verification fails on retrieval.
    """
    pass


class BackendNotFoundError(DFSException):
    """
    Raised when a backend id is not registered.
    """
    pass


class InvalidBackendError(DFSException):
    """
    Raised when a backend descriptor cannot be turned into a working backend.
    """
    pass


class BackendUnavailableError(DFSException):
    """
    Raised when a backend fails while serving a chunk during retrieval.
    """
    pass
