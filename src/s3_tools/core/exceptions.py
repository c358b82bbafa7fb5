"""Exception hierarchy for s3-tools."""

from typing import Optional, Sequence


class S3ToolsError(Exception):
    """Base exception for all s3-tools errors."""

    pass


class ValidationError(S3ToolsError):
    """Raised when user input fails validation, before any network call."""

    pass


class ProviderError(S3ToolsError):
    """Raised when a call to the object-storage provider fails."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class EnumerationError(S3ToolsError):
    """Raised when a listing page cannot be fetched or the cursor stalls."""

    pass


class PartialDeleteError(S3ToolsError):
    """Raised on request when some keys of a bulk delete were not removed."""

    def __init__(self, message: str, failures: Sequence = ()):
        super().__init__(message)
        self.failures = list(failures)


class TransferError(S3ToolsError):
    """Raised when a streaming transfer fails at the source or the sink."""

    pass


class UploadPartError(S3ToolsError):
    """Raised when a multipart upload part fails; the upload is aborted."""

    def __init__(self, message: str, part_index: Optional[int] = None):
        super().__init__(message)
        self.part_index = part_index
