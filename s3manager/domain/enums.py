"""Domain enumerations for s3manager.

Enums represent fixed sets of domain values: the backend kind a storage
configuration targets, the stage a transfer failed in, and the states of
a multipart upload session.
"""

from enum import Enum

_BACKEND_KIND_ALIASES = {
    "aws": "cloud",
    "s3": "cloud",
    "minio": "self_hosted",
    "self-hosted": "self_hosted",
}


class BackendKind(str, Enum):
    """Kind of S3-compatible backend a configuration binds to.

    Carries the addressing policy so callers never branch on the raw value:
    self-hosted backends are addressed path-style at an explicit endpoint,
    cloud backends virtual-hosted by region.
    """

    CLOUD = "cloud"
    SELF_HOSTED = "self_hosted"

    @classmethod
    def _missing_(cls, value: object) -> "BackendKind | None":
        if isinstance(value, str):
            normalized = value.strip().lower()
            alias = _BACKEND_KIND_ALIASES.get(normalized, normalized)
            for member in cls:
                if member.value == alias:
                    return member
        return None

    @property
    def addressing_style(self) -> str:
        """botocore addressing style for this backend kind."""
        return "path" if self is BackendKind.SELF_HOSTED else "virtual"

    @property
    def requires_endpoint(self) -> bool:
        """Whether an explicit endpoint URL is mandatory."""
        return self is BackendKind.SELF_HOSTED

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid backend kind values as strings."""
        return [kind.value for kind in cls]


class TransferStage(str, Enum):
    """Stage of a backend operation; tags BackendOperationFailure."""

    INITIATE = "initiate"
    READ_PART = "read-part"
    UPLOAD_PART = "upload-part"
    COMPLETE = "complete"
    ABORT = "abort"
    PUT = "put"
    GET = "get"
    DELETE = "delete"
    LIST = "list"
    CONNECT = "connect"


class MultipartState(str, Enum):
    """Lifecycle of one multipart upload session.

    Idle -> Initiated -> (PartUploading -> PartUploaded)* -> Completing ->
    Completed, with any non-terminal state able to move to Aborting ->
    Aborted. Completed and Aborted are terminal.
    """

    IDLE = "idle"
    INITIATED = "initiated"
    PART_UPLOADING = "part_uploading"
    PART_UPLOADED = "part_uploaded"
    COMPLETING = "completing"
    COMPLETED = "completed"
    ABORTING = "aborting"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (MultipartState.COMPLETED, MultipartState.ABORTED)
