"""Domain exceptions for s3manager.

Defines domain-level exceptions that represent business rule violations
and backend failures. These exceptions are independent of HTTP; the
presentation layer maps error_code to a status in exception handlers.
Messages never carry secret access keys.
"""

from typing import Any


class S3ManagerException(Exception):
    """Base exception for all s3manager errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. config_id, stage).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the HTTP exception handler."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(S3ManagerException):
    """Raised when input validation fails (e.g. missing bucket name)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(S3ManagerException):
    """Raised when authentication fails (missing, invalid or expired token)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class ForbiddenError(S3ManagerException):
    """Raised when the caller is neither the owner nor an admin."""

    def __init__(
        self,
        resource: str | None = None,
        action: str | None = None,
        message: str = "Forbidden",
    ) -> None:
        """Initialize with optional resource and action.

        Args:
            resource: Optional resource type (e.g. 'storage_config').
            action: Optional action that was attempted (e.g. 'read').
            message: Human-readable message; replaced when resource/action given.
        """
        if resource and action:
            message = f"Forbidden: {action} on {resource}"
        details: dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, "FORBIDDEN", details)


class ConfigNotFoundError(S3ManagerException):
    """Raised when a storage configuration id does not exist."""

    def __init__(self, config_id: str) -> None:
        super().__init__(
            f"Configuration not found: {config_id}",
            "CONFIG_NOT_FOUND",
            {"config_id": config_id},
        )


class NoConfigurationError(S3ManagerException):
    """Raised when an owner has no storage configuration at all."""

    def __init__(self, owner_id: str) -> None:
        super().__init__(
            "No storage configuration found; create one first",
            "NO_CONFIGURATION",
            {"owner_id": owner_id},
        )


class LastConfigError(S3ManagerException):
    """Raised when deleting an owner's only remaining configuration."""

    def __init__(self, config_id: str) -> None:
        super().__init__(
            "Cannot delete the last remaining storage configuration",
            "LAST_CONFIG",
            {"config_id": config_id},
        )


class ClientCreationFailure(S3ManagerException):
    """Raised when a configuration cannot be turned into a backend client."""

    def __init__(self, reason: str, field: str | None = None) -> None:
        """Initialize with the reason the client could not be built.

        Args:
            reason: What is malformed (never includes credential values).
            field: Optional configuration field at fault.
        """
        details = {"field": field} if field else {}
        super().__init__(
            f"Failed to create storage client: {reason}",
            "CLIENT_CREATION_FAILED",
            details,
        )


class BackendOperationFailure(S3ManagerException):
    """Raised when a call to the storage backend fails.

    Tagged with the stage it failed in so callers and audit consumers can
    tell an initiate failure from a part failure.
    """

    def __init__(
        self,
        stage: str,
        reason: str,
        *,
        key: str | None = None,
        part_number: int | None = None,
        error_code: str = "BACKEND_OPERATION_FAILED",
    ) -> None:
        """Initialize with stage, reason and optional key/part.

        Args:
            stage: TransferStage value (e.g. 'upload-part').
            reason: Backend or read error message.
            key: Object key the operation targeted (owner-relative).
            part_number: Part being processed when the failure occurred.
            error_code: Override for subclasses.
        """
        self.stage = str(getattr(stage, "value", stage))
        self.part_number = part_number
        self.key = key
        details: dict[str, Any] = {"stage": self.stage}
        if key is not None:
            details["key"] = key
        if part_number is not None:
            details["part_number"] = part_number
        super().__init__(
            f"Storage operation failed at {self.stage}: {reason}",
            error_code,
            details,
        )


class ObjectNotFoundError(BackendOperationFailure):
    """Raised when the requested object does not exist in the backend."""

    def __init__(self, key: str, stage: str = "get") -> None:
        super().__init__(
            stage,
            f"object not found: {key}",
            key=key,
            error_code="OBJECT_NOT_FOUND",
        )


class ProvisioningError(S3ManagerException):
    """Raised when auto-provisioning a self-hosted backend account fails."""

    def __init__(self, step: str, reason: str) -> None:
        super().__init__(
            f"Provisioning failed at {step}: {reason}",
            "PROVISIONING_FAILED",
            {"step": step},
        )


class CredentialException(S3ManagerException):
    """Raised when a stored secret cannot be decrypted (key rotated or data corrupted)."""

    def __init__(self, message: str = "Stored credentials could not be decrypted") -> None:
        super().__init__(message, "CREDENTIAL_ERROR")
