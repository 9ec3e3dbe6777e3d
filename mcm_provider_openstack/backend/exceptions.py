"""Generic exceptions and errors for the OpenStack backend."""

from typing import Optional


class BackendError(Exception):
    """Error happened on the backend.

    Failures raised while cleaning up after this error are attached with
    :meth:`add_cleanup_error`; they are rendered after the original message
    and never replace it.
    """

    def __init__(self, message: str = "") -> None:
        """Initialize exception with message and an empty cleanup error list."""
        super().__init__(message)
        self.message = message
        self.cleanup_errors: list[Exception] = []

    def add_cleanup_error(self, error: Exception) -> None:
        """Attach an error raised by a rollback or cleanup step."""
        self.cleanup_errors.append(error)

    def __str__(self) -> str:
        """Render the original message followed by the cleanup failures."""
        if not self.cleanup_errors:
            return self.message
        cleanup = "; ".join(str(error) for error in self.cleanup_errors)
        return f"{self.message} (cleanup failed: {cleanup})"


class ConfigurationError(BackendError):
    """Machine or driver configuration is incorrect."""


class NotFoundError(BackendError):
    """The requested resource does not exist."""


class MultipleFoundError(BackendError):
    """A name resolved to more than one resource."""


class UnauthenticatedError(BackendError):
    """The cloud rejected the credentials."""


class PermissionDeniedError(BackendError):
    """The credentials are not allowed to perform the operation."""


class StatusError(BackendError):
    """A resource reached a status outside the pending and target sets."""

    def __init__(self, message: str, status: str = "", fault: Optional[object] = None) -> None:
        """Initialize exception with the observed status and fault detail.

        Args:
            message: The error message
            status: Status reported by the platform when the wait failed
            fault: Fault detail reported by the platform, if any
        """
        super().__init__(message)
        self.status = status
        self.fault = fault


class StatusTimeoutError(BackendError):
    """Waiting for a resource status exceeded its deadline or was cancelled."""


class ProviderIDError(BackendError):
    """A provider ID could not be decoded."""
