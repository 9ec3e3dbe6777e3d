"""Driver contract exposed to the machine controller.

The driver decodes the raw provider spec of every call, runs the matching
executor operation and classifies failures into error codes.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from mcm_provider_openstack.backend import logger
from mcm_provider_openstack.backend.clients import ComputeClient, NetworkClient, StorageClient
from mcm_provider_openstack.backend.exceptions import (
    BackendError,
    ConfigurationError,
    MultipleFoundError,
    NotFoundError,
    PermissionDeniedError,
    ProviderIDError,
    UnauthenticatedError,
)
from mcm_provider_openstack.common.structures import MachineProviderConfig, Timeouts
from mcm_provider_openstack.executor import Executor, StatusPoller


class ClientProvider(Protocol):
    """Anything able to build region-scoped cloud clients."""

    def compute(self, region: str) -> ComputeClient:
        """Compute client for the region."""

    def network(self, region: str) -> NetworkClient:
        """Network client for the region."""

    def storage(self, region: str) -> StorageClient:
        """Block storage client for the region."""


class ErrorCode(Enum):
    """Error classes reported to the machine controller."""

    NOT_FOUND = "NotFound"
    OUT_OF_RANGE = "OutOfRange"
    UNAUTHENTICATED = "Unauthenticated"
    PERMISSION_DENIED = "PermissionDenied"
    INVALID_ARGUMENT = "InvalidArgument"
    INTERNAL = "Internal"


class DriverError(Exception):
    """Failed driver call with its error code."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        """Initialize exception with the error code and message."""
        super().__init__(f"{code.value}: {message}")
        self.code = code
        self.message = message


def map_error_to_code(error: Exception) -> ErrorCode:
    """Classify an error raised by the executor.

    Timeouts and unexpected statuses are platform faults and classify as
    internal.
    """
    if isinstance(error, (ConfigurationError, ProviderIDError)):
        return ErrorCode.INVALID_ARGUMENT
    if isinstance(error, NotFoundError):
        return ErrorCode.NOT_FOUND
    if isinstance(error, MultipleFoundError):
        return ErrorCode.OUT_OF_RANGE
    if isinstance(error, UnauthenticatedError):
        return ErrorCode.UNAUTHENTICATED
    if isinstance(error, PermissionDeniedError):
        return ErrorCode.PERMISSION_DENIED
    return ErrorCode.INTERNAL


def decode_provider_spec(provider_spec: dict[str, Any]) -> MachineProviderConfig:
    """Validate a raw provider spec."""
    try:
        return MachineProviderConfig.model_validate(provider_spec)
    except ValidationError as e:
        raise DriverError(
            ErrorCode.INVALID_ARGUMENT, f"failed to decode provider spec: {e}"
        ) from e


class OpenStackDriver:
    """Create, delete and list machines on an OpenStack cloud."""

    def __init__(
        self,
        clients: ClientProvider,
        timeouts: Optional[Timeouts] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """Init driver.

        Args:
            clients: Builder of the region-scoped cloud clients.
            timeouts: Polling bounds used by every executor.
            cancel_event: Event aborting the status waits of running calls.
        """
        self.clients = clients
        self.timeouts = timeouts or Timeouts()
        self.cancel_event = cancel_event

    def _executor(self, config: MachineProviderConfig) -> Executor:
        poller = StatusPoller(interval=self.timeouts.poll_interval, cancel_event=self.cancel_event)
        return Executor.from_factory(self.clients, config, timeouts=self.timeouts, poller=poller)

    def create_machine(
        self, machine_name: str, user_data: bytes, provider_spec: dict[str, Any]
    ) -> str:
        """Create a machine and return its provider ID."""
        config = decode_provider_spec(provider_spec)
        logger.info("Creating machine %s", machine_name)
        try:
            executor = self._executor(config)
            provider_id = executor.create_machine(machine_name, user_data)
        except BackendError as e:
            logger.error("Failed to create machine %s: %s", machine_name, e)
            raise DriverError(map_error_to_code(e), str(e)) from e
        logger.info("Created machine %s with provider ID %s", machine_name, provider_id)
        return provider_id

    def delete_machine(
        self, machine_name: str, provider_id: Optional[str], provider_spec: dict[str, Any]
    ) -> None:
        """Delete a machine; deleting an absent machine succeeds."""
        config = decode_provider_spec(provider_spec)
        logger.info("Deleting machine %s", machine_name)
        try:
            self._executor(config).delete_machine(machine_name, provider_id)
        except BackendError as e:
            logger.error("Failed to delete machine %s: %s", machine_name, e)
            raise DriverError(map_error_to_code(e), str(e)) from e
        logger.info("Deleted machine %s", machine_name)

    def list_machines(self, provider_spec: dict[str, Any]) -> dict[str, str]:
        """Map the provider ID of every machine of the class to its name."""
        config = decode_provider_spec(provider_spec)
        try:
            machines = self._executor(config).list_machines()
        except BackendError as e:
            logger.error("Failed to list machines: %s", e)
            raise DriverError(map_error_to_code(e), str(e)) from e
        logger.info("Listed %d machines", len(machines))
        return machines
