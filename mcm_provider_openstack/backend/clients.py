"""Capability interfaces over the cloud platform.

The executor talks to the cloud through three independent clients: compute,
network and block storage. Each one can be replaced on its own, which keeps
the orchestration logic testable without a real cloud.

Every ``*_id_from_name`` method raises
:class:`~mcm_provider_openstack.backend.exceptions.NotFoundError` when nothing
matches and :class:`~mcm_provider_openstack.backend.exceptions.MultipleFoundError`
when more than one resource carries the name. Implementations must never pick
the first match.
"""

import abc
from typing import Optional

from mcm_provider_openstack.backend.structures import (
    AddressPair,
    Instance,
    Port,
    PortCreateRequest,
    ServerCreateRequest,
    Subnet,
    Volume,
    VolumeCreateRequest,
)


class ComputeClient(abc.ABC):
    """Compute service (servers, images and flavors)."""

    @abc.abstractmethod
    def get_server(self, server_id: str) -> Instance:
        """Get the server by ID."""

    @abc.abstractmethod
    def list_servers(self, name: Optional[str] = None) -> list[Instance]:
        """List servers, optionally filtered by name."""

    @abc.abstractmethod
    def create_server(self, request: ServerCreateRequest) -> Instance:
        """Create a server booting from an ephemeral disk."""

    @abc.abstractmethod
    def boot_from_volume(self, request: ServerCreateRequest) -> Instance:
        """Create a server booting from the request's block devices."""

    @abc.abstractmethod
    def delete_server(self, server_id: str) -> None:
        """Delete the server; a missing server is not an error."""

    @abc.abstractmethod
    def image_id_from_name(self, name: str) -> str:
        """Resolve an image name to its ID."""

    @abc.abstractmethod
    def flavor_id_from_name(self, name: str) -> str:
        """Resolve a flavor name to its ID."""


class NetworkClient(abc.ABC):
    """Network service (ports, networks, subnets and security groups)."""

    @abc.abstractmethod
    def get_port(self, port_id: str) -> Port:
        """Get the port by ID."""

    @abc.abstractmethod
    def create_port(self, request: PortCreateRequest) -> Port:
        """Create a port."""

    @abc.abstractmethod
    def delete_port(self, port_id: str) -> None:
        """Delete the port; a missing port is not an error."""

    @abc.abstractmethod
    def update_port(self, port_id: str, allowed_address_pairs: list[AddressPair]) -> Port:
        """Replace the allowed address pairs of the port."""

    @abc.abstractmethod
    def list_ports(self, device_id: Optional[str] = None) -> list[Port]:
        """List ports, optionally only those attached to a device."""

    @abc.abstractmethod
    def network_id_from_name(self, name: str) -> str:
        """Resolve a network name to its ID."""

    @abc.abstractmethod
    def security_group_id_from_name(self, name: str) -> str:
        """Resolve a security group name to its ID."""

    @abc.abstractmethod
    def port_id_from_name(self, name: str) -> str:
        """Resolve a port name to its ID."""

    @abc.abstractmethod
    def get_subnet(self, subnet_id: str) -> Subnet:
        """Get the subnet by ID."""


class StorageClient(abc.ABC):
    """Block storage service."""

    @abc.abstractmethod
    def get_volume(self, volume_id: str) -> Volume:
        """Get the volume by ID."""

    @abc.abstractmethod
    def create_volume(self, request: VolumeCreateRequest) -> Volume:
        """Create a volume."""

    @abc.abstractmethod
    def delete_volume(self, volume_id: str, cascade: bool = True) -> None:
        """Delete the volume; a missing volume is not an error."""

    @abc.abstractmethod
    def list_volumes(self, name: Optional[str] = None) -> list[Volume]:
        """List volumes, optionally filtered by name."""

    @abc.abstractmethod
    def update_volume(
        self, volume_id: str, name: Optional[str] = None, description: Optional[str] = None
    ) -> Volume:
        """Update the volume's name or description."""

    @abc.abstractmethod
    def volume_id_from_name(self, name: str) -> str:
        """Resolve a volume name to its ID."""
