"""Compute client backed by openstacksdk (nova and glance)."""

from __future__ import annotations

import base64
from typing import Any, Optional

from openstack.connection import Connection

from mcm_provider_openstack.backend.clients import ComputeClient
from mcm_provider_openstack.backend.metrics import MetricsRecorder
from mcm_provider_openstack.backend.structures import (
    BlockDevice,
    Instance,
    ServerCreateRequest,
)
from mcm_provider_openstack.openstack.errors import openstack_error_handler, single_id


def to_instance(server: Any) -> Instance:  # noqa: ANN401
    """Convert an openstacksdk server to an instance."""
    return Instance(
        id=server.id,
        name=server.name or "",
        status=server.status or "",
        metadata=dict(server.metadata or {}),
        fault=server.fault or None,
    )


def _block_device_mapping(device: BlockDevice) -> dict[str, Any]:
    mapping: dict[str, Any] = {
        "boot_index": device.boot_index,
        "uuid": device.uuid,
        "source_type": device.source_type,
        "destination_type": device.destination_type,
        "delete_on_termination": device.delete_on_termination,
    }
    if device.volume_size is not None:
        mapping["volume_size"] = device.volume_size
    return mapping


def server_attributes(request: ServerCreateRequest) -> dict[str, Any]:
    """Build the keyword arguments of ``compute.create_server``.

    The image reference is left out when booting from block devices, the
    image is then part of the block device mapping.
    """
    networks = []
    for network in request.networks:
        entry = {"uuid": network.uuid}
        if network.port:
            entry["port"] = network.port
        networks.append(entry)

    attrs: dict[str, Any] = {
        "name": request.name,
        "flavor_id": request.flavor_ref,
        "networks": networks,
        "metadata": dict(request.metadata),
    }
    if request.security_groups:
        attrs["security_groups"] = [{"name": name} for name in request.security_groups]
    if request.user_data:
        attrs["user_data"] = base64.b64encode(request.user_data).decode("ascii")
    if request.availability_zone:
        attrs["availability_zone"] = request.availability_zone
    if request.config_drive is not None:
        attrs["config_drive"] = request.config_drive
    if request.key_name:
        attrs["key_name"] = request.key_name
    if request.scheduler_hints:
        attrs["scheduler_hints"] = dict(request.scheduler_hints)
    if request.block_devices:
        attrs["block_device_mapping"] = [
            _block_device_mapping(device) for device in request.block_devices
        ]
    else:
        attrs["image_id"] = request.image_ref
    return attrs


class NovaCompute(ComputeClient):
    """Compute client for one region."""

    def __init__(self, connection: Connection, recorder: MetricsRecorder) -> None:
        """Init client with a region-scoped connection."""
        self.connection = connection
        self.recorder = recorder

    @openstack_error_handler("nova", count_not_found=False)
    def get_server(self, server_id: str) -> Instance:
        """Get the server by ID."""
        return to_instance(self.connection.compute.get_server(server_id))

    @openstack_error_handler("nova")
    def list_servers(self, name: Optional[str] = None) -> list[Instance]:
        """List servers, optionally filtered by name."""
        query = {"name": name} if name else {}
        return [to_instance(server) for server in self.connection.compute.servers(**query)]

    @openstack_error_handler("nova")
    def create_server(self, request: ServerCreateRequest) -> Instance:
        """Create a server booting from an ephemeral disk."""
        return to_instance(self.connection.compute.create_server(**server_attributes(request)))

    @openstack_error_handler("nova")
    def boot_from_volume(self, request: ServerCreateRequest) -> Instance:
        """Create a server booting from the request's block devices."""
        if not request.block_devices:
            msg = f"Server {request.name!r} has no block device to boot from"
            raise ValueError(msg)
        return to_instance(self.connection.compute.create_server(**server_attributes(request)))

    @openstack_error_handler("nova", count_not_found=False)
    def delete_server(self, server_id: str) -> None:
        """Delete the server; a missing server is not an error."""
        self.connection.compute.delete_server(server_id, ignore_missing=True)

    @openstack_error_handler("glance")
    def image_id_from_name(self, name: str) -> str:
        """Resolve an image name to its ID."""
        return single_id("image", name, self.connection.image.images(name=name))

    @openstack_error_handler("nova")
    def flavor_id_from_name(self, name: str) -> str:
        """Resolve a flavor name to its ID."""
        return single_id("flavor", name, self.connection.compute.flavors(details=False))
