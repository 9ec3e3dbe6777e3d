"""Block storage client backed by openstacksdk (cinder)."""

from __future__ import annotations

from typing import Any, Optional

from openstack.connection import Connection

from mcm_provider_openstack.backend.clients import StorageClient
from mcm_provider_openstack.backend.metrics import MetricsRecorder
from mcm_provider_openstack.backend.structures import Volume, VolumeCreateRequest
from mcm_provider_openstack.openstack.errors import openstack_error_handler, single_id


def to_volume(volume: Any) -> Volume:  # noqa: ANN401
    """Convert an openstacksdk volume to a volume."""
    return Volume(
        id=volume.id,
        name=volume.name or "",
        status=volume.status or "",
        size=volume.size or 0,
        volume_type=volume.volume_type,
    )


class CinderStorage(StorageClient):
    """Block storage client for one region."""

    def __init__(self, connection: Connection, recorder: MetricsRecorder) -> None:
        """Init client with a region-scoped connection."""
        self.connection = connection
        self.recorder = recorder

    @openstack_error_handler("cinder", count_not_found=False)
    def get_volume(self, volume_id: str) -> Volume:
        """Get the volume by ID."""
        return to_volume(self.connection.block_storage.get_volume(volume_id))

    @openstack_error_handler("cinder")
    def create_volume(self, request: VolumeCreateRequest) -> Volume:
        """Create a volume."""
        attrs: dict[str, Any] = {"name": request.name, "size": request.size}
        if request.image_id:
            attrs["image_id"] = request.image_id
        if request.volume_type:
            attrs["volume_type"] = request.volume_type
        if request.availability_zone:
            attrs["availability_zone"] = request.availability_zone
        return to_volume(self.connection.block_storage.create_volume(**attrs))

    @openstack_error_handler("cinder", count_not_found=False)
    def delete_volume(self, volume_id: str, cascade: bool = True) -> None:
        """Delete the volume, and its snapshots when ``cascade`` is set."""
        self.connection.block_storage.delete_volume(
            volume_id, ignore_missing=True, cascade=cascade
        )

    @openstack_error_handler("cinder")
    def list_volumes(self, name: Optional[str] = None) -> list[Volume]:
        """List volumes, optionally filtered by name."""
        query = {"name": name} if name else {}
        return [to_volume(volume) for volume in self.connection.block_storage.volumes(**query)]

    @openstack_error_handler("cinder", count_not_found=False)
    def update_volume(
        self, volume_id: str, name: Optional[str] = None, description: Optional[str] = None
    ) -> Volume:
        """Update the volume's name or description."""
        attrs = {}
        if name is not None:
            attrs["name"] = name
        if description is not None:
            attrs["description"] = description
        return to_volume(self.connection.block_storage.update_volume(volume_id, **attrs))

    @openstack_error_handler("cinder")
    def volume_id_from_name(self, name: str) -> str:
        """Resolve a volume name to its ID."""
        return single_id("volume", name, self.connection.block_storage.volumes(name=name))
