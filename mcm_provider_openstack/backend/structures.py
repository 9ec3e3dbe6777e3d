"""Common structures shared between the executor and the cloud clients."""

from dataclasses import dataclass, field
from typing import Optional

SERVER_STATUS_BUILD = "BUILD"
SERVER_STATUS_ACTIVE = "ACTIVE"
SERVER_STATUS_ERROR = "ERROR"
SERVER_STATUS_DELETED = "DELETED"

VOLUME_STATUS_CREATING = "creating"
VOLUME_STATUS_DOWNLOADING = "downloading"
VOLUME_STATUS_AVAILABLE = "available"
VOLUME_STATUS_ERROR = "error"
VOLUME_STATUS_DELETING = "deleting"
VOLUME_STATUS_DELETED = "deleted"


@dataclass
class Instance:
    """Server as reported by the compute service."""

    id: str = ""
    name: str = ""
    status: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    fault: Optional[dict] = None


@dataclass
class Volume:
    """Block storage volume."""

    id: str = ""
    name: str = ""
    status: str = ""
    size: int = 0
    volume_type: Optional[str] = None


@dataclass
class FixedIP:
    """Subnet binding of a port."""

    subnet_id: str = ""
    ip_address: Optional[str] = None


@dataclass
class AddressPair:
    """Extra address range a port may carry traffic for."""

    ip_address: str = ""
    mac_address: Optional[str] = None


@dataclass
class Port:
    """Network port."""

    id: str = ""
    name: str = ""
    network_id: str = ""
    fixed_ips: list[FixedIP] = field(default_factory=list)
    allowed_address_pairs: list[AddressPair] = field(default_factory=list)
    device_id: str = ""


@dataclass
class Subnet:
    """Network subnet."""

    id: str = ""
    name: str = ""
    network_id: str = ""
    cidr: str = ""


@dataclass
class ServerNetwork:
    """Network attachment of a server, either a bare network or a port on it."""

    uuid: str = ""
    port: Optional[str] = None


@dataclass
class BlockDevice:
    """Block device mapping entry used to boot a server from a volume."""

    source_type: str = "image"
    destination_type: str = "volume"
    uuid: str = ""
    boot_index: int = 0
    volume_size: Optional[int] = None
    delete_on_termination: bool = True


@dataclass
class ServerCreateRequest:
    """Parameters of a server creation call."""

    name: str
    flavor_ref: str
    image_ref: str
    networks: list[ServerNetwork] = field(default_factory=list)
    security_groups: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    user_data: bytes = b""
    availability_zone: str = ""
    config_drive: Optional[bool] = None
    key_name: Optional[str] = None
    scheduler_hints: dict[str, str] = field(default_factory=dict)
    block_devices: list[BlockDevice] = field(default_factory=list)


@dataclass
class PortCreateRequest:
    """Parameters of a port creation call."""

    name: str
    network_id: str
    fixed_ips: list[FixedIP] = field(default_factory=list)
    allowed_address_pairs: list[AddressPair] = field(default_factory=list)
    security_group_ids: list[str] = field(default_factory=list)


@dataclass
class VolumeCreateRequest:
    """Parameters of a volume creation call."""

    name: str
    size: int
    image_id: str = ""
    volume_type: Optional[str] = None
    availability_zone: str = ""
