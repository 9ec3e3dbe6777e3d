"""Network client backed by openstacksdk (neutron)."""

from __future__ import annotations

from typing import Any, Optional

from openstack.connection import Connection

from mcm_provider_openstack.backend.clients import NetworkClient
from mcm_provider_openstack.backend.metrics import MetricsRecorder
from mcm_provider_openstack.backend.structures import (
    AddressPair,
    FixedIP,
    Port,
    PortCreateRequest,
    Subnet,
)
from mcm_provider_openstack.openstack.errors import openstack_error_handler, single_id


def to_port(port: Any) -> Port:  # noqa: ANN401
    """Convert an openstacksdk port to a port."""
    return Port(
        id=port.id,
        name=port.name or "",
        network_id=port.network_id or "",
        fixed_ips=[
            FixedIP(subnet_id=fixed_ip.get("subnet_id", ""), ip_address=fixed_ip.get("ip_address"))
            for fixed_ip in port.fixed_ips or []
        ],
        allowed_address_pairs=[
            AddressPair(ip_address=pair.get("ip_address", ""), mac_address=pair.get("mac_address"))
            for pair in port.allowed_address_pairs or []
        ],
        device_id=port.device_id or "",
    )


def _address_pairs(pairs: list[AddressPair]) -> list[dict[str, str]]:
    result = []
    for pair in pairs:
        entry = {"ip_address": pair.ip_address}
        if pair.mac_address:
            entry["mac_address"] = pair.mac_address
        result.append(entry)
    return result


class NeutronNetwork(NetworkClient):
    """Network client for one region."""

    def __init__(self, connection: Connection, recorder: MetricsRecorder) -> None:
        """Init client with a region-scoped connection."""
        self.connection = connection
        self.recorder = recorder

    @openstack_error_handler("neutron", count_not_found=False)
    def get_port(self, port_id: str) -> Port:
        """Get the port by ID."""
        return to_port(self.connection.network.get_port(port_id))

    @openstack_error_handler("neutron")
    def create_port(self, request: PortCreateRequest) -> Port:
        """Create a port."""
        port = self.connection.network.create_port(
            name=request.name,
            network_id=request.network_id,
            fixed_ips=[{"subnet_id": fixed_ip.subnet_id} for fixed_ip in request.fixed_ips],
            allowed_address_pairs=_address_pairs(request.allowed_address_pairs),
            security_group_ids=list(request.security_group_ids),
        )
        return to_port(port)

    @openstack_error_handler("neutron", count_not_found=False)
    def delete_port(self, port_id: str) -> None:
        """Delete the port; a missing port is not an error."""
        self.connection.network.delete_port(port_id, ignore_missing=True)

    @openstack_error_handler("neutron")
    def update_port(self, port_id: str, allowed_address_pairs: list[AddressPair]) -> Port:
        """Replace the allowed address pairs of the port."""
        port = self.connection.network.update_port(
            port_id, allowed_address_pairs=_address_pairs(allowed_address_pairs)
        )
        return to_port(port)

    @openstack_error_handler("neutron")
    def list_ports(self, device_id: Optional[str] = None) -> list[Port]:
        """List ports, optionally only those attached to a device."""
        query = {"device_id": device_id} if device_id else {}
        return [to_port(port) for port in self.connection.network.ports(**query)]

    @openstack_error_handler("neutron")
    def network_id_from_name(self, name: str) -> str:
        """Resolve a network name to its ID."""
        return single_id("network", name, self.connection.network.networks(name=name))

    @openstack_error_handler("neutron")
    def security_group_id_from_name(self, name: str) -> str:
        """Resolve a security group name to its ID."""
        return single_id(
            "security group", name, self.connection.network.security_groups(name=name)
        )

    @openstack_error_handler("neutron")
    def port_id_from_name(self, name: str) -> str:
        """Resolve a port name to its ID."""
        return single_id("port", name, self.connection.network.ports(name=name))

    @openstack_error_handler("neutron", count_not_found=False)
    def get_subnet(self, subnet_id: str) -> Subnet:
        """Get the subnet by ID."""
        subnet = self.connection.network.get_subnet(subnet_id)
        return Subnet(
            id=subnet.id,
            name=subnet.name or "",
            network_id=subnet.network_id or "",
            cidr=subnet.cidr or "",
        )
