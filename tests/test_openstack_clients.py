"""Tests for the openstacksdk backed clients."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from keystoneauth1 import exceptions as ksa_exceptions
from openstack import exceptions as sdk_exceptions

from mcm_provider_openstack.backend.exceptions import (
    BackendError,
    MultipleFoundError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from mcm_provider_openstack.backend.metrics import MetricsRecorder
from mcm_provider_openstack.backend.structures import (
    AddressPair,
    BlockDevice,
    FixedIP,
    PortCreateRequest,
    ServerCreateRequest,
    ServerNetwork,
    VolumeCreateRequest,
)
from mcm_provider_openstack.openstack import CinderStorage, NeutronNetwork, NovaCompute
from mcm_provider_openstack.openstack.errors import map_openstack_error


def make_server(**overrides):
    attrs = {
        "id": "server-1",
        "name": "node-1",
        "status": "ACTIVE",
        "metadata": {"kubernetes.io-role-node": "1"},
        "fault": None,
    }
    attrs.update(overrides)
    return SimpleNamespace(**attrs)


@pytest.fixture()
def connection():
    return MagicMock()


@pytest.fixture()
def recorder():
    return MetricsRecorder()


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (sdk_exceptions.ResourceNotFound("missing"), NotFoundError),
            (sdk_exceptions.DuplicateResource("twice"), MultipleFoundError),
            (sdk_exceptions.HttpException("denied", http_status=401), UnauthenticatedError),
            (sdk_exceptions.HttpException("denied", http_status=403), PermissionDeniedError),
            (sdk_exceptions.HttpException("gone", http_status=404), NotFoundError),
            (ksa_exceptions.Unauthorized(), UnauthenticatedError),
            (ksa_exceptions.Forbidden(), PermissionDeniedError),
        ],
    )
    def test_classified_errors(self, error, expected):
        assert isinstance(map_openstack_error(error), expected)

    def test_other_errors_are_generic(self):
        mapped = map_openstack_error(sdk_exceptions.SDKException("boom"))

        assert type(mapped) is BackendError
        assert "boom" in str(mapped)


class TestNovaCompute:
    def test_get_server(self, connection, recorder):
        connection.compute.get_server.return_value = make_server(
            fault={"message": "No valid host"}
        )
        compute = NovaCompute(connection, recorder)

        server = compute.get_server("server-1")

        assert server.id == "server-1"
        assert server.metadata == {"kubernetes.io-role-node": "1"}
        assert server.fault == {"message": "No valid host"}
        assert recorder.request_count("openstack", "nova") == 1

    def test_missing_server_is_not_counted_as_failure(self, connection, recorder):
        original = sdk_exceptions.ResourceNotFound("No Server found")
        connection.compute.get_server.side_effect = original
        compute = NovaCompute(connection, recorder)

        with pytest.raises(NotFoundError) as exc_info:
            compute.get_server("server-1")

        assert exc_info.value.__cause__ is original
        assert recorder.failure_count("openstack", "nova") == 0

    def test_forbidden_listing_counts_as_failure(self, connection, recorder):
        connection.compute.servers.side_effect = sdk_exceptions.HttpException(
            "Policy doesn't allow", http_status=403
        )
        compute = NovaCompute(connection, recorder)

        with pytest.raises(PermissionDeniedError):
            compute.list_servers()

        assert recorder.request_count("openstack", "nova") == 1
        assert recorder.failure_count("openstack", "nova") == 1

    def test_list_servers_by_name(self, connection, recorder):
        connection.compute.servers.return_value = [make_server(), make_server(id="server-2")]
        compute = NovaCompute(connection, recorder)

        servers = compute.list_servers(name="node-1")

        connection.compute.servers.assert_called_once_with(name="node-1")
        assert [server.id for server in servers] == ["server-1", "server-2"]

    def test_create_server_attributes(self, connection, recorder):
        connection.compute.create_server.return_value = make_server(status="BUILD")
        compute = NovaCompute(connection, recorder)
        request = ServerCreateRequest(
            name="node-1",
            flavor_ref="flavor-1",
            image_ref="image-1",
            networks=[ServerNetwork(uuid="net-1"), ServerNetwork(uuid="net-2", port="port-1")],
            security_groups=["nodes"],
            metadata={"kubernetes.io-role-node": "1"},
            user_data=b"hello",
            availability_zone="nova",
            key_name="ops",
            scheduler_hints={"group": "group-1"},
        )

        server = compute.create_server(request)

        assert server.status == "BUILD"
        kwargs = connection.compute.create_server.call_args.kwargs
        assert kwargs["image_id"] == "image-1"
        assert kwargs["flavor_id"] == "flavor-1"
        assert kwargs["networks"] == [{"uuid": "net-1"}, {"uuid": "net-2", "port": "port-1"}]
        assert kwargs["security_groups"] == [{"name": "nodes"}]
        assert kwargs["user_data"] == "aGVsbG8="
        assert kwargs["availability_zone"] == "nova"
        assert kwargs["key_name"] == "ops"
        assert kwargs["scheduler_hints"] == {"group": "group-1"}
        assert "block_device_mapping" not in kwargs
        assert "config_drive" not in kwargs

    def test_boot_from_volume_uses_block_device_mapping(self, connection, recorder):
        connection.compute.create_server.return_value = make_server(status="BUILD")
        compute = NovaCompute(connection, recorder)
        request = ServerCreateRequest(
            name="node-1",
            flavor_ref="flavor-1",
            image_ref="image-1",
            block_devices=[BlockDevice(source_type="image", uuid="image-1", volume_size=50)],
        )

        compute.boot_from_volume(request)

        kwargs = connection.compute.create_server.call_args.kwargs
        assert "image_id" not in kwargs
        assert kwargs["block_device_mapping"] == [
            {
                "boot_index": 0,
                "uuid": "image-1",
                "source_type": "image",
                "destination_type": "volume",
                "delete_on_termination": True,
                "volume_size": 50,
            }
        ]

    def test_boot_from_volume_requires_block_devices(self, connection, recorder):
        compute = NovaCompute(connection, recorder)
        request = ServerCreateRequest(name="node-1", flavor_ref="f", image_ref="i")

        with pytest.raises(ValueError, match="no block device"):
            compute.boot_from_volume(request)

    def test_delete_server_ignores_missing(self, connection, recorder):
        NovaCompute(connection, recorder).delete_server("server-1")

        connection.compute.delete_server.assert_called_once_with("server-1", ignore_missing=True)

    def test_flavor_id_from_name(self, connection, recorder):
        connection.compute.flavors.return_value = [
            SimpleNamespace(id="flavor-1", name="m1.large"),
            SimpleNamespace(id="flavor-2", name="m1.small"),
        ]
        compute = NovaCompute(connection, recorder)

        assert compute.flavor_id_from_name("m1.small") == "flavor-2"
        with pytest.raises(NotFoundError, match="flavor"):
            compute.flavor_id_from_name("m1.huge")

    def test_ambiguous_image_name(self, connection, recorder):
        connection.image.images.return_value = [
            SimpleNamespace(id="image-1", name="ubuntu"),
            SimpleNamespace(id="image-2", name="ubuntu"),
        ]
        compute = NovaCompute(connection, recorder)

        with pytest.raises(MultipleFoundError):
            compute.image_id_from_name("ubuntu")

        connection.image.images.assert_called_once_with(name="ubuntu")
        assert recorder.request_count("openstack", "glance") == 1


class TestNeutronNetwork:
    def test_create_port(self, connection, recorder):
        connection.network.create_port.return_value = SimpleNamespace(
            id="port-1",
            name="node-1",
            network_id="net-1",
            fixed_ips=[{"subnet_id": "subnet-a", "ip_address": "10.250.0.5"}],
            allowed_address_pairs=[{"ip_address": "100.96.0.0/11"}],
            device_id=None,
        )
        network = NeutronNetwork(connection, recorder)

        port = network.create_port(
            PortCreateRequest(
                name="node-1",
                network_id="net-1",
                fixed_ips=[FixedIP(subnet_id="subnet-a")],
                allowed_address_pairs=[AddressPair(ip_address="100.96.0.0/11")],
                security_group_ids=["sg-1"],
            )
        )

        connection.network.create_port.assert_called_once_with(
            name="node-1",
            network_id="net-1",
            fixed_ips=[{"subnet_id": "subnet-a"}],
            allowed_address_pairs=[{"ip_address": "100.96.0.0/11"}],
            security_group_ids=["sg-1"],
        )
        assert port.fixed_ips == [FixedIP(subnet_id="subnet-a", ip_address="10.250.0.5")]
        assert port.allowed_address_pairs == [AddressPair(ip_address="100.96.0.0/11")]
        assert port.device_id == ""

    def test_update_port_replaces_address_pairs(self, connection, recorder):
        connection.network.update_port.return_value = SimpleNamespace(
            id="port-1",
            name="",
            network_id="net-1",
            fixed_ips=[],
            allowed_address_pairs=[
                {"ip_address": "100.96.0.0/11", "mac_address": "fa:16:3e:00:00:01"}
            ],
            device_id="server-1",
        )
        network = NeutronNetwork(connection, recorder)

        port = network.update_port(
            "port-1", [AddressPair(ip_address="100.96.0.0/11", mac_address="fa:16:3e:00:00:01")]
        )

        connection.network.update_port.assert_called_once_with(
            "port-1",
            allowed_address_pairs=[
                {"ip_address": "100.96.0.0/11", "mac_address": "fa:16:3e:00:00:01"}
            ],
        )
        assert port.allowed_address_pairs[0].mac_address == "fa:16:3e:00:00:01"

    def test_list_ports_of_device(self, connection, recorder):
        connection.network.ports.return_value = []

        assert NeutronNetwork(connection, recorder).list_ports(device_id="server-1") == []
        connection.network.ports.assert_called_once_with(device_id="server-1")

    def test_delete_port_ignores_missing(self, connection, recorder):
        NeutronNetwork(connection, recorder).delete_port("port-1")

        connection.network.delete_port.assert_called_once_with("port-1", ignore_missing=True)

    def test_get_subnet(self, connection, recorder):
        connection.network.get_subnet.return_value = SimpleNamespace(
            id="subnet-a", name="nodes", network_id="net-1", cidr="10.250.0.0/19"
        )

        subnet = NeutronNetwork(connection, recorder).get_subnet("subnet-a")

        assert subnet.network_id == "net-1"
        assert subnet.cidr == "10.250.0.0/19"

    def test_security_group_id_from_name(self, connection, recorder):
        connection.network.security_groups.return_value = [SimpleNamespace(id="sg-1", name="nodes")]

        assert NeutronNetwork(connection, recorder).security_group_id_from_name("nodes") == "sg-1"
        assert recorder.request_count("openstack", "neutron") == 1

    def test_unauthenticated_request(self, connection, recorder):
        connection.network.networks.side_effect = ksa_exceptions.Unauthorized()

        with pytest.raises(UnauthenticatedError):
            NeutronNetwork(connection, recorder).network_id_from_name("shoot--dev")

        assert recorder.failure_count("openstack", "neutron") == 1


class TestCinderStorage:
    def test_create_volume(self, connection, recorder):
        connection.block_storage.create_volume.return_value = SimpleNamespace(
            id="volume-1", name="node-1", status="creating", size=50, volume_type="ssd"
        )
        storage = CinderStorage(connection, recorder)

        volume = storage.create_volume(
            VolumeCreateRequest(
                name="node-1",
                size=50,
                image_id="image-1",
                volume_type="ssd",
                availability_zone="nova",
            )
        )

        connection.block_storage.create_volume.assert_called_once_with(
            name="node-1", size=50, image_id="image-1", volume_type="ssd", availability_zone="nova"
        )
        assert volume.status == "creating"

    def test_delete_volume_cascades(self, connection, recorder):
        CinderStorage(connection, recorder).delete_volume("volume-1")

        connection.block_storage.delete_volume.assert_called_once_with(
            "volume-1", ignore_missing=True, cascade=True
        )

    def test_list_volumes_by_name(self, connection, recorder):
        connection.block_storage.volumes.return_value = [
            SimpleNamespace(id="volume-1", name="node-1", status=None, size=None, volume_type=None)
        ]

        volumes = CinderStorage(connection, recorder).list_volumes(name="node-1")

        connection.block_storage.volumes.assert_called_once_with(name="node-1")
        assert volumes[0].status == ""
        assert volumes[0].size == 0

    def test_update_volume(self, connection, recorder):
        connection.block_storage.update_volume.return_value = SimpleNamespace(
            id="volume-1", name="node-2", status="available", size=50, volume_type=None
        )

        volume = CinderStorage(connection, recorder).update_volume("volume-1", name="node-2")

        connection.block_storage.update_volume.assert_called_once_with("volume-1", name="node-2")
        assert volume.name == "node-2"


class TestMetricsRecorder:
    def test_snapshot(self, connection, recorder):
        connection.block_storage.get_volume.side_effect = sdk_exceptions.SDKException("boom")
        storage = CinderStorage(connection, recorder)

        with pytest.raises(BackendError):
            storage.get_volume("volume-1")
        storage.delete_volume("volume-1")

        assert recorder.snapshot() == {"openstack/cinder": {"requests": 2, "failures": 1}}
