"""Shared fixtures for the OpenStack machine driver tests."""

import pytest

from mcm_provider_openstack.common.structures import MachineProviderConfig, Timeouts
from mcm_provider_openstack.executor import Executor, StatusPoller
from mcm_provider_openstack.testing.fakes import FakeClock, FakeCloud

REGION = "RegionOne"
CLUSTER_TAG = "kubernetes.io-cluster-shoot--dev"
ROLE_TAG = "kubernetes.io-role-node"
TAGS = {CLUSTER_TAG: "1", ROLE_TAG: "1"}


@pytest.fixture()
def cloud():
    cloud = FakeCloud(region=REGION)
    cloud.add_image("ubuntu-22.04", image_id="image-ubuntu")
    cloud.add_flavor("m1.large", flavor_id="flavor-large")
    cloud.add_network("shoot--dev", network_id="net-shoot")
    cloud.add_network("storage", network_id="net-storage")
    cloud.add_security_group("shoot--dev-nodes", group_id="sg-nodes")
    cloud.add_subnet("subnet-a", network_id="net-shoot", cidr="10.250.0.0/19")
    cloud.add_subnet("subnet-b", network_id="net-shoot", cidr="10.250.32.0/19")
    return cloud


@pytest.fixture()
def provider_spec():
    """Provider spec attaching the server to named networks."""
    return {
        "region": REGION,
        "availabilityZone": "nova",
        "imageName": "ubuntu-22.04",
        "flavorName": "m1.large",
        "securityGroups": ["shoot--dev-nodes"],
        "tags": dict(TAGS),
        "networks": [{"name": "shoot--dev", "podNetwork": True}],
    }


@pytest.fixture()
def managed_network_spec(provider_spec):
    """Provider spec with a driver managed port in two subnets."""
    spec = dict(provider_spec)
    del spec["networks"]
    spec["networkID"] = "net-shoot"
    spec["subnetIDs"] = ["subnet-b", "subnet-a"]
    spec["podNetworkCidr"] = "100.96.0.0/11"
    return spec


@pytest.fixture()
def typed_volume_spec(provider_spec):
    """Provider spec booting from a pre-created typed volume."""
    spec = dict(provider_spec)
    spec["rootDiskSize"] = 50
    spec["volumeType"] = "ssd"
    return spec


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def timeouts():
    return Timeouts(server_create=60, server_delete=30, volume=60, poll_interval=5)


@pytest.fixture()
def make_executor(cloud, clock, timeouts):
    """Build an executor on the fake cloud from a raw provider spec."""

    def _make(spec):
        config = MachineProviderConfig.model_validate(spec)
        poller = StatusPoller(interval=timeouts.poll_interval, clock=clock, sleep=clock.sleep)
        return Executor.from_factory(cloud, config, timeouts=timeouts, poller=poller)

    return _make
