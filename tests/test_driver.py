"""Tests for the driver contract."""

import threading

import pytest

from mcm_provider_openstack.backend.exceptions import (
    BackendError,
    ConfigurationError,
    MultipleFoundError,
    NotFoundError,
    PermissionDeniedError,
    ProviderIDError,
    StatusTimeoutError,
    UnauthenticatedError,
)
from mcm_provider_openstack.common.structures import Timeouts
from mcm_provider_openstack.driver import (
    DriverError,
    ErrorCode,
    OpenStackDriver,
    decode_provider_spec,
    map_error_to_code,
)

TAGS = {"kubernetes.io-cluster-shoot--dev": "1", "kubernetes.io-role-node": "1"}


@pytest.fixture()
def driver(cloud):
    # ACTIVE on the first poll, so no real sleep happens
    cloud.new_server_statuses = ["ACTIVE"]
    return OpenStackDriver(cloud, timeouts=Timeouts(poll_interval=0.01))


class TestMapErrorToCode:
    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (NotFoundError("x"), ErrorCode.NOT_FOUND),
            (MultipleFoundError("x"), ErrorCode.OUT_OF_RANGE),
            (UnauthenticatedError("x"), ErrorCode.UNAUTHENTICATED),
            (PermissionDeniedError("x"), ErrorCode.PERMISSION_DENIED),
            (ConfigurationError("x"), ErrorCode.INVALID_ARGUMENT),
            (ProviderIDError("x"), ErrorCode.INVALID_ARGUMENT),
            (StatusTimeoutError("x"), ErrorCode.INTERNAL),
            (BackendError("x"), ErrorCode.INTERNAL),
        ],
    )
    def test_codes(self, error, code):
        assert map_error_to_code(error) is code


class TestDecodeProviderSpec:
    def test_invalid_spec_is_invalid_argument(self, provider_spec):
        del provider_spec["flavorName"]

        with pytest.raises(DriverError) as exc_info:
            decode_provider_spec(provider_spec)

        assert exc_info.value.code is ErrorCode.INVALID_ARGUMENT
        assert "flavorName" in exc_info.value.message


class TestOpenStackDriver:
    def test_create_list_delete(self, cloud, driver, provider_spec):
        provider_id = driver.create_machine("node-1", b"#cloud-config", provider_spec)

        assert driver.list_machines(provider_spec) == {provider_id: "node-1"}

        driver.delete_machine("node-1", provider_id, provider_spec)

        assert driver.list_machines(provider_spec) == {}
        assert cloud.servers == {}

    def test_create_error_carries_code(self, cloud, driver, provider_spec):
        cloud.add_server("node-1", metadata=TAGS)
        cloud.add_server("node-1", metadata=TAGS)

        with pytest.raises(DriverError) as exc_info:
            driver.create_machine("node-1", b"", provider_spec)

        assert exc_info.value.code is ErrorCode.OUT_OF_RANGE
        assert isinstance(exc_info.value.__cause__, MultipleFoundError)

    def test_delete_with_foreign_provider_id(self, driver, provider_spec):
        with pytest.raises(DriverError) as exc_info:
            driver.delete_machine("node-1", "aws:///us-east-1/i-123", provider_spec)

        assert exc_info.value.code is ErrorCode.INVALID_ARGUMENT

    def test_list_permission_denied(self, cloud, driver, provider_spec):
        cloud.fail("list_servers", PermissionDeniedError("Policy doesn't allow"))

        with pytest.raises(DriverError) as exc_info:
            driver.list_machines(provider_spec)

        assert exc_info.value.code is ErrorCode.PERMISSION_DENIED

    def test_invalid_spec_makes_no_cloud_call(self, cloud, driver, provider_spec):
        provider_spec["rootDiskSize"] = -5

        with pytest.raises(DriverError):
            driver.create_machine("node-1", b"", provider_spec)

        assert cloud.get_operations_log() == []

    def test_cancelled_create(self, cloud, provider_spec):
        cloud.new_server_statuses = ["BUILD"]
        cancel_event = threading.Event()
        cancel_event.set()
        driver = OpenStackDriver(cloud, cancel_event=cancel_event)

        with pytest.raises(DriverError) as exc_info:
            driver.create_machine("node-1", b"", provider_spec)

        assert exc_info.value.code is ErrorCode.INTERNAL
        assert "cancelled" in exc_info.value.message
