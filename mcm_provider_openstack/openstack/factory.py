"""Construction of region-scoped cloud clients."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import openstack
from keystoneauth1 import exceptions as ksa_exceptions
from openstack import exceptions as sdk_exceptions
from openstack.connection import Connection

from mcm_provider_openstack import MCM_PROVIDER_OPENSTACK_VERSION
from mcm_provider_openstack.backend.exceptions import ConfigurationError
from mcm_provider_openstack.backend.metrics import MetricsRecorder
from mcm_provider_openstack.common.structures import CloudCredentials
from mcm_provider_openstack.openstack.compute import NovaCompute
from mcm_provider_openstack.openstack.errors import map_openstack_error
from mcm_provider_openstack.openstack.network import NeutronNetwork
from mcm_provider_openstack.openstack.storage import CinderStorage

logger = logging.getLogger(__name__)

APP_NAME = "mcm-provider-openstack"


class ClientFactory:
    """Builds compute, network and storage clients sharing one connection per region."""

    def __init__(
        self, credentials: CloudCredentials, recorder: Optional[MetricsRecorder] = None
    ) -> None:
        """Init the factory.

        Args:
            credentials: How to authenticate against the cloud.
            recorder: Recorder counting the requests of every client; a new one
                is created when not given.
        """
        self.credentials = credentials
        self.recorder = recorder or MetricsRecorder()
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def connection(self, region: str) -> Connection:
        """Get or create the connection to the region."""
        with self._lock:
            if region not in self._connections:
                logger.info("Connecting to OpenStack region %s", region)
                try:
                    self._connections[region] = openstack.connect(
                        region_name=region,
                        app_name=APP_NAME,
                        app_version=MCM_PROVIDER_OPENSTACK_VERSION,
                        **self.credentials.connection_kwargs(),
                    )
                except sdk_exceptions.ConfigException as e:
                    msg = f"Invalid cloud configuration for region {region!r}: {e}"
                    raise ConfigurationError(msg) from e
                except (sdk_exceptions.SDKException, ksa_exceptions.ClientException) as e:
                    raise map_openstack_error(e) from e
            return self._connections[region]

    def compute(self, region: str) -> NovaCompute:
        """Compute client for the region."""
        return NovaCompute(self.connection(region), self.recorder)

    def network(self, region: str) -> NeutronNetwork:
        """Network client for the region."""
        return NeutronNetwork(self.connection(region), self.recorder)

    def storage(self, region: str) -> CinderStorage:
        """Block storage client for the region."""
        return CinderStorage(self.connection(region), self.recorder)

    def close(self) -> None:
        """Close every open connection."""
        with self._lock:
            for connection in self._connections.values():
                connection.close()
            self._connections.clear()
