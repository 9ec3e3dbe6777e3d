"""Machine orchestration on top of the compute, network and storage clients.

The executor holds no state of its own: every call rediscovers the servers,
ports and volumes that belong to a machine by name and tags, which makes
create and delete safe to retry after any failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from mcm_provider_openstack.backend import logger
from mcm_provider_openstack.backend.clients import ComputeClient, NetworkClient, StorageClient
from mcm_provider_openstack.backend.exceptions import (
    BackendError,
    ConfigurationError,
    MultipleFoundError,
    NotFoundError,
)
from mcm_provider_openstack.backend.structures import (
    SERVER_STATUS_ACTIVE,
    SERVER_STATUS_BUILD,
    SERVER_STATUS_DELETED,
    VOLUME_STATUS_AVAILABLE,
    VOLUME_STATUS_CREATING,
    VOLUME_STATUS_DELETED,
    VOLUME_STATUS_DELETING,
    VOLUME_STATUS_DOWNLOADING,
    AddressPair,
    BlockDevice,
    FixedIP,
    Instance,
    PortCreateRequest,
    ServerCreateRequest,
    ServerNetwork,
    Volume,
    VolumeCreateRequest,
)
from mcm_provider_openstack.common.structures import MachineProviderConfig, Timeouts
from mcm_provider_openstack.executor.poller import Observation, StatusPoller
from mcm_provider_openstack.executor.provider_id import decode_provider_id, encode_provider_id
from mcm_provider_openstack.executor.tags import matches_tags, require_tag_keys

if TYPE_CHECKING:
    from mcm_provider_openstack.openstack.factory import ClientFactory


class Executor:
    """Creates, deletes and lists the servers of one machine class."""

    def __init__(
        self,
        compute: ComputeClient,
        network: NetworkClient,
        storage: StorageClient,
        config: MachineProviderConfig,
        timeouts: Optional[Timeouts] = None,
        poller: Optional[StatusPoller] = None,
    ) -> None:
        """Init executor with the cloud clients and the machine's provider config."""
        self.compute = compute
        self.network = network
        self.storage = storage
        self.config = config
        self.timeouts = timeouts or Timeouts()
        self.poller = poller or StatusPoller(interval=self.timeouts.poll_interval)

    @classmethod
    def from_factory(
        cls,
        factory: ClientFactory,
        config: MachineProviderConfig,
        timeouts: Optional[Timeouts] = None,
        poller: Optional[StatusPoller] = None,
    ) -> Executor:
        """Build an executor with clients scoped to the config's region."""
        return cls(
            compute=factory.compute(config.region),
            network=factory.network(config.region),
            storage=factory.storage(config.region),
            config=config,
            timeouts=timeouts,
            poller=poller,
        )

    def create_machine(self, machine_name: str, user_data: bytes) -> str:
        """Create the server of a machine and wait until it is ACTIVE.

        An existing server with the same name and tags is reused, and is never
        deleted by this call: a failure on the reuse path is raised as is.
        When any step fails for a server created by this call, everything
        created for the machine is deleted before the error is raised; cleanup
        failures are attached to that error.

        Returns:
            The provider ID of the server.
        """
        server: Optional[Instance]
        try:
            server = self._get_machine_by_name(machine_name)
            logger.info("Found existing server [Name=%s, ID=%s]", machine_name, server.id)
        except NotFoundError:
            server = None

        if server is not None:
            self._converge_server(server.id)
            return encode_provider_id(self.config.region, server.id)

        try:
            server_networks = self._resolve_server_networks(machine_name)
            server = self._deploy_server(machine_name, user_data, server_networks)
            logger.info("Created server [Name=%s, ID=%s]", machine_name, server.id)
            self._converge_server(server.id)
        except BackendError as err:
            self._delete_on_fail(machine_name, err)
            raise

        return encode_provider_id(self.config.region, server.id)

    def _converge_server(self, server_id: str) -> None:
        self._wait_for_server_status(
            server_id,
            pending=frozenset({SERVER_STATUS_BUILD}),
            target=frozenset({SERVER_STATUS_ACTIVE}),
            timeout=self.timeouts.server_create,
        )
        self._patch_server_ports_for_pod_network(server_id)

    def _delete_on_fail(self, machine_name: str, error: BackendError) -> None:
        logger.info(
            "Attempting to delete server [Name=%s] after unsuccessful create operation: %s",
            machine_name,
            error,
        )
        try:
            self.delete_machine(machine_name)
        except BackendError as cleanup_error:
            logger.warning(
                "Failed to clean up after unsuccessful creation of server [Name=%s]: %s",
                machine_name,
                cleanup_error,
            )
            error.add_cleanup_error(cleanup_error)

    def _resolve_server_networks(self, machine_name: str) -> list[ServerNetwork]:
        """Resolve the network attachments of a new server.

        With a network ID and subnets the driver manages a port bound to the
        subnets; a bare network ID is attached directly; otherwise every named
        network is resolved in list order.
        """
        network_id = self.config.network_id
        logger.debug("Resolving network setup for machine [Name=%s]", machine_name)

        if network_id is not None and self.config.is_user_managed_network:
            subnet_ids = self.config.effective_subnet_ids
            for subnet_id in subnet_ids:
                self.network.get_subnet(subnet_id)

            logger.info("Deploying machine [Name=%s] in subnets %s", machine_name, subnet_ids)
            port_id = self._get_or_create_port(machine_name, network_id)
            return [ServerNetwork(uuid=network_id, port=port_id)]

        if network_id is not None:
            logger.info("Deploying machine [Name=%s] in network [ID=%s]", machine_name, network_id)
            return [ServerNetwork(uuid=network_id)]

        return [ServerNetwork(uuid=network_uuid) for network_uuid, _ in self._resolve_networks()]

    def _resolve_networks(self) -> list[tuple[str, bool]]:
        """Resolve the named networks to ``(network_id, pod_network)`` pairs."""
        resolved = []
        for network in self.config.networks:
            if network.id:
                resolved.append((network.id, network.pod_network))
            else:
                resolved.append(
                    (self.network.network_id_from_name(str(network.name)), network.pod_network)
                )
        return resolved

    def _resolve_pod_network_ids(self) -> set[str]:
        """Networks accepting traffic from the pod CIDR range."""
        if self.config.network_id is not None:
            return {self.config.network_id}
        return {network_id for network_id, pod_network in self._resolve_networks() if pod_network}

    def _get_or_create_port(self, machine_name: str, network_id: str) -> str:
        try:
            port_id = self.network.port_id_from_name(machine_name)
        except NotFoundError:
            logger.debug("Port [Name=%s] does not exist", machine_name)
        else:
            logger.info("Found port [Name=%s, ID=%s], skipping creation", machine_name, port_id)
            return port_id

        logger.info("Creating port [Name=%s]", machine_name)
        security_group_ids = [
            self.network.security_group_id_from_name(security_group)
            for security_group in self.config.security_groups
        ]
        port = self.network.create_port(
            PortCreateRequest(
                name=machine_name,
                network_id=network_id,
                fixed_ips=[
                    FixedIP(subnet_id=subnet_id) for subnet_id in self.config.effective_subnet_ids
                ],
                allowed_address_pairs=[
                    AddressPair(ip_address=cidr) for cidr in self.config.pod_network_cidrs
                ],
                security_group_ids=security_group_ids,
            )
        )
        logger.info("Port [Name=%s, ID=%s] successfully created", port.name, port.id)
        return port.id

    def _patch_server_ports_for_pod_network(self, server_id: str) -> None:
        """Allow the pod network CIDRs on the server's pod network ports.

        Ports already allowing every CIDR are left untouched, the others get
        their allowed address pairs replaced with the full CIDR list.
        """
        cidrs = self.config.pod_network_cidrs
        if not cidrs:
            logger.debug("No pod network CIDR configured, skipping port patching")
            return

        ports = self.network.list_ports(device_id=server_id)
        if not ports:
            msg = f"Got an empty port list for server [ID={server_id!r}]"
            raise BackendError(msg)

        pod_network_ids = self._resolve_pod_network_ids()
        required = set(cidrs)
        for port in ports:
            if port.network_id not in pod_network_ids:
                continue
            allowed = {pair.ip_address for pair in port.allowed_address_pairs}
            if required <= allowed:
                logger.info(
                    "Port [ID=%s] already allows pod network CIDR range, skipping update", port.id
                )
                continue
            logger.info("Updating allowed address pairs of port [ID=%s]", port.id)
            self.network.update_port(port.id, [AddressPair(ip_address=cidr) for cidr in cidrs])

    def _delete_port(self, machine_name: str) -> None:
        try:
            port_id = self.network.port_id_from_name(machine_name)
        except NotFoundError:
            logger.info("Port [Name=%s] was not found", machine_name)
            return

        logger.info("Deleting port [Name=%s, ID=%s]", machine_name, port_id)
        self.network.delete_port(port_id)
        logger.info("Deleted port [Name=%s]", machine_name)

    def _deploy_server(
        self, machine_name: str, user_data: bytes, networks: list[ServerNetwork]
    ) -> Instance:
        config = self.config

        if config.image_id:
            image_ref = config.image_id
        else:
            image_ref = self.compute.image_id_from_name(str(config.image_name))
        flavor_ref = self.compute.flavor_id_from_name(config.flavor_name)

        request = ServerCreateRequest(
            name=machine_name,
            flavor_ref=flavor_ref,
            image_ref=image_ref,
            networks=networks,
            security_groups=list(config.security_groups),
            metadata=dict(config.tags),
            user_data=user_data,
            availability_zone=config.availability_zone,
            config_drive=config.use_config_drive,
        )
        if config.key_name is not None:
            request.key_name = config.key_name
        if config.server_group_id is not None:
            request.scheduler_hints = {"group": config.server_group_id}

        if config.root_disk_size == 0:
            return self.compute.create_server(request)

        if config.volume_type is None:
            request.block_devices = [
                BlockDevice(
                    source_type="image",
                    destination_type="volume",
                    uuid=image_ref,
                    volume_size=config.root_disk_size,
                    boot_index=0,
                    delete_on_termination=True,
                )
            ]
            return self.compute.boot_from_volume(request)

        return self._boot_from_typed_volume(machine_name, image_ref, request)

    def _boot_from_typed_volume(
        self, machine_name: str, image_ref: str, request: ServerCreateRequest
    ) -> Instance:
        """Boot from a volume created beforehand with the configured type.

        A volume left behind by an earlier attempt is reused, unless it is
        being deleted: then its removal is awaited and a fresh volume is
        created. The volume is deleted again if anything fails before the
        server is created.
        """
        volume = self._find_boot_volume(machine_name)
        if volume is not None and volume.status == VOLUME_STATUS_DELETING:
            logger.info(
                "Boot volume [Name=%s, ID=%s] is being deleted, waiting for its removal",
                machine_name,
                volume.id,
            )
            self._wait_for_volume_status(
                volume.id,
                pending=frozenset({VOLUME_STATUS_DELETING}),
                target=frozenset({VOLUME_STATUS_DELETED}),
                timeout=self.timeouts.volume,
            )
            volume = None

        try:
            if volume is None:
                logger.info("Creating boot volume [Name=%s]", machine_name)
                volume = self.storage.create_volume(
                    VolumeCreateRequest(
                        name=machine_name,
                        size=self.config.root_disk_size,
                        image_id=image_ref,
                        volume_type=self.config.volume_type,
                        availability_zone=self.config.availability_zone,
                    )
                )
            else:
                logger.info("Found boot volume [Name=%s, ID=%s]", machine_name, volume.id)

            self._wait_for_volume_status(
                volume.id,
                pending=frozenset({VOLUME_STATUS_DOWNLOADING, VOLUME_STATUS_CREATING}),
                target=frozenset({VOLUME_STATUS_AVAILABLE}),
                timeout=self.timeouts.volume,
            )

            request.block_devices = [
                BlockDevice(
                    source_type="volume",
                    destination_type="volume",
                    uuid=volume.id,
                    boot_index=0,
                    delete_on_termination=True,
                )
            ]
            return self.compute.boot_from_volume(request)
        except BackendError as err:
            if volume is not None:
                logger.warning("Deleting boot volume [ID=%s] after failure: %s", volume.id, err)
                try:
                    self.storage.delete_volume(volume.id, cascade=True)
                except BackendError as cleanup_error:
                    err.add_cleanup_error(cleanup_error)
            raise

    def _find_boot_volume(self, machine_name: str) -> Optional[Volume]:
        volumes = [
            volume
            for volume in self.storage.list_volumes(name=machine_name)
            if volume.name == machine_name
        ]
        if len(volumes) > 1:
            msg = f"Failed to find volume [Name={machine_name!r}]: multiple volumes found"
            raise MultipleFoundError(msg)
        return volumes[0] if volumes else None

    def _delete_boot_volume(self, machine_name: str) -> None:
        volume = self._find_boot_volume(machine_name)
        if volume is None:
            logger.info("Boot volume [Name=%s] was not found", machine_name)
            return
        if volume.status == VOLUME_STATUS_DELETING:
            logger.info(
                "Boot volume [Name=%s, ID=%s] is already being deleted", machine_name, volume.id
            )
            return
        logger.info("Deleting boot volume [Name=%s, ID=%s]", machine_name, volume.id)
        self.storage.delete_volume(volume.id, cascade=True)

    def _wait_for_server_status(
        self, server_id: str, pending: frozenset[str], target: frozenset[str], timeout: float
    ) -> None:
        def observe() -> Observation:
            try:
                server = self.compute.get_server(server_id)
            except NotFoundError:
                return Observation(SERVER_STATUS_DELETED, exists=False)
            return Observation(server.status, server.fault)

        self.poller.wait(observe, pending, target, timeout, resource=f"server [ID={server_id!r}]")

    def _wait_for_volume_status(
        self, volume_id: str, pending: frozenset[str], target: frozenset[str], timeout: float
    ) -> None:
        def observe() -> Observation:
            try:
                volume = self.storage.get_volume(volume_id)
            except NotFoundError:
                return Observation(VOLUME_STATUS_DELETED, exists=False)
            return Observation(volume.status)

        self.poller.wait(observe, pending, target, timeout, resource=f"volume [ID={volume_id!r}]")

    def _get_machine_by_name(self, machine_name: str) -> Instance:
        """Return the only server with the machine's name and tags.

        Tags are stored as server metadata, so the filtering happens on the
        client side.
        """
        keys = require_tag_keys(self.config.tags, "getMachineByName")
        servers = self.compute.list_servers(name=machine_name)
        matching = [
            server
            for server in servers
            if server.name == machine_name and matches_tags(server.metadata, keys)
        ]
        if len(matching) > 1:
            msg = f"Failed to find server [Name={machine_name!r}]: multiple servers found"
            raise MultipleFoundError(msg)
        if not matching:
            msg = f"Failed to find server [Name={machine_name!r}]"
            raise NotFoundError(msg)
        return matching[0]

    def _get_machine_by_provider_id(self, provider_id: str) -> Instance:
        region, server_id = decode_provider_id(provider_id)
        if region != self.config.region:
            msg = (
                f"Provider ID {provider_id!r} belongs to region {region!r}, "
                f"not to the configured region {self.config.region!r}"
            )
            raise ConfigurationError(msg)

        keys = require_tag_keys(self.config.tags, "getMachineByID")
        try:
            server = self.compute.get_server(server_id)
        except NotFoundError as e:
            msg = f"Could not find server [ID={server_id!r}]"
            raise NotFoundError(msg) from e

        if not matches_tags(server.metadata, keys):
            logger.warning(
                "Server [ID=%s] found, but cluster/role tags are missing/not matching", server_id
            )
            msg = f"Could not find server [ID={server_id!r}]"
            raise NotFoundError(msg)
        return server

    def delete_machine(self, machine_name: str, provider_id: Optional[str] = None) -> None:
        """Delete the server of a machine together with its volume and port.

        The server is located by provider ID when one is given, by name and
        tags otherwise. A missing server is not an error. The boot volume and
        the managed port are looked up by name even when the server is gone.
        """
        server: Optional[Instance]
        try:
            if provider_id:
                server = self._get_machine_by_provider_id(provider_id)
            else:
                server = self._get_machine_by_name(machine_name)
        except NotFoundError:
            logger.info("Server [Name=%s] not found, nothing to delete", machine_name)
            server = None

        if server is not None:
            logger.info("Deleting server [Name=%s, ID=%s]", server.name, server.id)
            self.compute.delete_server(server.id)
            self._wait_for_server_status(
                server.id,
                pending=frozenset(),
                target=frozenset({SERVER_STATUS_DELETED}),
                timeout=self.timeouts.server_delete,
            )
            logger.info("Deleted server [Name=%s, ID=%s]", server.name, server.id)

        if self.config.uses_typed_volume:
            self._delete_boot_volume(machine_name)
        if self.config.is_user_managed_network:
            self._delete_port(machine_name)

    def list_machines(self) -> dict[str, str]:
        """Map the provider ID of every server of this machine class to its name."""
        keys = require_tag_keys(self.config.tags, "listMachines")
        return {
            encode_provider_id(self.config.region, server.id): server.name
            for server in self.compute.list_servers()
            if matches_tags(server.metadata, keys)
        }
