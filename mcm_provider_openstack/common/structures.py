"""Configuration structures for the OpenStack machine driver.

This module defines the pydantic models used throughout the driver:
- ``MachineProviderConfig``: desired state of one machine (the provider spec)
- ``CloudCredentials``: how to authenticate against the cloud
- ``DriverConfiguration``: the complete YAML configuration of the CLI

Provider specs are usually produced by the machine controller in camelCase;
every field accepts both its Python name and its camelCase alias.
"""

from __future__ import annotations

import ipaddress
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from mcm_provider_openstack import (
    MCM_OPENSTACK_POLL_INTERVAL,
    MCM_OPENSTACK_SERVER_CREATE_TIMEOUT,
    MCM_OPENSTACK_SERVER_DELETE_TIMEOUT,
    MCM_OPENSTACK_VOLUME_TIMEOUT,
)


def _reject_empty(value: Optional[str], field_name: str) -> Optional[str]:
    if value is not None and not value.strip():
        msg = f"{field_name} must not be empty; omit the field to leave it unset"
        raise ValueError(msg)
    return value


class NetworkSpec(BaseModel):
    """One entry of the named network list."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: Optional[str] = Field(default=None, description="Network ID, wins over the name")
    name: Optional[str] = Field(default=None, description="Network name resolved to an ID")
    pod_network: bool = Field(
        default=False,
        alias="podNetwork",
        description="Whether the network carries pod traffic",
    )

    @model_validator(mode="after")
    def validate_reference(self) -> NetworkSpec:
        """Require either an ID or a name."""
        if not self.id and not self.name:
            msg = "network entry requires an id or a name"
            raise ValueError(msg)
        return self


class MachineProviderConfig(BaseModel):
    """Desired state of a single machine.

    Optional references (``volume_type``, ``network_id``, ``subnet_id``,
    ``server_group_id``) are ``None`` when unset. Empty strings are rejected so
    an unset reference can never be confused with an empty one.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    region: str = Field(..., min_length=1, description="Cloud region")
    availability_zone: str = Field(
        ..., alias="availabilityZone", description="Availability zone of the server"
    )
    image_id: Optional[str] = Field(default=None, alias="imageID", description="Image ID")
    image_name: Optional[str] = Field(
        default=None, alias="imageName", description="Image name, used when no image ID is set"
    )
    flavor_name: str = Field(..., min_length=1, alias="flavorName", description="Flavor name")
    key_name: Optional[str] = Field(default=None, alias="keyName", description="Key pair name")
    security_groups: list[str] = Field(
        default_factory=list, alias="securityGroups", description="Security group names"
    )
    tags: dict[str, str] = Field(
        default_factory=dict, description="Server metadata, including cluster and role tags"
    )
    network_id: Optional[str] = Field(default=None, alias="networkID", description="Network ID")
    subnet_id: Optional[str] = Field(
        default=None, alias="subnetID", description="Single subnet ID (legacy)"
    )
    subnet_ids: list[str] = Field(default_factory=list, alias="subnetIDs", description="Subnet IDs")
    networks: list[NetworkSpec] = Field(default_factory=list, description="Named networks")
    pod_network_cidr: str = Field(
        default="", alias="podNetworkCidr", description="Comma separated pod network CIDRs"
    )
    root_disk_size: int = Field(
        default=0, ge=0, alias="rootDiskSize", description="Root disk size in GB, 0 = ephemeral"
    )
    volume_type: Optional[str] = Field(
        default=None, alias="volumeType", description="Type of a pre-created boot volume"
    )
    use_config_drive: Optional[bool] = Field(
        default=None, alias="useConfigDrive", description="Attach a config drive"
    )
    server_group_id: Optional[str] = Field(
        default=None, alias="serverGroupID", description="Server group scheduler hint"
    )

    @field_validator(
        "image_id", "image_name", "key_name", "network_id", "subnet_id", "volume_type",
        "server_group_id",
    )
    @classmethod
    def validate_optional_reference(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Reject empty strings for optional references."""
        return _reject_empty(v, info.field_name)

    @field_validator("pod_network_cidr")
    @classmethod
    def validate_pod_network_cidr(cls, v: str) -> str:
        """Validate every CIDR of the comma separated list."""
        for cidr in v.split(","):
            cidr = cidr.strip()
            if not cidr:
                continue
            try:
                ipaddress.ip_network(cidr, strict=False)
            except ValueError as e:
                msg = f"invalid pod network CIDR {cidr!r}: {e}"
                raise ValueError(msg) from e
        return v

    @model_validator(mode="after")
    def validate_references(self) -> MachineProviderConfig:
        """Check the image and network settings are complete."""
        if not self.image_id and not self.image_name:
            msg = "either imageID or imageName must be set"
            raise ValueError(msg)
        if self.network_id is None and not self.networks:
            msg = "either networkID or networks must be set"
            raise ValueError(msg)
        if self.network_id is None and (self.subnet_id is not None or self.subnet_ids):
            msg = "subnet IDs require networkID"
            raise ValueError(msg)
        return self

    @property
    def pod_network_cidrs(self) -> list[str]:
        """Configured pod network CIDRs in declaration order, without duplicates."""
        cidrs: list[str] = []
        for cidr in self.pod_network_cidr.split(","):
            cidr = cidr.strip()
            if cidr and cidr not in cidrs:
                cidrs.append(cidr)
        return cidrs

    @property
    def effective_subnet_ids(self) -> list[str]:
        """Sorted unique union of ``subnet_ids`` and the legacy ``subnet_id``."""
        subnets = set(self.subnet_ids)
        if self.subnet_id is not None:
            subnets.add(self.subnet_id)
        return sorted(subnets)

    @property
    def is_user_managed_network(self) -> bool:
        """Whether the driver creates and owns the server's port."""
        return self.network_id is not None and len(self.effective_subnet_ids) > 0

    @property
    def uses_typed_volume(self) -> bool:
        """Whether the boot volume is created beforehand as a separate volume."""
        return self.root_disk_size > 0 and self.volume_type is not None


class CloudCredentials(BaseModel):
    """Authentication settings for the cloud.

    Either ``cloud`` (an entry of ``clouds.yaml``) or ``auth_url`` with
    password or application credentials must be provided.
    """

    model_config = ConfigDict(extra="forbid")

    cloud: Optional[str] = Field(default=None, description="Cloud name from clouds.yaml")
    auth_url: Optional[str] = Field(default=None, description="Keystone endpoint")
    username: Optional[str] = Field(default=None, description="User name")
    password: Optional[str] = Field(default=None, description="User password")
    project_name: Optional[str] = Field(default=None, description="Project (tenant) name")
    project_id: Optional[str] = Field(default=None, description="Project (tenant) ID")
    user_domain_name: Optional[str] = Field(default=None, description="Domain of the user")
    project_domain_name: Optional[str] = Field(default=None, description="Domain of the project")
    application_credential_id: Optional[str] = Field(
        default=None, description="Application credential ID"
    )
    application_credential_secret: Optional[str] = Field(
        default=None, description="Application credential secret"
    )
    insecure: bool = Field(default=False, description="Skip TLS verification")
    ca_cert: Optional[str] = Field(default=None, description="Path to a CA bundle")

    @field_validator("auth_url")
    @classmethod
    def validate_auth_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate that auth_url is a valid HTTP/HTTPS URL."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            msg = "auth_url must start with http:// or https://"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_auth(self) -> CloudCredentials:
        """Require a usable authentication method."""
        if self.cloud:
            return self
        if not self.auth_url:
            msg = "either cloud or auth_url must be set"
            raise ValueError(msg)
        if self.application_credential_id and self.application_credential_secret:
            return self
        if not (self.username and self.password):
            msg = "auth_url requires username and password or an application credential"
            raise ValueError(msg)
        return self

    def connection_kwargs(self) -> dict[str, Any]:
        """Return keyword arguments for an openstacksdk connection."""
        kwargs: dict[str, Any] = {"verify": not self.insecure}
        if self.ca_cert:
            kwargs["cacert"] = self.ca_cert
        if self.cloud:
            kwargs["cloud"] = self.cloud
            return kwargs
        if self.application_credential_id:
            kwargs["auth_type"] = "v3applicationcredential"
            kwargs["auth"] = {
                "auth_url": self.auth_url,
                "application_credential_id": self.application_credential_id,
                "application_credential_secret": self.application_credential_secret,
            }
            return kwargs
        auth = {
            "auth_url": self.auth_url,
            "username": self.username,
            "password": self.password,
            "project_name": self.project_name,
            "project_id": self.project_id,
            "user_domain_name": self.user_domain_name,
            "project_domain_name": self.project_domain_name,
        }
        kwargs["auth"] = {key: value for key, value in auth.items() if value is not None}
        return kwargs


class Timeouts(BaseModel):
    """Bounds of the status polling loops, in seconds."""

    model_config = ConfigDict(extra="forbid")

    server_create: float = Field(default=MCM_OPENSTACK_SERVER_CREATE_TIMEOUT, gt=0)
    server_delete: float = Field(default=MCM_OPENSTACK_SERVER_DELETE_TIMEOUT, gt=0)
    volume: float = Field(default=MCM_OPENSTACK_VOLUME_TIMEOUT, gt=0)
    poll_interval: float = Field(default=MCM_OPENSTACK_POLL_INTERVAL, gt=0)


class DriverMode(Enum):
    """Operations exposed by the command line entry point."""

    CREATE = "create"
    DELETE = "delete"
    LIST = "list"


class DriverConfiguration(BaseModel):
    """Complete configuration of the command line driver.

    YAML Configuration Fields:
        cloud: Authentication settings
        machine: Raw provider spec of the machine, validated per call
        timeouts: Polling bounds
        log_level: Logging level
        sentry_dsn: Sentry DSN URL for error reporting (optional)

    Runtime Fields (added programmatically, not from YAML):
        config_file_path: Path to the loaded configuration file
        mode: Operation selected on the command line
        machine_name: Name of the machine to create or delete
        provider_id: Provider ID of the machine to delete
        user_data_file: Path to the user data of the machine to create
    """

    cloud: CloudCredentials = Field(..., description="Cloud authentication settings")
    machine: dict[str, Any] = Field(..., description="Provider spec of the machine")
    timeouts: Timeouts = Field(default_factory=Timeouts, description="Polling bounds")
    log_level: str = Field(default="INFO", description="Logging level")
    sentry_dsn: Optional[str] = Field(
        default=None, description="Sentry DSN for error reporting (URL)"
    )

    config_file_path: str = ""
    mode: str = ""
    machine_name: str = ""
    provider_id: str = ""
    user_data_file: str = ""

    @field_validator("sentry_dsn")
    @classmethod
    def validate_sentry_dsn(cls, v: Optional[str]) -> Optional[str]:
        """Validate that sentry_dsn is a valid URL when provided."""
        if v is None or v == "":
            return None
        try:
            TypeAdapter(HttpUrl).validate_python(v)
            return v
        except ValidationError as e:
            msg = f"sentry_dsn must be a valid URL: {e}"
            raise ValueError(msg) from e
