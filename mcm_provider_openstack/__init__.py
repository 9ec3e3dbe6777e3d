"""Init file for the main module."""

import os

MCM_PROVIDER_OPENSTACK_VERSION = "0.1.0"

PROVIDER_NAME = "openstack"

MCM_OPENSTACK_SERVER_CREATE_TIMEOUT = int(
    os.environ.get("MCM_OPENSTACK_SERVER_CREATE_TIMEOUT", "600")
)
MCM_OPENSTACK_SERVER_DELETE_TIMEOUT = int(
    os.environ.get("MCM_OPENSTACK_SERVER_DELETE_TIMEOUT", "300")
)
MCM_OPENSTACK_VOLUME_TIMEOUT = int(os.environ.get("MCM_OPENSTACK_VOLUME_TIMEOUT", "600"))
MCM_OPENSTACK_POLL_INTERVAL = float(os.environ.get("MCM_OPENSTACK_POLL_INTERVAL", "5"))
