"""openstacksdk implementations of the cloud clients."""

from mcm_provider_openstack.openstack.compute import NovaCompute
from mcm_provider_openstack.openstack.factory import ClientFactory
from mcm_provider_openstack.openstack.network import NeutronNetwork
from mcm_provider_openstack.openstack.storage import CinderStorage

__all__ = ["CinderStorage", "ClientFactory", "NeutronNetwork", "NovaCompute"]
