"""Provider ID encoding.

A provider ID has the form ``openstack:///<region>/<server-id>``. The region
never contains ``/`` so the first separator after the prefix splits the two
parts and server IDs may contain any character.
"""

from mcm_provider_openstack import PROVIDER_NAME
from mcm_provider_openstack.backend.exceptions import ProviderIDError

PROVIDER_ID_PREFIX = f"{PROVIDER_NAME}:///"


def encode_provider_id(region: str, server_id: str) -> str:
    """Build the provider ID of a server."""
    if not region or "/" in region:
        msg = f"Region {region!r} cannot be encoded in a provider ID"
        raise ProviderIDError(msg)
    if not server_id:
        msg = "Server ID must not be empty"
        raise ProviderIDError(msg)
    return f"{PROVIDER_ID_PREFIX}{region}/{server_id}"


def decode_provider_id(provider_id: str) -> tuple[str, str]:
    """Split a provider ID into its region and server ID."""
    if not provider_id.startswith(PROVIDER_ID_PREFIX):
        msg = f"Provider ID {provider_id!r} does not start with {PROVIDER_ID_PREFIX!r}"
        raise ProviderIDError(msg)
    region, _, server_id = provider_id[len(PROVIDER_ID_PREFIX) :].partition("/")
    if not region or not server_id:
        msg = f"Provider ID {provider_id!r} is missing the region or the server ID"
        raise ProviderIDError(msg)
    return region, server_id
