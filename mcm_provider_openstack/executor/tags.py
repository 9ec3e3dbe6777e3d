"""Cluster and role tag handling.

Servers are stored with their tags as metadata. A server belongs to this
machine class when its metadata carries both the cluster tag key and the role
tag key found among the configured tags.
"""

from typing import NamedTuple, Optional

from mcm_provider_openstack.backend.exceptions import ConfigurationError

SERVER_TAG_CLUSTER_PREFIX = "kubernetes.io-cluster-"
SERVER_TAG_ROLE_PREFIX = "kubernetes.io-role-"


class TagKeys(NamedTuple):
    """Metadata keys identifying the cluster and the node role."""

    cluster: str
    role: str


def derive_tag_keys(tags: dict[str, str]) -> Optional[TagKeys]:
    """Find the cluster and role keys among the tags.

    A key containing the cluster marker is a cluster key, any other key
    containing the role marker is a role key. The lexicographically smallest
    key wins when several keys carry the same marker. Returns ``None`` if
    either key is missing.
    """
    cluster_keys = sorted(key for key in tags if SERVER_TAG_CLUSTER_PREFIX in key)
    role_keys = sorted(
        key
        for key in tags
        if SERVER_TAG_ROLE_PREFIX in key and SERVER_TAG_CLUSTER_PREFIX not in key
    )
    if not cluster_keys or not role_keys:
        return None
    return TagKeys(cluster=cluster_keys[0], role=role_keys[0])


def require_tag_keys(tags: dict[str, str], operation: str) -> TagKeys:
    """Like :func:`derive_tag_keys` but fails when the keys are missing."""
    keys = derive_tag_keys(tags)
    if keys is None:
        msg = f"{operation} operation can not proceed: cluster/role tags are missing"
        raise ConfigurationError(msg)
    return keys


def matches_tags(metadata: dict[str, str], keys: TagKeys) -> bool:
    """Whether the server metadata carries both tag keys."""
    return keys.cluster in metadata and keys.role in metadata
