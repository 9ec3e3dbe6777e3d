"""Orchestration of machine create, delete and list operations."""

from mcm_provider_openstack.executor.executor import Executor
from mcm_provider_openstack.executor.poller import (
    Action,
    Decision,
    Observation,
    StatusPoller,
    decide,
)
from mcm_provider_openstack.executor.provider_id import decode_provider_id, encode_provider_id

__all__ = [
    "Action",
    "Decision",
    "Executor",
    "Observation",
    "StatusPoller",
    "decide",
    "decode_provider_id",
    "encode_provider_id",
]
