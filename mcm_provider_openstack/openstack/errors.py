"""Translation of openstacksdk errors and request accounting."""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Iterable, TypeVar

from keystoneauth1 import exceptions as ksa_exceptions
from openstack import exceptions as sdk_exceptions

from mcm_provider_openstack import PROVIDER_NAME
from mcm_provider_openstack.backend.exceptions import (
    BackendError,
    MultipleFoundError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)
ReturnType = TypeVar("ReturnType")

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404


def map_openstack_error(error: Exception) -> BackendError:
    """Convert an openstacksdk or keystoneauth error to a backend error."""
    if isinstance(error, sdk_exceptions.DuplicateResource):
        return MultipleFoundError(str(error))
    if isinstance(error, sdk_exceptions.ResourceNotFound):
        return NotFoundError(str(error))
    if isinstance(error, sdk_exceptions.HttpException):
        status_code = getattr(error, "status_code", None)
        if status_code == HTTP_UNAUTHORIZED:
            return UnauthenticatedError(str(error))
        if status_code == HTTP_FORBIDDEN:
            return PermissionDeniedError(str(error))
        if status_code == HTTP_NOT_FOUND:
            return NotFoundError(str(error))
    if isinstance(error, ksa_exceptions.Unauthorized):
        return UnauthenticatedError(str(error))
    if isinstance(error, ksa_exceptions.Forbidden):
        return PermissionDeniedError(str(error))
    return BackendError(str(error))


def openstack_error_handler(
    service: str, count_not_found: bool = True
) -> Callable[[Callable[..., ReturnType]], Callable[..., ReturnType]]:
    """Record the call on the client's recorder and convert SDK exceptions.

    Args:
        service: Service name the requests are accounted to.
        count_not_found: Whether a not-found answer counts as a failed request.
    """

    def decorator(func: Callable[..., ReturnType]) -> Callable[..., ReturnType]:
        @functools.wraps(func)
        def wrapped(self: Any, *args: object, **kwargs: object) -> ReturnType:  # noqa: ANN401
            logger.debug("Executing %s client method: %s", service, func.__name__)
            self.recorder.record_request(PROVIDER_NAME, service)
            try:
                return func(self, *args, **kwargs)
            except (sdk_exceptions.SDKException, ksa_exceptions.ClientException) as e:
                mapped_error = map_openstack_error(e)
                if count_not_found or not isinstance(mapped_error, NotFoundError):
                    self.recorder.record_failure(PROVIDER_NAME, service)
                raise mapped_error from e

        return wrapped

    return decorator


def single_id(kind: str, name: str, resources: Iterable[Any]) -> str:
    """Return the ID of the only resource named ``name``.

    Raises:
        NotFoundError: No resource carries the name.
        MultipleFoundError: More than one resource carries the name.
    """
    ids = [resource.id for resource in resources if resource.name == name]
    if not ids:
        msg = f"Unable to find {kind} named {name!r}"
        raise NotFoundError(msg)
    if len(ids) > 1:
        msg = f"Found {len(ids)} {kind}s named {name!r}"
        raise MultipleFoundError(msg)
    return ids[0]
