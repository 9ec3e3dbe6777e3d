"""Main application module."""

import json
import sys

from mcm_provider_openstack import MCM_PROVIDER_OPENSTACK_VERSION
from mcm_provider_openstack.backend import configure_logger, logger
from mcm_provider_openstack.backend.exceptions import ConfigurationError
from mcm_provider_openstack.common import utils
from mcm_provider_openstack.driver import DriverError, ErrorCode


def main() -> None:
    """Entrypoint for the application."""
    try:
        configuration = utils.init_configuration()
    except ConfigurationError as e:
        logger.error("Unable to load configuration: %s", e)
        print(json.dumps({"error": ErrorCode.INVALID_ARGUMENT.value, "message": str(e)}))
        sys.exit(1)

    configure_logger(configuration.log_level)
    logger.info("OpenStack machine driver version: %s", MCM_PROVIDER_OPENSTACK_VERSION)
    logger.info("Running driver in %s mode", configuration.mode)

    try:
        result = utils.run_driver(configuration)
    except DriverError as e:
        print(json.dumps({"error": e.code.value, "message": e.message}))
        sys.exit(1)

    print(json.dumps(result, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
