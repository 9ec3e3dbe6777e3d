"""Shared utility functions for the command line driver.

This module provides:
- Configuration loading and validation from CLI arguments and YAML files
- Construction of the driver and its cloud client factory
- Dispatch of the selected operation
"""

import argparse
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from mcm_provider_openstack import MCM_PROVIDER_OPENSTACK_VERSION
from mcm_provider_openstack.backend import logger
from mcm_provider_openstack.backend.exceptions import ConfigurationError
from mcm_provider_openstack.common.structures import DriverConfiguration, DriverMode
from mcm_provider_openstack.driver import OpenStackDriver
from mcm_provider_openstack.openstack import ClientFactory


def load_configuration(config_file_path: str) -> DriverConfiguration:
    """Load configuration from YAML file.

    Args:
        config_file_path: Path to the YAML configuration file

    Returns:
        Validated configuration

    Raises:
        FileNotFoundError: If the configuration file cannot be found
        yaml.YAMLError: If the configuration file is malformed
        ConfigurationError: If the configuration does not validate
    """
    with Path(config_file_path).open(encoding="UTF-8") as stream:
        config = yaml.safe_load(stream) or {}

    try:
        configuration = DriverConfiguration.model_validate(config)
    except ValidationError as e:
        msg = f"Invalid configuration in {config_file_path}: {e}"
        raise ConfigurationError(msg) from e

    # Handle Sentry configuration - initialize if DSN is provided
    if configuration.sentry_dsn:
        import sentry_sdk  # noqa: PLC0415

        sentry_sdk.init(
            dsn=configuration.sentry_dsn,
            release=f"mcm-provider-openstack@{MCM_PROVIDER_OPENSTACK_VERSION}",
        )

    configuration.config_file_path = config_file_path
    return configuration


def init_configuration(argv: Optional[list[str]] = None) -> DriverConfiguration:
    """Initialize driver configuration from CLI arguments and config file.

    Args:
        argv: Command line arguments, ``sys.argv`` when not given

    Returns:
        Configuration completed with the operation selected on the command line
    """
    parser = argparse.ArgumentParser(prog="mcm-provider-openstack")

    parser.add_argument(
        "--mode",
        "-m",
        help="Driver operation, choices: create, delete and list; default is list",
        choices=[mode.value for mode in DriverMode],
        default=DriverMode.LIST.value,
    )

    parser.add_argument(
        "--config-file",
        "-c",
        help="Path to the config file with cloud and machine settings; "
        "default is mcm-provider-openstack-config.yaml",
        dest="config_file_path",
        default="mcm-provider-openstack-config.yaml",
        required=False,
    )

    parser.add_argument(
        "--machine-name",
        help="Name of the machine to create or delete",
        default="",
    )

    parser.add_argument(
        "--provider-id",
        help="Provider ID of the machine to delete, e.g. openstack:///RegionOne/<server-id>",
        default="",
    )

    parser.add_argument(
        "--user-data-file",
        help="Path to the user data passed to a created machine",
        default="",
    )

    cli_args = parser.parse_args(argv)
    if cli_args.mode in (DriverMode.CREATE.value, DriverMode.DELETE.value) and not (
        cli_args.machine_name
    ):
        parser.error(f"--machine-name is required in {cli_args.mode} mode")

    logger.info("Using %s as a config source", cli_args.config_file_path)
    configuration = load_configuration(cli_args.config_file_path)

    configuration.mode = cli_args.mode
    configuration.machine_name = cli_args.machine_name
    configuration.provider_id = cli_args.provider_id
    configuration.user_data_file = cli_args.user_data_file

    return configuration


def read_user_data(user_data_file: str) -> bytes:
    """Read the raw user data of a machine; no file means no user data."""
    if not user_data_file:
        return b""
    return Path(user_data_file).read_bytes()


def run_driver(configuration: DriverConfiguration) -> dict[str, Any]:
    """Run the configured operation and return its JSON-serializable result."""
    factory = ClientFactory(configuration.cloud)
    driver = OpenStackDriver(factory, timeouts=configuration.timeouts)
    try:
        if configuration.mode == DriverMode.CREATE.value:
            provider_id = driver.create_machine(
                configuration.machine_name,
                read_user_data(configuration.user_data_file),
                configuration.machine,
            )
            result: dict[str, Any] = {
                "machineName": configuration.machine_name,
                "providerID": provider_id,
            }
        elif configuration.mode == DriverMode.DELETE.value:
            driver.delete_machine(
                configuration.machine_name, configuration.provider_id, configuration.machine
            )
            result = {"machineName": configuration.machine_name, "deleted": True}
        else:
            result = {"machines": driver.list_machines(configuration.machine)}
        result["requests"] = factory.recorder.snapshot()
        return result
    finally:
        factory.close()
