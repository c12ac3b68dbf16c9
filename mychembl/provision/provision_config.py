##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""This module represents everything that goes into provisioning configuration"""

import enum
import logging
import os
import random
import string
from contextlib import closing
from importlib import resources
from typing import Dict

import psycopg2
import yaml

from mychembl.provision.provision_util import (
    CONFIG_DIR,
    MYCHEMBL_PROVISION_CONFIG,
    SERVICE_MANAGERS,
    AppYaml,
    ProvisionConfig,
    ReadonlyUsers,
)
from mychembl.utils import is_running_psutil


LOG = logging.getLogger("mychembl")

LOCAL_APP_YAML = "./app.yaml"
PASSWORD_LENGTH = 32
LOCAL_HOSTS = (None, "localhost", "127.0.0.1", "::1")


class ProvisionStatus(enum.Enum):
    """
    Represents the states a ChEMBL installation can be in.

    Attributes:
        PROVISIONED (int): The database exists and the chemistry extension is enabled. Numeric value: 0.
        NOT_INITIALIZED (int): No provisioning configuration was found. Numeric value: 1.
        SERVICE_NOT_RUNNING (int): No PostgreSQL server process is running. Numeric value: 2.
        DATABASE_MISSING (int): PostgreSQL is up but the ChEMBL database does not exist. Numeric value: 3.
        EXTENSION_MISSING (int): The database exists without the chemistry extension. Numeric value: 4.
        ERROR (int): PostgreSQL could not be queried. Numeric value: 5.
    """

    PROVISIONED = 0
    NOT_INITIALIZED = 1
    SERVICE_NOT_RUNNING = 2
    DATABASE_MISSING = 3
    EXTENSION_MISSING = 4
    ERROR = 5


def generate_password(length: int) -> str:
    """
    Generates a password for a read-only database role.

    Args:
        length: The desired length of the password.

    Returns:
        The generated password.
    """
    characters = list(string.ascii_letters + string.digits)

    random.shuffle(characters)

    password = []
    for _ in range(length):
        password.append(random.choice(characters))

    random.shuffle(password)
    return "".join(password)


def copy_service_command_files(config_dir: str) -> bool:
    """
    Copies the YAML files with command templates for each service manager to the
    configuration directory.

    Args:
        config_dir: The path to the configuration directory.

    Returns:
        True if all files are copied or already exist. False otherwise.
    """
    files = [i + ".yaml" for i in SERVICE_MANAGERS]
    for file in files:
        file_path = os.path.join(config_dir, file)
        if os.path.exists(file_path):
            LOG.info(f"{file} already exists.")
            continue
        LOG.info(f"Copying file {file} to configuration directory.")
        try:
            with open(file_path, "w") as outfile:
                outfile.write(resources.files("mychembl.provision").joinpath(file).read_text())
        except OSError:
            LOG.error(f"Destination location {config_dir} is not writable.")
            return False
    return True


def create_provision_config(config_dir: str = CONFIG_DIR) -> bool:
    """
    Creates the provisioning configuration directory and its `app.yaml`.

    The default configuration shipped with the package is copied in place; an existing
    `app.yaml` is never overwritten.

    Args:
        config_dir: The configuration directory to create.

    Returns:
        True if the configuration exists once this returns. False otherwise.
    """
    if not os.path.exists(config_dir):
        LOG.info("Unable to find existing provisioning configuration.")
        LOG.info(f"Creating default configuration in {config_dir}")
        try:
            os.makedirs(config_dir)
        except OSError as err:
            LOG.error(err)
            return False

    if not copy_service_command_files(config_dir):
        return False

    app_yaml_path = os.path.join(config_dir, "app.yaml")
    if os.path.exists(app_yaml_path):
        LOG.info("app.yaml already exists.")
        return True

    default_config = yaml.safe_load(resources.files("mychembl.provision").joinpath(MYCHEMBL_PROVISION_CONFIG).read_text())
    default_config["install"]["config_dir"] = config_dir
    default_config["install"]["work_dir"] = os.path.join(config_dir, "work")

    if not load_provision_config(default_config, config_dir=config_dir):
        LOG.error('Try to run "mychembl provision init" again to reinitialize values.')
        return False

    LOG.info(f"Applying provisioning configuration to {app_yaml_path}")
    app_yaml = AppYaml(app_yaml_path)
    app_yaml.update_data(default_config)
    app_yaml.write(app_yaml_path)

    return True


def config_mychembl_provision(app_yaml_path: str = None):
    """
    Creates the work directory, the read-only password file and the read-only users
    file. Files that already exist are left untouched.
    """
    provision_config = pull_provision_config(app_yaml_path)
    if not provision_config:
        LOG.error('Try to run "mychembl provision init" again to reinitialize values.')
        return False

    work_dir = provision_config.install.get_work_dir()
    if not os.path.exists(work_dir):
        LOG.info(f"Creating work directory {work_dir}")
        os.makedirs(work_dir)

    pass_file = provision_config.readonly.get_pass_file_path()
    if os.path.exists(pass_file):
        LOG.info("Password file already exists. Skipping password generation step.")
    else:
        with open(pass_file, "w+") as f:  # pylint: disable=C0103
            f.write(generate_password(PASSWORD_LENGTH))
        os.chmod(pass_file, 0o600)
        LOG.info("Creating password file for read-only database role.")

    user_file = provision_config.readonly.get_user_file_path()
    if os.path.exists(user_file):
        LOG.info("User file already exists.")
    else:
        readonly_users = ReadonlyUsers(user_file)
        readonly_users.add_user(user=provision_config.readonly.get_user(), password=provision_config.readonly.get_password())
        readonly_users.write()
        LOG.info(f"User {provision_config.readonly.get_user()} created in read-only user file")

    return None


def load_provision_config(data: Dict, config_dir: str = None) -> ProvisionConfig:
    """
    Given a dictionary of provisioning configuration values, validate them, merge in
    the command templates of the configured service manager and load the result into
    a [`ProvisionConfig`][provision.provision_util.ProvisionConfig].

    Args:
        data: A dictionary with at least an `install` and a `system` entry.
        config_dir: Where to look for the service manager files. Defaults to the
            `config_dir` of the `install` section.

    Returns:
        The loaded configuration, or `None` if anything required is missing.
    """
    format_needed_keys = ["sudo_command", "install_command", "restart_command"]

    if not data:
        LOG.error("Provisioning configuration is empty.")
        return None

    for section in ("install", "system"):
        if section not in data:
            LOG.error(f'Unable to find "{section}" in provisioning configuration.')
            return None

    return_data = {}
    return_data.update(data)

    service_manager = data["system"].get("format", "service")
    if service_manager not in SERVICE_MANAGERS:
        LOG.error(f'Unknown service manager "{service_manager}". Valid options are {SERVICE_MANAGERS}.')
        return None

    if config_dir is None:
        config_dir = os.path.abspath(data["install"].get("config_dir", CONFIG_DIR))
    format_file = os.path.join(config_dir, service_manager + ".yaml")
    if os.path.exists(format_file):
        with open(format_file, "r") as ff:  # pylint: disable=C0103
            format_data = yaml.load(ff, yaml.Loader)
    else:
        LOG.debug(f"{format_file} not found, using packaged command templates.")
        format_data = yaml.safe_load(resources.files("mychembl.provision").joinpath(service_manager + ".yaml").read_text())

    for key in format_needed_keys:
        if key not in format_data.get(service_manager, {}):
            LOG.error(f'Unable to find necessary "{key}" value in format config file {format_file}')
            return None
    return_data.update(format_data)

    return ProvisionConfig(return_data)


def pull_provision_config(app_yaml_path: str = None) -> ProvisionConfig:
    """
    Reads `app.yaml` and builds the provisioning configuration from it.

    A `./app.yaml` in the current directory takes precedence over the one in the
    default configuration directory.

    Args:
        app_yaml_path: An explicit path to an `app.yaml` file.

    Returns:
        The loaded configuration, or `None` if it is missing or incomplete.
    """
    app_yaml_file = app_yaml_path if app_yaml_path is not None else LOCAL_APP_YAML
    mychembl_app_yaml = AppYaml(app_yaml_file)
    provision_data = mychembl_app_yaml.get_data()
    if not provision_data:
        return None
    return load_provision_config(provision_data)


def database_exists(provision_config: ProvisionConfig, database: str = None) -> bool:
    """
    Checks `pg_database` for the ChEMBL database.

    Raises:
        psycopg2.Error: If the maintenance database cannot be reached.
    """
    if database is None:
        database = provision_config.install.get_database_name()
    db_config = provision_config.database
    with closing(db_config.connect(db_config.maintenance_db)) as connection:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1 FROM pg_database WHERE datname = %s", (database,))
            return cursor.fetchone() is not None


def extension_enabled(provision_config: ProvisionConfig) -> bool:
    """
    Checks `pg_extension` of the ChEMBL database for the chemistry extension.

    Raises:
        psycopg2.Error: If the ChEMBL database cannot be reached.
    """
    db_config = provision_config.database
    with closing(db_config.connect(provision_config.install.get_database_name())) as connection:
        with connection.cursor() as cursor:
            cursor.execute("SELECT extversion FROM pg_extension WHERE extname = %s", (db_config.extension,))
            return cursor.fetchone() is not None


def get_provision_status(app_yaml_path: str = None) -> ProvisionStatus:
    """
    Determines the current status of the ChEMBL installation.

    Returns:
        An enum value representing the installation's current state:\n
            - `ProvisionStatus.NOT_INITIALIZED`: No configuration was found.
            - `ProvisionStatus.SERVICE_NOT_RUNNING`: No local PostgreSQL process is running.
            - `ProvisionStatus.DATABASE_MISSING`: The ChEMBL database does not exist.
            - `ProvisionStatus.EXTENSION_MISSING`: The chemistry extension is not enabled.
            - `ProvisionStatus.ERROR`: PostgreSQL could not be queried.
            - `ProvisionStatus.PROVISIONED`: The database is ready to query.
    """
    provision_config = pull_provision_config(app_yaml_path)
    if not provision_config:
        return ProvisionStatus.NOT_INITIALIZED

    if not os.path.exists(provision_config.install.get_config_dir()):
        return ProvisionStatus.NOT_INITIALIZED

    # Only a local server can be looked up in the process table
    if provision_config.database.host in LOCAL_HOSTS and not is_running_psutil("postgres", user="all_users"):
        return ProvisionStatus.SERVICE_NOT_RUNNING

    try:
        if not database_exists(provision_config):
            return ProvisionStatus.DATABASE_MISSING
        if not extension_enabled(provision_config):
            return ProvisionStatus.EXTENSION_MISSING
    except psycopg2.Error as exc:
        LOG.debug(f"Unable to query PostgreSQL: {exc}")
        return ProvisionStatus.ERROR

    return ProvisionStatus.PROVISIONED


def check_load_manifest_format(data: Dict) -> bool:
    """
    Validates the format of a load manifest.

    Args:
        data: The manifest data to validate.

    Returns:
        True if the manifest contains `database`, `dump_file` and a `tables` mapping.
    """
    if not isinstance(data, dict):
        return False
    required_keys = ["database", "dump_file", "tables"]
    for key in required_keys:
        if key not in data:
            return False
    return isinstance(data["tables"], dict)


def pull_load_manifest(file_path: str) -> Dict:
    """
    Reads the load manifest written by the load step.

    Args:
        file_path: The path to the manifest file.

    Returns:
        The manifest data if the file exists and is valid, otherwise `None`.
    """
    if not os.path.exists(file_path):
        return None
    with open(file_path, "r") as f:  # pylint: disable=C0103
        data = yaml.load(f, yaml.Loader)
        if check_load_manifest_format(data):
            return data
    return None


def dump_load_manifest(data: Dict, file_path: str) -> bool:
    """
    Writes the load manifest.

    Args:
        data: The manifest data: `database`, `dump_file` and `tables` (table -> row count).
        file_path: The path to the manifest file.

    Returns:
        True if the data was written, False if its format is invalid.
    """
    if not check_load_manifest_format(data):
        return False
    with open(file_path, "w+") as f:  # pylint: disable=C0103
        yaml.dump(data, f, yaml.Dumper)
    return True
