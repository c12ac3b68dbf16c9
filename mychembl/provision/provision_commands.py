##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""Main functions for provisioning and inspecting a local ChEMBL database."""

import logging
import os
import tarfile
from argparse import Namespace

import psycopg2
from tabulate import tabulate

from mychembl.exceptions import CommandFailedError, DatabaseExistsError, DownloadError, ProvisionStepError
from mychembl.provision.provision_config import (
    LOCAL_APP_YAML,
    ProvisionStatus,
    config_mychembl_provision,
    create_provision_config,
    get_provision_status,
    pull_provision_config,
)
from mychembl.provision.provision_steps import PROVISION_STEPS
from mychembl.provision.provision_util import (
    CONFIG_DIR,
    SERVICE_MANAGERS,
    AppYaml,
    ProvisionConfig,
    ReadonlyUsers,
    valid_port,
    valid_version,
)
from mychembl.provision.provision_verify import run_checks


LOG = logging.getLogger("mychembl")

STEP_ERRORS = (
    CommandFailedError,
    DatabaseExistsError,
    DownloadError,
    OSError,
    ValueError,
    tarfile.TarError,
    psycopg2.Error,
)


def init_provision(config_dir: str = CONFIG_DIR):
    """
    Initializes the provisioning configuration directory, its `app.yaml`, the
    read-only role files and the work directory.
    """
    if not create_provision_config(config_dir):
        LOG.info("mychembl provisioning initialization failed.")
        return False

    config_mychembl_provision(os.path.join(config_dir, "app.yaml"))

    LOG.info("mychembl provisioning initialization successful.")
    LOG.info("Edit values with 'mychembl provision config' and run 'mychembl provision run' to provision.")


def apply_config_changes(app_yaml: AppYaml, args: Namespace) -> bool:
    """
    Applies configuration changes to `app_yaml` based on user-provided arguments.

    Invalid values are logged and skipped.

    Args:
        app_yaml: The loaded `app.yaml`.
        args: An argparse `Namespace` with the `provision config` arguments.

    Returns:
        True if any value changed.
    """
    changed = False

    if args.version is not None:
        if valid_version(args.version):
            app_yaml.set_value("install", "version", args.version)
            LOG.info(f"ChEMBL release set to {args.version}")
            changed = True
        else:
            LOG.error(f"Invalid ChEMBL release {args.version}. Releases are positive integers.")

    if args.work_dir is not None:
        app_yaml.set_value("install", "work_dir", os.path.abspath(args.work_dir))
        LOG.info(f"Work directory set to {os.path.abspath(args.work_dir)}")
        changed = True

    if args.postgres_version is not None:
        app_yaml.set_value("system", "postgres_version", str(args.postgres_version))
        LOG.info(f"PostgreSQL version set to {args.postgres_version}")
        changed = True

    if args.service_manager is not None:
        if args.service_manager in SERVICE_MANAGERS:
            app_yaml.set_value("system", "format", args.service_manager)
            LOG.info(f"Service manager set to {args.service_manager}")
            changed = True
        else:
            LOG.error(f"Invalid service manager {args.service_manager}. Valid options are {SERVICE_MANAGERS}.")

    if args.host is not None:
        app_yaml.set_value("database", "host", args.host)
        LOG.info(f"Database host set to {args.host}")
        changed = True

    if args.port is not None:
        if valid_port(args.port):
            app_yaml.set_value("database", "port", args.port)
            LOG.info(f"Database port set to {args.port}")
            changed = True
        else:
            LOG.error("Invalid port given.")

    if args.owner is not None:
        app_yaml.set_value("database", "owner", args.owner)
        LOG.info(f"Database owner set to {args.owner}")
        changed = True

    return changed


def config_provision(args: Namespace, app_yaml_path: str = None):
    """
    Processes the `provision config` flags: edits `app.yaml`, the `sudo` password file
    and the read-only users file.

    Args:
        args: An argparse `Namespace` containing user-provided arguments.
        app_yaml_path: An explicit path to the `app.yaml` to edit.
    """
    provision_config = pull_provision_config(app_yaml_path)
    if not provision_config:
        LOG.error('Try to run "mychembl provision init" again to reinitialize values.')
        return False

    # Write to the same file pull_provision_config read from
    app_yaml_file = app_yaml_path
    if app_yaml_file is None and os.path.exists(LOCAL_APP_YAML):
        app_yaml_file = LOCAL_APP_YAML
    elif app_yaml_file is None:
        app_yaml_file = os.path.join(provision_config.install.get_config_dir(), "app.yaml")
    app_yaml = AppYaml(app_yaml_file)
    if apply_config_changes(app_yaml, args):
        app_yaml.write(app_yaml_file)
        LOG.info(f"Provisioning configuration written to {app_yaml_file}")

    if args.sudo_password is not None:
        pass_file = provision_config.system.get_sudo_pass_file_path()
        with open(pass_file, "w") as pfile:
            pfile.write(args.sudo_password)
        os.chmod(pass_file, 0o600)
        LOG.info(f"sudo password stored in {pass_file}")

    readonly_users = ReadonlyUsers(provision_config.readonly.get_user_file_path())

    if args.add_user is not None:
        if readonly_users.add_user(user=args.add_user[0], password=args.add_user[1]):
            readonly_users.write()
            LOG.info(f"Added read-only user {args.add_user[0]}")
            if get_provision_status(app_yaml_path) == ProvisionStatus.PROVISIONED:
                LOG.info("Adding user to the provisioned database")
                apply_users(provision_config, readonly_users)
        else:
            LOG.error(f"User '{args.add_user[0]}' already exists within current users")

    if args.remove_user is not None:
        if readonly_users.remove_user(args.remove_user):
            readonly_users.write()
            LOG.info(f"Removed read-only user {args.remove_user}")
            LOG.info(f"The role still exists in the database; drop it with 'DROP ROLE {args.remove_user}' if needed.")
        else:
            LOG.error(f"User '{args.remove_user}' doesn't exist within current users.")

    return None


def apply_users(provision_config: ProvisionConfig, readonly_users: ReadonlyUsers):
    """Creates and grants the roles of `readonly_users` in the provisioned database."""
    connection = provision_config.database.connect(provision_config.install.get_database_name())
    try:
        readonly_users.apply_to_postgres(connection)
    finally:
        connection.close()


def status_provision(app_yaml_path: str = None):
    """
    Retrieves and displays the current status of the ChEMBL installation.
    """
    current_status = get_provision_status(app_yaml_path)
    if current_status == ProvisionStatus.NOT_INITIALIZED:
        LOG.info("mychembl provisioning has not been initialized.")
        LOG.info("Please initialize by running 'mychembl provision init'")
    elif current_status == ProvisionStatus.SERVICE_NOT_RUNNING:
        LOG.info("PostgreSQL is not running.")
    elif current_status == ProvisionStatus.DATABASE_MISSING:
        LOG.info("The ChEMBL database does not exist. Run 'mychembl provision run' to provision it.")
    elif current_status == ProvisionStatus.EXTENSION_MISSING:
        LOG.info("The ChEMBL database exists but the chemistry extension is not enabled.")
    elif current_status == ProvisionStatus.ERROR:
        LOG.info("Unable to query PostgreSQL. Rerun with '-lvl debug' for details.")
    elif current_status == ProvisionStatus.PROVISIONED:
        LOG.info("The ChEMBL database is provisioned.")
    return current_status


def list_steps():
    """Prints the provisioning steps in the order they run."""
    rows = [
        (number, name, step.__doc__.strip().splitlines()[0])
        for number, (name, step) in enumerate(PROVISION_STEPS, start=1)
    ]
    print(tabulate(rows, headers=["#", "Step", "Description"]))


def run_provision(start_from: str = None, dry_run: bool = False, app_yaml_path: str = None) -> bool:
    """
    Runs the provisioning sequence.

    Steps run one after the other; nothing is retried and nothing already applied is
    rolled back. The first failing step halts the sequence.

    Args:
        start_from: Name of the step to start at. Earlier steps are skipped.
        dry_run: Log the steps that would run without running them.
        app_yaml_path: An explicit path to `app.yaml`.

    Returns:
        True if every step ran, False if the configuration or `start_from` is invalid.

    Raises:
        ProvisionStepError: If a step fails.
    """
    provision_config = pull_provision_config(app_yaml_path)
    if not provision_config:
        LOG.error('Try to run "mychembl provision init" again to reinitialize values.')
        return False

    step_names = [name for name, _ in PROVISION_STEPS]
    first = 0
    if start_from is not None:
        if start_from not in step_names:
            LOG.error(f"Unknown step '{start_from}'. Valid steps are: {', '.join(step_names)}")
            return False
        first = step_names.index(start_from)

    LOG.info(f"Provisioning ChEMBL {provision_config.install.get_version()}")
    LOG.debug(str(provision_config))

    work_dir = provision_config.install.get_work_dir()
    if not dry_run and not os.path.exists(work_dir):
        os.makedirs(work_dir)

    total = len(PROVISION_STEPS)
    for number, (name, step) in enumerate(PROVISION_STEPS[first:], start=first + 1):
        if dry_run:
            LOG.info(f"[{number}/{total}] Would run '{name}': {step.__doc__.strip().splitlines()[0]}")
            continue
        LOG.info(f"[{number}/{total}] Running '{name}'")
        try:
            step(provision_config)
        except STEP_ERRORS as exc:
            raise ProvisionStepError(name, exc) from exc

    if not dry_run:
        LOG.info(f"ChEMBL {provision_config.install.get_version()} provisioned in {provision_config.install.get_database_name()}.")
    return True


def verify_provision(app_yaml_path: str = None) -> bool:
    """
    Checks a provisioned installation: the database answers, the chemistry extension
    is enabled, row counts match the dump, the read-only roles are read-only and no
    temporary files remain.

    Returns:
        True if every check passed.
    """
    provision_config = pull_provision_config(app_yaml_path)
    if not provision_config:
        LOG.error('Try to run "mychembl provision init" again to reinitialize values.')
        return False

    results = run_checks(provision_config)
    rows = [(name, "PASS" if passed else "FAIL", detail) for name, passed, detail in results]
    print(tabulate(rows, headers=["Check", "Result", "Detail"]))

    failed = [name for name, passed, _ in results if not passed]
    if failed:
        LOG.error(f"Verification failed: {', '.join(failed)}")
        return False
    LOG.info("All verification checks passed.")
    return True
