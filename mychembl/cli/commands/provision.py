##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
mychembl CLI provision command module.

This module defines the `ProvisionCommand` class, which provides subcommands to
initialize the provisioning configuration, edit it, run the provisioning sequence,
and inspect or verify the result. These subcommands are integrated into the
mychembl CLI via `argparse`.
"""

import logging
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, Namespace

from mychembl.cli.commands.command_entry_point import CommandEntryPoint
from mychembl.provision.provision_commands import (
    config_provision,
    init_provision,
    list_steps,
    run_provision,
    status_provision,
    verify_provision,
)
from mychembl.provision.provision_steps import PROVISION_STEPS
from mychembl.provision.provision_util import SERVICE_MANAGERS


LOG = logging.getLogger("mychembl")


class ProvisionCommand(CommandEntryPoint):
    """
    Handles `provision` CLI commands for building a local ChEMBL database.

    Methods:
        add_parser: Adds the `provision` command and its subcommands to the CLI parser.
        process_command: Processes the CLI input and dispatches the appropriate action.
    """

    def _add_config_subcommand(self, provision_commands: ArgumentParser):
        """
        Add the `config` subcommand to the provision command parser.

        Parameters:
            provision_commands (ArgumentParser): The provision subparser to which the config command will be added.
        """
        provision_config: ArgumentParser = provision_commands.add_parser(
            "config",
            help="Edit the provisioning configuration.",
            description="Config provisioning.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        provision_config.add_argument("--version", action="store", type=int, help="Set the ChEMBL release to provision.")
        provision_config.add_argument(
            "-d",
            "--work-dir",
            action="store",
            type=str,
            help="Set the directory archives and scripts are downloaded to.",
        )
        provision_config.add_argument(
            "--postgres-version",
            action="store",
            type=str,
            help="Set the PostgreSQL version whose configuration directory receives the configuration files.",
        )
        provision_config.add_argument("--host", action="store", type=str, help="Set the PostgreSQL host.")
        provision_config.add_argument("-p", "--port", action="store", type=int, help="Set the PostgreSQL port.")
        provision_config.add_argument("--owner", action="store", type=str, help="Set the role that owns the database.")
        provision_config.add_argument(
            "--service-manager",
            action="store",
            type=str,
            help=f"Set the service manager used to install files and restart PostgreSQL. Options: {SERVICE_MANAGERS}.",
        )
        provision_config.add_argument(
            "--sudo-password",
            action="store",
            type=str,
            help="Store the password fed to sudo for privileged steps.",
        )
        provision_config.add_argument(
            "--add-user",
            action="store",
            nargs=2,
            type=str,
            help="Create a new read-only user. (Provide both username and password)",
        )
        provision_config.add_argument("--remove-user", action="store", type=str, help="Remove an existing read-only user.")

    def _add_run_subcommand(self, provision_commands: ArgumentParser):
        """
        Add the `run` subcommand to the provision command parser.

        Parameters:
            provision_commands (ArgumentParser): The provision subparser to which the run command will be added.
        """
        provision_run: ArgumentParser = provision_commands.add_parser(
            "run",
            help="Run the provisioning sequence.",
            description="Run every provisioning step in order, stopping at the first failure.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        provision_run.add_argument(
            "--start-from",
            action="store",
            type=str,
            choices=[name for name, _ in PROVISION_STEPS],
            metavar="STEP",
            help="Skip the steps before STEP. See 'mychembl provision steps' for the names.",
        )
        provision_run.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Show the steps that would run without running them.",
        )

    def add_parser(self, subparsers: ArgumentParser):
        """
        Add the `provision` command parser to the CLI argument parser.

        Parameters:
            subparsers (ArgumentParser): The subparsers object to which the `provision` command parser will be added.
        """
        provision: ArgumentParser = subparsers.add_parser(
            "provision",
            help="Build a local ChEMBL database and inspect it.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        provision.set_defaults(func=self.process_command)

        provision_commands: ArgumentParser = provision.add_subparsers(dest="commands", required=True)

        # `mychembl provision init` subcommand
        provision_commands.add_parser(
            "init",
            help="Initialize the provisioning configuration.",
            description="Initialize provisioning",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )

        # `mychembl provision status` subcommand
        provision_commands.add_parser(
            "status",
            help="View the status of the ChEMBL installation.",
            description="View status",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )

        # `mychembl provision steps` subcommand
        provision_commands.add_parser(
            "steps",
            help="List the provisioning steps in order.",
            description="List steps",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )

        # `mychembl provision verify` subcommand
        provision_commands.add_parser(
            "verify",
            help="Check a provisioned installation.",
            description="Verify the database, extension, row counts, read-only roles and work directory.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )

        # `mychembl provision run` subcommand
        self._add_run_subcommand(provision_commands)

        # `mychembl provision config` subcommand
        self._add_config_subcommand(provision_commands)

    def process_command(self, args: Namespace):
        """
        Route to the appropriate provisioning function based on the command
        specified via the CLI.

        Args:
            args: Parsed command-line arguments, which includes:\n
                - `commands`: The provisioning command to execute.
                Possible values are:
                    - `init`: Initialize the configuration.
                    - `status`: Report the installation status.
                    - `steps`: List the provisioning steps.
                    - `verify`: Check the installation.
                    - `run`: Run the provisioning sequence.
                    - `config`: Edit the configuration.

        Returns:
            False if the command failed, otherwise None or True.
        """
        if args.commands == "init":
            return init_provision()
        if args.commands == "status":
            status_provision()
            return None
        if args.commands == "steps":
            return list_steps()
        if args.commands == "verify":
            return verify_provision()
        if args.commands == "run":
            return run_provision(start_from=args.start_from, dry_run=args.dry_run)
        if args.commands == "config":
            return config_provision(args)
        return None
