##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
mychembl CLI Commands Package.

Each module encapsulates the argument parsing and dispatch for one top-level
command, built around the `CommandEntryPoint` interface.

Modules:
    command_entry_point: Defines the abstract base class `CommandEntryPoint` for all CLI commands.
    provision: Implements the `provision` command that builds and inspects the database.
    query: Implements the `query` command for read-only demonstration queries.
"""

from mychembl.cli.commands.provision import ProvisionCommand
from mychembl.cli.commands.query import QueryCommand


# Keep these in alphabetical order
ALL_COMMANDS = [
    ProvisionCommand(),
    QueryCommand(),
]
