##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
mychembl CLI query command module.

This module defines the `QueryCommand` class, which runs read-only
demonstration queries against a provisioned ChEMBL database.
"""

from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, Namespace

from mychembl.cli.commands.command_entry_point import CommandEntryPoint
from mychembl.query.chembl_queries import DEFAULT_LIMIT, DEFAULT_THRESHOLD
from mychembl.query.query_commands import run_query


class QueryCommand(CommandEntryPoint):
    """
    Handles `query` CLI commands.

    Methods:
        add_parser: Adds the `query` command and its subcommands to the CLI parser.
        process_command: Runs the selected query.
    """

    @staticmethod
    def _add_common_arguments(parser: ArgumentParser, limit: bool = True):
        """Add the options every query shares."""
        parser.add_argument(
            "-u",
            "--user",
            action="store",
            type=str,
            default=None,
            help="Role to connect as. Defaults to the read-only role from the provisioning configuration.",
        )
        if limit:
            parser.add_argument("-n", "--limit", action="store", type=int, default=DEFAULT_LIMIT, help="Maximum rows.")

    def add_parser(self, subparsers: ArgumentParser):
        """
        Add the `query` command parser to the CLI argument parser.

        Parameters:
            subparsers (ArgumentParser): The subparsers object to which the `query` command parser will be added.
        """
        query: ArgumentParser = subparsers.add_parser(
            "query",
            help="Run read-only demonstration queries against the ChEMBL database.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        query.set_defaults(func=self.process_command)
        query_commands: ArgumentParser = query.add_subparsers(dest="query", required=True)

        molecule = query_commands.add_parser(
            "molecule",
            help="Show a compound's name, clinical phase and structure.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        molecule.add_argument("chembl_id", type=str, help="ChEMBL identifier, e.g. CHEMBL25.")
        self._add_common_arguments(molecule, limit=False)

        similar = query_commands.add_parser(
            "similar",
            help="Find compounds similar to a SMILES string (Morgan fingerprints, Tanimoto).",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        similar.add_argument("smiles", type=str, help="Query structure as SMILES.")
        similar.add_argument(
            "-t", "--threshold", action="store", type=float, default=DEFAULT_THRESHOLD, help="Minimum similarity."
        )
        self._add_common_arguments(similar)

        substructure = query_commands.add_parser(
            "substructure",
            help="Find compounds containing a SMILES substructure.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        substructure.add_argument("smiles", type=str, help="Substructure as SMILES.")
        self._add_common_arguments(substructure)

        activities = query_commands.add_parser(
            "activities",
            help="List a compound's bioactivities with their assays and targets.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        activities.add_argument("chembl_id", type=str, help="ChEMBL identifier, e.g. CHEMBL25.")
        self._add_common_arguments(activities)

    def process_command(self, args: Namespace):
        """
        Run the query named by `args.query`.

        Returns:
            False if no provisioning configuration was found.
        """
        return run_query(args)
