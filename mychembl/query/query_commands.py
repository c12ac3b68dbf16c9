##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""Main functions for querying a provisioned ChEMBL database."""

import logging
from argparse import Namespace
from contextlib import closing

from tabulate import tabulate

from mychembl.provision.provision_config import pull_provision_config
from mychembl.provision.provision_util import ProvisionConfig
from mychembl.query.chembl_queries import get_activities, get_molecule, similar_molecules, substructure_search


LOG = logging.getLogger("mychembl")


def connect_readonly(provision_config: ProvisionConfig, user: str = None):
    """
    Connects to the ChEMBL database as the default read-only role, or as `user`.

    The default role's password is read from the read-only password file. Any other
    role authenticates the way libpq is set up to (`PGPASSWORD`, `~/.pgpass`, peer).
    """
    password = None
    if user is None:
        user = provision_config.readonly.get_user()
        password = provision_config.readonly.get_password()
    LOG.debug(f"Connecting to {provision_config.install.get_database_name()} as {user}")
    return provision_config.database.connect(provision_config.install.get_database_name(), user=user, password=password)


def execute_query(connection, args: Namespace):
    """Dispatches to the query named by `args.query`."""
    if args.query == "molecule":
        return get_molecule(connection, args.chembl_id)
    if args.query == "similar":
        return similar_molecules(connection, args.smiles, threshold=args.threshold, limit=args.limit)
    if args.query == "substructure":
        return substructure_search(connection, args.smiles, limit=args.limit)
    if args.query == "activities":
        return get_activities(connection, args.chembl_id, limit=args.limit)
    raise ValueError(f"Unknown query '{args.query}'")


def run_query(args: Namespace, app_yaml_path: str = None) -> bool:
    """
    Runs one demonstration query and prints its rows as a table.

    Args:
        args: An argparse `Namespace` with `query`, its positional value and any
            `threshold`, `limit` and `user` options.
        app_yaml_path: An explicit path to `app.yaml`.

    Returns:
        False if no configuration was found, True otherwise. An empty result is not a failure.
    """
    provision_config = pull_provision_config(app_yaml_path)
    if not provision_config:
        LOG.error('Unable to find a provisioning configuration. Run "mychembl provision init" first.')
        return False

    with closing(connect_readonly(provision_config, user=args.user)) as connection:
        headers, rows = execute_query(connection, args)

    if not rows:
        LOG.info("No results found.")
        return True
    print(tabulate(rows, headers=headers))
    return True
