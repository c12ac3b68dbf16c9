##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Checks run against a provisioned ChEMBL installation.

Every check returns a `(passed, detail)` tuple so the results can be tabulated.
"""

import logging
import os
from contextlib import closing
from typing import List, Tuple

import psycopg2
from psycopg2 import sql

from mychembl.provision.provision_config import pull_load_manifest
from mychembl.provision.provision_steps import url_basename
from mychembl.provision.provision_util import WRITE_PRIVILEGES, ProvisionConfig, ReadonlyUsers


LOG = logging.getLogger("mychembl")

CheckResult = Tuple[bool, str]

TABLE_PRIVILEGE_QUERY = """
SELECT c.relname,
       has_table_privilege(%(role)s, c.oid, 'SELECT'),
       {write_checks}
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema)s AND c.relkind IN ('r', 'p')
ORDER BY c.relname
"""

SCHEMA_CREATE_QUERY = "SELECT has_schema_privilege(%(role)s, %(schema)s, 'CREATE')"


def check_database_queryable(connection) -> CheckResult:
    """The database answers a trivial query."""
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return True, "database answered SELECT 1"


def check_extension_enabled(connection, extension: str) -> CheckResult:
    """The chemistry extension is installed in the database."""
    with connection.cursor() as cursor:
        cursor.execute("SELECT extversion FROM pg_extension WHERE extname = %s", (extension,))
        row = cursor.fetchone()
    if row is None:
        return False, f"extension {extension} is not enabled"
    return True, f"{extension} {row[0]}"


def qualified_table(table: str) -> sql.Composed:
    """
    Quote a table name from the load manifest, which may or may not carry a schema.

    Example:
        ```python
        >>> qualified_table("public.molecule_dictionary")
        Composed([Identifier('public'), SQL('.'), Identifier('molecule_dictionary')])
        ```
    """
    if "." in table:
        schema, name = table.split(".", 1)
        return sql.SQL(".").join([sql.Identifier(schema), sql.Identifier(name)])
    return sql.SQL(".").join([sql.Identifier("public"), sql.Identifier(table)])


def check_row_counts(connection, manifest_path: str) -> CheckResult:
    """Every table holds exactly as many rows as the dump carried."""
    manifest = pull_load_manifest(manifest_path)
    if manifest is None:
        return False, f"no valid load manifest at {manifest_path}"

    mismatches = []
    with connection.cursor() as cursor:
        for table, expected in sorted(manifest["tables"].items()):
            cursor.execute(sql.SQL("SELECT count(*) FROM {}").format(qualified_table(table)))
            actual = cursor.fetchone()[0]
            if actual != expected:
                mismatches.append(f"{table}: expected {expected}, found {actual}")

    if mismatches:
        return False, "; ".join(mismatches)
    return True, f"{len(manifest['tables'])} tables match the dump"


def check_readonly_role(connection, role: str, schemas: List[str]) -> CheckResult:
    """`role` can SELECT from every table of its schemas and holds no write or CREATE privilege there."""
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1 FROM pg_roles WHERE rolname = %s", (role,))
        if cursor.fetchone() is None:
            return False, f"role {role} does not exist"

        write_checks = " OR ".join(f"has_table_privilege(%(role)s, c.oid, '{priv}')" for priv in WRITE_PRIVILEGES)
        query = TABLE_PRIVILEGE_QUERY.format(write_checks=f"({write_checks})")

        unreadable, writable, creatable, total = [], [], [], 0
        for schema in schemas:
            cursor.execute(SCHEMA_CREATE_QUERY, {"role": role, "schema": schema})
            if cursor.fetchone()[0]:
                creatable.append(schema)

            cursor.execute(query, {"role": role, "schema": schema})
            for table, can_select, can_write in cursor.fetchall():
                total += 1
                if not can_select:
                    unreadable.append(f"{schema}.{table}")
                if can_write:
                    writable.append(f"{schema}.{table}")

    problems = []
    if unreadable:
        problems.append(f"cannot read {', '.join(unreadable)}")
    if writable:
        problems.append(f"can write {', '.join(writable)}")
    if creatable:
        problems.append(f"can create tables in {', '.join(creatable)}")
    if problems:
        return False, f"{role}: " + "; ".join(problems)
    return True, f"{role}: read-only on {total} tables"


def find_leftover_files(provision_config: ProvisionConfig) -> List[str]:
    """
    Lists the temporary archives, scripts, configuration copies and dump directory still
    present in the work directory.
    """
    work_dir = provision_config.install.get_work_dir()
    candidates = [url_basename(url) for url in provision_config.remote.get_archive_urls()]
    candidates += [url_basename(url) for url in provision_config.remote.get_script_urls()]
    candidates += [os.path.basename(dest) for _, dest in provision_config.system.get_config_files()]
    candidates.append(provision_config.remote.get_dump_dir())
    return [name for name in candidates if os.path.exists(os.path.join(work_dir, name))]


def check_no_leftovers(provision_config: ProvisionConfig) -> CheckResult:
    """No temporary file remains in the work directory."""
    leftovers = find_leftover_files(provision_config)
    if leftovers:
        return False, f"left in {provision_config.install.get_work_dir()}: {', '.join(leftovers)}"
    return True, "work directory is clean"


def run_checks(provision_config: ProvisionConfig) -> List[Tuple[str, bool, str]]:
    """
    Runs every check against the installation described by `provision_config`.

    If the database cannot be reached, the checks that need a connection are all
    reported as failed with the connection error.

    Returns:
        A list of `(check name, passed, detail)` tuples.
    """
    database = provision_config.install.get_database_name()
    db_config = provision_config.database
    readonly_users = ReadonlyUsers(provision_config.readonly.get_user_file_path())
    results = []

    try:
        with closing(db_config.connect(database)) as connection:
            results.append(("database", *check_database_queryable(connection)))
            results.append(("extension", *check_extension_enabled(connection, db_config.extension)))
            results.append(("row counts", *check_row_counts(connection, provision_config.install.get_manifest_path())))
            for name, user in sorted(readonly_users.users.items()):
                results.append(("read-only role", *check_readonly_role(connection, name, user.schemas)))
    except psycopg2.Error as exc:
        LOG.debug(f"Verification query failed: {exc}")
        reason = str(exc).strip().splitlines()[0] if str(exc).strip() else type(exc).__name__
        checked = {name for name, _, _ in results}
        for name in ("database", "extension", "row counts", "read-only role"):
            if name not in checked:
                results.append((name, False, reason))

    results.append(("temporary files", *check_no_leftovers(provision_config)))
    return results
