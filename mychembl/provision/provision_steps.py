##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The steps of the ChEMBL provisioning sequence.

Each step takes the [`ProvisionConfig`][provision.provision_util.ProvisionConfig]
and either completes or raises. Steps run in the order of `PROVISION_STEPS`; a step
consumes what an earlier step left in the work directory or in the database.
"""

import logging
import os
import shutil
import tarfile
from contextlib import closing
from typing import Callable, Dict, List, Tuple
from urllib.parse import urlparse

import requests
from psycopg2 import errors, sql

from mychembl.exceptions import DatabaseExistsError, DownloadError
from mychembl.provision.provision_config import database_exists, dump_load_manifest
from mychembl.provision.provision_util import PostgresConf, ProvisionConfig, ReadonlyUsers
from mychembl.utils import run_command


LOG = logging.getLogger("mychembl")

CHUNK_SIZE = 1024 * 1024
COPY_TERMINATOR = "\\."


def url_basename(url: str) -> str:
    """
    Returns the file name at the end of `url`.

    Example:
        ```python
        >>> url_basename("https://raw.githubusercontent.com/chembl/mychembl/master/indexes.sql")
        'indexes.sql'
        ```
    """
    return os.path.basename(urlparse(url).path)


def fetch_file(url: str, dest: str, timeout: float = None) -> str:
    """
    Streams `url` to `dest`.

    Args:
        url: The remote file.
        dest: The local path to write to.
        timeout: Seconds to wait for the server; `None` waits indefinitely.

    Returns:
        The path the file was written to.

    Raises:
        DownloadError: If the request fails or the server answers with an error status.
    """
    LOG.info(f"Fetching {url}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(dest, "wb") as outfile:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        outfile.write(chunk)
    except requests.exceptions.RequestException as exc:
        if os.path.exists(dest):
            os.remove(dest)
        raise DownloadError(url, str(exc)) from exc
    LOG.debug(f"Saved {url} to {dest}")
    return dest


def extract_archive(archive: str, dest_dir: str):
    """
    Extracts a (compressed) tar archive into `dest_dir` and deletes the archive
    once extraction succeeded.

    Raises:
        tarfile.TarError: If the archive cannot be read.
    """
    LOG.info(f"Extracting {os.path.basename(archive)}")
    with tarfile.open(archive, "r:*") as tar:
        tar.extractall(path=dest_dir)  # nosec B202
    os.remove(archive)
    LOG.debug(f"Removed {archive}")


def count_dump_rows(dump_path: str) -> Dict[str, int]:
    """
    Counts the data rows of every `COPY ... FROM stdin` block in a plain-text SQL dump.

    Args:
        dump_path: The path to the dump.

    Returns:
        A dict mapping each table name, as written in the dump, to its number of rows.

    Example:
        A dump containing
        ```
        COPY public.version (name, creation_date, comments) FROM stdin;
        ChEMBL_19	2014-07-23	ChEMBL Release 19
        \\.
        ```
        yields `{"public.version": 1}`.
    """
    counts = {}
    table = None
    with open(dump_path, "r", encoding="utf-8", errors="replace") as dump:
        for line in dump:
            line = line.rstrip("\n")
            if table is not None:
                if line == COPY_TERMINATOR:
                    table = None
                else:
                    counts[table] += 1
            elif line.startswith("COPY ") and line.endswith("FROM stdin;"):
                table = line.split()[1].replace('"', "")
                counts.setdefault(table, 0)
    return counts


def run_privileged(provision_config: ProvisionConfig, command: str):
    """
    Runs `command` through the configured elevated-privilege template, feeding the
    `sudo` password on stdin when one is configured.
    """
    password = provision_config.system.get_sudo_password()
    if password is None:
        run_command(provision_config.service_format.get_sudo_command(command, password_on_stdin=False))
        return
    run_command(provision_config.service_format.get_sudo_command(command), input_text=f"{password}\n")


def fetch_archives(provision_config: ProvisionConfig):
    """Fetch the target prediction models and the PostgreSQL dump archives."""
    work_dir = provision_config.install.get_work_dir()
    timeout = provision_config.remote.get_timeout()
    for url in provision_config.remote.get_archive_urls():
        fetch_file(url, os.path.join(work_dir, url_basename(url)), timeout=timeout)


def extract_archives(provision_config: ProvisionConfig):
    """Extract both archives in the work directory and delete them."""
    work_dir = provision_config.install.get_work_dir()
    for url in provision_config.remote.get_archive_urls():
        extract_archive(os.path.join(work_dir, url_basename(url)), work_dir)


def create_database(provision_config: ProvisionConfig):
    """Create the empty ChEMBL database for this release."""
    database = provision_config.install.get_database_name()
    if database_exists(provision_config, database):
        raise DatabaseExistsError(database)

    db_config = provision_config.database
    with closing(db_config.connect(db_config.maintenance_db)) as connection:
        # CREATE DATABASE cannot run inside a transaction block
        connection.autocommit = True
        with connection.cursor() as cursor:
            try:
                cursor.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(database)))
            except errors.DuplicateDatabase as exc:
                raise DatabaseExistsError(database) from exc
    LOG.info(f"Created database {database}")


def load_dump(provision_config: ProvisionConfig):
    """Bulk-load the SQL dump into the ChEMBL database."""
    database = provision_config.install.get_database_name()
    dump_path = os.path.join(provision_config.install.get_work_dir(), provision_config.remote.get_dump_file())
    if not os.path.exists(dump_path):
        raise FileNotFoundError(f"Unable to find the SQL dump at {dump_path}")

    tables = count_dump_rows(dump_path)
    manifest = {"database": database, "dump_file": os.path.basename(dump_path), "tables": tables}
    dump_load_manifest(manifest, provision_config.install.get_manifest_path())
    LOG.info(f"Loading {len(tables)} tables from {os.path.basename(dump_path)} into {database}")

    run_command(provision_config.database.get_load_command(database, dump_path))


def install_configuration(provision_config: ProvisionConfig):
    """Overwrite the PostgreSQL and kernel configuration files with elevated privileges."""
    work_dir = provision_config.install.get_work_dir()
    timeout = provision_config.remote.get_timeout()
    for url, dest in provision_config.system.get_config_files():
        local_copy = os.path.join(work_dir, os.path.basename(dest))
        try:
            fetch_file(url, local_copy, timeout=timeout)
            if os.path.basename(dest) == "postgresql.conf":
                apply_postgres_overrides(provision_config, local_copy)
            run_privileged(provision_config, provision_config.service_format.get_install_command(local_copy, dest))
            LOG.info(f"Installed {dest}")
        finally:
            if os.path.exists(local_copy):
                os.remove(local_copy)


def apply_postgres_overrides(provision_config: ProvisionConfig, conf_path: str):
    """
    Forces the configured port and any `system.overrides` settings into a fetched
    `postgresql.conf`, so the installed server listens where the client expects it.
    """
    postgres_conf = PostgresConf(conf_path)
    postgres_conf.set_port(provision_config.database.port)
    for key, value in provision_config.system.get_overrides().items():
        postgres_conf.set_config_value(key, value)
    if postgres_conf.changes_made():
        postgres_conf.write()


def restart_service(provision_config: ProvisionConfig):
    """Restart PostgreSQL so the new configuration takes effect."""
    run_privileged(provision_config, provision_config.service_format.get_restart_command())
    LOG.info("PostgreSQL restarted")


def enable_extension(provision_config: ProvisionConfig):
    """Enable the chemistry extension in the ChEMBL database."""
    db_config = provision_config.database
    with closing(db_config.connect(provision_config.install.get_database_name())) as connection:
        with connection.cursor() as cursor:
            cursor.execute(sql.SQL("CREATE EXTENSION {}").format(sql.Identifier(db_config.extension)))
        connection.commit()
    LOG.info(f"Extension {db_config.extension} enabled")


def apply_scripts(provision_config: ProvisionConfig):
    """Fetch and apply the index and web application SQL scripts, deleting each afterwards."""
    database = provision_config.install.get_database_name()
    work_dir = provision_config.install.get_work_dir()
    for url in provision_config.remote.get_script_urls():
        script = os.path.join(work_dir, url_basename(url))
        try:
            fetch_file(url, script, timeout=provision_config.remote.get_timeout())
            run_command(provision_config.database.get_script_command(database, script))
            LOG.info(f"Applied {os.path.basename(script)}")
        finally:
            if os.path.exists(script):
                os.remove(script)


def create_readonly_user(provision_config: ProvisionConfig):
    """Create the read-only roles and grant them SELECT on every table of their schemas."""
    readonly_users = ReadonlyUsers(provision_config.readonly.get_user_file_path())
    if not readonly_users.users:
        raise ValueError(
            f"No read-only users found in {readonly_users.filename}. Run 'mychembl provision init' to create one."
        )
    db_config = provision_config.database
    with closing(db_config.connect(provision_config.install.get_database_name())) as connection:
        readonly_users.apply_to_postgres(connection)


def cleanup(provision_config: ProvisionConfig):
    """Remove the extracted dump directory."""
    dump_dir = os.path.join(provision_config.install.get_work_dir(), provision_config.remote.get_dump_dir())
    if os.path.exists(dump_dir):
        shutil.rmtree(dump_dir)
        LOG.info(f"Removed {dump_dir}")
    else:
        LOG.info(f"{dump_dir} was already removed.")


PROVISION_STEPS: List[Tuple[str, Callable[[ProvisionConfig], None]]] = [
    ("fetch_archives", fetch_archives),
    ("extract_archives", extract_archives),
    ("create_database", create_database),
    ("load_dump", load_dump),
    ("install_configuration", install_configuration),
    ("restart_service", restart_service),
    ("enable_extension", enable_extension),
    ("apply_scripts", apply_scripts),
    ("create_readonly_user", create_readonly_user),
    ("cleanup", cleanup),
]
