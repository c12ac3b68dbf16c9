##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Fixtures specifically for help testing the modules in the provision/ directory.
"""

import os
from argparse import Namespace
from typing import Dict

import pytest
import yaml
from pytest_mock import MockerFixture

from mychembl.provision.provision_util import ProvisionConfig, ReadonlyUsers
from tests.fixture_types import FixtureCallable, FixtureDict, FixtureNamespace, FixtureStr


# pylint: disable=redefined-outer-name


POSTGRES_CONF_CONTENTS = """
# -----------------------------
# PostgreSQL configuration file
# -----------------------------

listen_addresses = '*'\t\t# what IP address(es) to listen on;
port = 5432\t\t\t\t# (change requires restart)
max_connections 100
log_line_prefix = '%t # %u '   # special values
shared_buffers = 128MB

# trailing comment
""".lstrip()

DUMP_CONTENTS = """--
-- PostgreSQL database dump
--

SET statement_timeout = 0;

CREATE TABLE molecule_dictionary (
    molregno integer NOT NULL,
    pref_name character varying(255),
    chembl_id character varying(20) NOT NULL,
    max_phase smallint
);

COPY molecule_dictionary (molregno, pref_name, chembl_id, max_phase) FROM stdin;
1\t\\N\tCHEMBL6329\t0
2\t\\N\tCHEMBL6328\t0
97\tASPIRIN\tCHEMBL25\t4
\\.

COPY public.version (name, creation_date, comments) FROM stdin;
ChEMBL_19\t2014-07-23\tChEMBL Release 19
\\.

COPY "assays" (assay_id, description) FROM stdin;
\\.

--
-- PostgreSQL database dump complete
--
"""


@pytest.fixture(scope="session")
def provision_testing_dir(create_testing_dir: FixtureCallable, temp_output_dir: FixtureStr) -> FixtureStr:
    """
    Fixture to create a temporary output directory for tests related to the provision functionality.

    Args:
        create_testing_dir: A fixture which returns a function that creates the testing directory.
        temp_output_dir: The path to the temporary ouptut directory we'll be using for this test run.

    Returns:
        The path to the temporary testing directory for provision tests.
    """
    return create_testing_dir(temp_output_dir, "provision_testing")


@pytest.fixture(scope="session")
def provision_postgres_conf_file(provision_testing_dir: FixtureStr) -> FixtureStr:
    """
    Fixture to write a postgresql.conf file to the temporary output directory.

    If a test will modify this file with a file write, you should make a copy of
    this file to modify instead.

    :param provision_testing_dir: A pytest fixture that defines a path to the output directory we'll write to
    :returns: The path to the postgresql configuration file we'll use for testing
    """
    conf_file = os.path.join(provision_testing_dir, "postgresql.conf")
    with open(conf_file, "w") as pcf:
        pcf.write(POSTGRES_CONF_CONTENTS)
    return conf_file


@pytest.fixture(scope="session")
def provision_dump_file(provision_testing_dir: FixtureStr) -> FixtureStr:
    """
    Fixture to write a small plain-text SQL dump with three `COPY` blocks:
    `molecule_dictionary` (3 rows), `public.version` (1 row) and `assays` (no rows).

    :param provision_testing_dir: A pytest fixture that defines a path to the output directory we'll write to
    :returns: The path to the dump
    """
    dump_file = os.path.join(provision_testing_dir, "chembl_19.pgdump.sql")
    with open(dump_file, "w") as dump:
        dump.write(DUMP_CONTENTS)
    return dump_file


@pytest.fixture
def provision_config_dir(tmp_path) -> FixtureStr:
    """
    A fresh configuration directory for each test, so tests that write `app.yaml`,
    password or user files never see each other's files.

    :param tmp_path: A built-in fixture from pytest that gives a unique temporary directory
    :returns: The path to the configuration directory
    """
    config_dir = tmp_path / "mychembl_provision"
    config_dir.mkdir()
    return str(config_dir)


@pytest.fixture
def provision_app_yaml_contents(provision_config_dir: FixtureStr) -> FixtureDict[str, Dict]:
    """
    Fixture to create the contents of an app.yaml file.

    :param provision_config_dir: The configuration directory of this test
    :returns: A dict with typical app.yaml contents
    """
    return {
        "install": {
            "version": 19,
            "database": "chembl_{version}",
            "config_dir": provision_config_dir,
            "work_dir": os.path.join(provision_config_dir, "work"),
            "manifest": "load_manifest.yaml",
        },
        "remote": {
            "models_url": "https://example.org/chembl_{version}_models.tar.gz",
            "dump_url": "https://example.org/chembl_{version}/chembl_{version}_postgresql.tar.gz",
            "dump_dir": "chembl_{version}_postgresql",
            "dump_file": "chembl_{version}.pgdump.sql",
            "scripts": ["https://example.org/mychembl/indexes.sql", "https://example.org/webapp/webapp.sql"],
            "timeout": None,
        },
        "system": {
            "format": "service",
            "postgres_version": "9.1",
            "sudo_pass_file": "sudo.pass",
            "config_files": [
                {
                    "url": "https://example.org/configuration/mychembl_postgresql.conf",
                    "dest": "/etc/postgresql/{postgres_version}/main/postgresql.conf",
                },
                {"url": "https://example.org/configuration/mychembl_sysctl.conf", "dest": "/etc/sysctl.conf"},
            ],
            "overrides": {},
        },
        "database": {
            "host": None,
            "port": 5432,
            "owner": "chembl",
            "extension": "rdkit",
            "maintenance_db": "postgres",
        },
        "readonly": {"user": "mychembl", "user_file": "readonly.users", "pass_file": "readonly.pass"},
    }


@pytest.fixture
def provision_app_yaml(provision_config_dir: FixtureStr, provision_app_yaml_contents: FixtureDict[str, Dict]) -> FixtureStr:
    """
    Fixture to write an app.yaml file into the configuration directory of this test.

    :param provision_config_dir: The configuration directory of this test
    :param provision_app_yaml_contents: A pytest fixture that creates a dict of contents for an app.yaml file
    :returns: The path to the app.yaml file
    """
    app_yaml_file = os.path.join(provision_config_dir, "app.yaml")
    with open(app_yaml_file, "w") as ayf:
        yaml.dump(provision_app_yaml_contents, ayf)
    return app_yaml_file


@pytest.fixture
def provision_service_format_data() -> FixtureDict[str, str]:
    """
    Fixture to provide sample data for ServiceFormatConfig tests

    :returns: A dict containing the necessary key/values for the ServiceFormatConfig object
    """
    return {
        "sudo_command": "sudo -S {command}",
        "install_command": "cp {source} {dest}",
        "restart_command": "service postgresql restart",
    }


@pytest.fixture
def provision_config(
    provision_app_yaml_contents: FixtureDict[str, Dict], provision_service_format_data: FixtureDict[str, str]
) -> ProvisionConfig:
    """
    A `ProvisionConfig` built from the app.yaml contents and the `service` command templates.

    :param provision_app_yaml_contents: A pytest fixture that creates a dict of contents for an app.yaml file
    :param provision_service_format_data: A pytest fixture of service manager command templates
    :returns: The loaded configuration
    """
    data = dict(provision_app_yaml_contents)
    data["service"] = provision_service_format_data
    return ProvisionConfig(data)


@pytest.fixture
def provision_users_file(provision_config_dir: FixtureStr) -> FixtureStr:
    """
    Fixture to write a readonly.users file holding the `mychembl` role.

    :param provision_config_dir: The configuration directory of this test
    :returns: The path to the users file
    """
    users_file = os.path.join(provision_config_dir, "readonly.users")
    readonly_users = ReadonlyUsers(users_file)
    readonly_users.add_user("mychembl", "read")
    readonly_users.write()
    return users_file


@pytest.fixture
def provision_config_args() -> FixtureNamespace:
    """
    Setup an argparse Namespace with all args that the `config_provision`
    function will need. These can be modified on a test-by-test basis.

    :returns: An argparse Namespace with args needed by `config_provision`
    """
    return Namespace(
        version=None,
        work_dir=None,
        postgres_version=None,
        host=None,
        port=None,
        owner=None,
        service_manager=None,
        sudo_password=None,
        add_user=None,
        remove_user=None,
    )


@pytest.fixture
def mock_connection(mocker: MockerFixture) -> "MagicMock":  # noqa: F821
    """
    A stand-in for a `psycopg2` connection. Its cursor is used as a context manager,
    so the cursor tests inspect is `mock_connection.cursor.return_value.__enter__.return_value`.

    :param mocker: A built-in fixture from the pytest-mock library to create a Mock object
    :returns: The mocked connection
    """
    connection = mocker.MagicMock(name="connection")
    cursor = mocker.MagicMock(name="cursor")
    connection.cursor.return_value.__enter__.return_value = cursor
    return connection
