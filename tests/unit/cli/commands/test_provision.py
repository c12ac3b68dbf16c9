##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `provision.py` file of the `cli/` folder.
"""

from argparse import Namespace

import pytest
from pytest_mock import MockerFixture

from mychembl.cli.commands.provision import ProvisionCommand
from tests.fixture_types import FixtureCallable


def test_add_parser_sets_up_provision_command(create_parser: FixtureCallable):
    """
    Test that the `provision` command parser sets up the expected defaults and subcommands.

    Args:
        create_parser: A fixture to help create a parser.
    """
    command = ProvisionCommand()
    parser = create_parser(command)
    args = parser.parse_args(["provision", "init"])
    assert hasattr(args, "func")
    assert args.func.__name__ == command.process_command.__name__
    assert args.commands == "init"


def test_run_subcommand_defaults(create_parser: FixtureCallable):
    """
    Test that `provision run` starts from the first step and really runs by default.

    Args:
        create_parser: A fixture to help create a parser.
    """
    parser = create_parser(ProvisionCommand())
    args = parser.parse_args(["provision", "run"])
    assert args.start_from is None
    assert args.dry_run is False


def test_run_subcommand_rejects_unknown_step(create_parser: FixtureCallable):
    """
    Test that `--start-from` only accepts step names.

    Args:
        create_parser: A fixture to help create a parser.
    """
    parser = create_parser(ProvisionCommand())
    with pytest.raises(SystemExit):
        parser.parse_args(["provision", "run", "--start-from", "not_a_step"])


def test_config_subcommand_parses_options(create_parser: FixtureCallable):
    """
    Test that the `provision config` options are parsed with their types.

    Args:
        create_parser: A fixture to help create a parser.
    """
    parser = create_parser(ProvisionCommand())
    args = parser.parse_args(
        [
            "provision",
            "config",
            "--version",
            "35",
            "-d",
            "/tmp/chembl",
            "-p",
            "5433",
            "--service-manager",
            "systemctl",
            "--add-user",
            "reader",
            "secret",
        ]
    )
    assert args.version == 35
    assert args.work_dir == "/tmp/chembl"
    assert args.port == 5433
    assert args.service_manager == "systemctl"
    assert args.add_user == ["reader", "secret"]
    assert args.remove_user is None
    assert args.sudo_password is None


@pytest.mark.parametrize(
    "subcommand, function_name",
    [
        ("init", "init_provision"),
        ("steps", "list_steps"),
        ("verify", "verify_provision"),
    ],
)
def test_process_command_calls_function(mocker: MockerFixture, subcommand: str, function_name: str):
    """
    Ensure argument-free subcommands call their provisioning function.

    Args:
        mocker: PyTest mocker fixture.
        subcommand: The provision subcommand to process.
        function_name: The function the subcommand should call.
    """
    mock = mocker.patch(f"mychembl.cli.commands.provision.{function_name}", return_value=True)
    assert ProvisionCommand().process_command(Namespace(commands=subcommand)) is True
    mock.assert_called_once_with()


def test_process_command_calls_status(mocker: MockerFixture):
    """
    Ensure `status` subcommand calls `status_provision` and reports no failure.

    Args:
        mocker: PyTest mocker fixture.
    """
    mock = mocker.patch("mychembl.cli.commands.provision.status_provision", return_value="ERROR")
    assert ProvisionCommand().process_command(Namespace(commands="status")) is None
    mock.assert_called_once()


def test_process_command_calls_run(mocker: MockerFixture):
    """
    Ensure `run` subcommand passes the starting step and dry run flag on.

    Args:
        mocker: PyTest mocker fixture.
    """
    mock = mocker.patch("mychembl.cli.commands.provision.run_provision", return_value=False)
    args = Namespace(commands="run", start_from="load_dump", dry_run=True)
    assert ProvisionCommand().process_command(args) is False
    mock.assert_called_once_with(start_from="load_dump", dry_run=True)


def test_process_command_calls_config(mocker: MockerFixture):
    """
    Ensure `config` subcommand calls `config_provision` with the parsed arguments.

    Args:
        mocker: PyTest mocker fixture.
    """
    mock = mocker.patch("mychembl.cli.commands.provision.config_provision", return_value=None)
    args = Namespace(commands="config", port=5433)
    ProvisionCommand().process_command(args)
    mock.assert_called_once_with(args)
