##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Module for project-wide utility functions.
"""
import getpass
import logging
import shlex
import subprocess
from typing import Dict, List, Union

import psutil
import yaml

from mychembl.exceptions import CommandFailedError


LOG = logging.getLogger(__name__)


def get_user_process_info(user: str = None, attrs: List[str] = None) -> List[Dict]:
    """
    Return a list of process information for all of the user's running processes.

    Args:
        user: The username for which to retrieve process information. If set to
            'all_users', retrieves processes for all users. Defaults to the current
            user's username if not provided.
        attrs: A list of attributes to include in the process information. Defaults
            to ["pid", "name", "username", "cmdline"] if None.

    Returns:
        A list of dictionaries containing the specified attributes for each process
            belonging to the specified user or all users if 'all_users' is specified.
    """
    if attrs is None:
        attrs = ["pid", "name", "username", "cmdline"]

    if "username" not in attrs:
        attrs.append("username")

    if user is None:
        user = getpass.getuser()

    if user == "all_users":
        return [p.info for p in psutil.process_iter(attrs=attrs)]
    return [p.info for p in psutil.process_iter(attrs=attrs) if user == p.info["username"]]


def is_running_psutil(cmd: str, user: str = None) -> bool:
    """
    Determine if a process with the given command is currently running.

    Args:
        cmd: The command or command line snippet to search for in running
            processes.
        user: The username for which to check running processes. If set to
            'all_users', checks processes for all users. Defaults to the
            current user's username if not provided.

    Returns:
        True if at least one matching process is found; otherwise, False.
    """
    user_processes = get_user_process_info(user=user)
    return any(cmd in " ".join(p["cmdline"] or []) for p in user_processes)


def load_yaml(filepath: str) -> Dict:
    """
    Safely read a YAML file and return its contents.

    Args:
        filepath: The file path to the YAML file to be read.

    Returns:
        A dict representing the contents of the YAML file.
    """
    with open(filepath, "r") as _file:
        return yaml.safe_load(_file)


def run_command(command: Union[str, List[str]], input_text: str = None, cwd: str = None) -> subprocess.CompletedProcess:
    """
    Run an external command to completion and raise if it fails.

    The command waits for the process to exit; there is no timeout and no retry.

    Args:
        command: The command to run, either as a list of arguments or a string
            that will be split with shell-like syntax.
        input_text: Text to send to the process' stdin (e.g. a password for `sudo -S`).
        cwd: The directory to run the command from.

    Returns:
        The completed process object.

    Raises:
        CommandFailedError: If the process exits with a non-zero return code.
    """
    if isinstance(command, str):
        command = shlex.split(command)
    LOG.debug(f"Running command: {' '.join(command)}")

    process = subprocess.run(command, input=input_text, capture_output=True, text=True, cwd=cwd)  # nosec B603

    if process.returncode != 0:
        raise CommandFailedError(command, process.returncode, process.stderr)
    return process
