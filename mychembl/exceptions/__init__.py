##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Module of all mychembl-specific exception types.
"""

from typing import List, Union


__all__ = (
    "CommandFailedError",
    "DownloadError",
    "DatabaseExistsError",
    "ProvisionStepError",
)


class CommandFailedError(Exception):
    """
    Exception to signal that an external tool (psql, sudo, service, ...)
    exited with a non-zero return code.
    """

    def __init__(self, command: Union[str, List[str]], returncode: int, stderr: str = ""):
        if isinstance(command, list):
            command = " ".join(command)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command '{command}' exited with return code {returncode}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


class DownloadError(Exception):
    """
    Exception to signal that a remote file could not be fetched.
    """

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Unable to download {url}: {reason}")


class DatabaseExistsError(Exception):
    """
    Exception to signal that the database a provisioning run would create
    already exists.
    """

    def __init__(self, database: str):
        self.database = database
        super().__init__(f"Database '{database}' already exists")


class ProvisionStepError(Exception):
    """
    Exception raised by the provisioning sequence when one of its steps fails.
    The sequence halts; nothing that was already applied is rolled back.
    """

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"Provisioning step '{step}' failed: {cause}")
