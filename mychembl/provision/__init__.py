##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The `provision` package builds a local ChEMBL database on a PostgreSQL server with
the RDKit chemistry extension.

Modules:
    provision_commands.py: Main functions behind the `mychembl provision` commands.
    provision_config.py: Provisioning configuration and status functions.
    provision_steps.py: The ordered steps of the provisioning sequence.
    provision_util.py: Defines the structure of our provisioning configuration.
    provision_verify.py: Checks run against a provisioned installation.
"""
