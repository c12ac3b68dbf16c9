##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
mychembl: provisioning and querying a local ChEMBL database.

This module contains the source code for mychembl.
"""

__version__ = "1.0.0"
VERSION = __version__
