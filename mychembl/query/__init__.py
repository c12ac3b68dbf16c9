##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The `query` package holds read-only demonstration queries against a provisioned
ChEMBL database.

Modules:
    chembl_queries.py: The SQL behind each query and the functions that run it.
    query_commands.py: Main functions behind the `mychembl query` commands.
"""
