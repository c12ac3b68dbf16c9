##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The `cli` package builds the `mychembl` command-line interface.

Modules:
    argparse_main.py: The top-level parser with its global options.

Subpackages:
    commands: One module per top-level command.
"""
