##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Main entry point into mychembl's codebase.
"""

import logging
import sys
import traceback

from mychembl.cli.argparse_main import build_main_parser
from mychembl.log_formatter import setup_logging


LOG = logging.getLogger("mychembl")


def main():
    """
    Entry point for the mychembl command-line interface (CLI) operations.

    This function sets up the argument parser, handles command-line arguments,
    initializes logging, and executes the appropriate function based on the
    provided command. Any exception escaping a command is logged and turned
    into a non-zero exit code.
    """
    parser = build_main_parser()
    if len(sys.argv) == 1:
        parser.print_help(sys.stdout)
        return 1
    args = parser.parse_args()

    setup_logging(logger=LOG, log_level=args.level.upper(), colors=True)

    try:
        result = args.func(args)
        # pylint complains that this exception is too broad - being at the literal top of the program stack, it's ok.
    except Exception as excpt:  # pylint: disable=broad-except
        LOG.debug(traceback.format_exc())
        LOG.error(str(excpt))
        sys.exit(1)

    # Commands report failures they have already logged by returning False
    if result is False:
        sys.exit(1)
    sys.exit()


if __name__ == "__main__":
    main()
