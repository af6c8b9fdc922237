# Module: cli.py
# Program entry point: preflight checks, logging, run lock, then batch or menu.
#
#   usermatic --file users.txt    batch mode
#   usermatic                     interactive menu

# ==============================
# Imports
# ==============================

# Standard library
import argparse
import logging
import sys

from usermatic import __version__, settings
from usermatic.console import (
    fncAcquireLock,
    fncAdminCheck,
    fncCheckPyVersion,
    fncPrintMessage,
    fncSetColorMode,
    fncSetupLogging,
)
from usermatic.directory import SystemDirectory
from usermatic.menu import fncMainMenu
from usermatic.reconcile import StreamAccessError, fncReadLines, fncRunBatch


def fncBuildParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usermatic",
        description="Create local accounts and groups from a batch file, or manage them from a menu",
    )
    parser.add_argument("-f", "--file", metavar="FILE",
                        help="Batch input: one 'user[,group,...]' record per line")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--no-color", action="store_true", help="Disable coloured output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser

# Function: fncBatchMode
# Purpose : Read the input file, run the batch, print the summary.
# Notes   : Returns the exit status; only an unreadable input is fatal.
def fncBatchMode(path: str, directory=None) -> int:
    logging.info("Started in batch mode (%s)", path)
    try:
        lines = fncReadLines(path)
    except StreamAccessError as e:
        logging.error("Error: %s", e)
        fncPrintMessage(f"Error: {e}", "error")
        return 1

    summary = fncRunBatch(lines, directory or SystemDirectory())

    fncPrintMessage("Batch processing complete", "success" if summary.failures == 0 else "warning")
    for line in summary.lines():
        fncPrintMessage(line, "plain")
    if summary.failures:
        fncPrintMessage("Some records failed; fix them and re-run, existing accounts are left untouched", "warning")
    return 0

def fncInteractiveMode(directory=None) -> int:
    logging.info("Started in interactive mode")
    fncMainMenu(directory or SystemDirectory())
    return 0

#=================#
# Script harness  #
#=================#

# Function: fncMain
# Purpose : Program entrypoint; preflight checks, logging, locking, robust error handling.
# Notes   : Exits with the mode's status; 1 on unexpected errors.
def fncMain(argv: list[str] | None = None):
    args = fncBuildParser().parse_args(argv)
    fncSetColorMode(args.no_color)
    fncCheckPyVersion()

    settings.fncLoadEnvFile()
    settings.fncApplyEnvironment()

    try:
        fncAdminCheck()
        fncSetupLogging(args.verbose)
        logging.info("User management script started")
        fncAcquireLock()
        if args.file:
            rc = fncBatchMode(args.file)
        else:
            rc = fncInteractiveMode()
    except KeyboardInterrupt:
        fncPrintMessage("Bye then...", "error")
        sys.exit(130)
    except Exception as e:
        logging.exception("Unhandled exception: %s", e)
        sys.exit(1)
    sys.exit(rc)
