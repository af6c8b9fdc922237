# Module: console.py
# Console output, logging and the preflight checks shared by batch and menu mode.

# ==============================
# Imports
# ==============================

# Standard library
import fcntl
import logging
import logging.handlers
import os
import sys

# Third-party
from colorama import Fore, Style, just_fix_windows_console

from usermatic import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

just_fix_windows_console()

_COLOR_MONO = False

# Lockfile so two runs don't stampede each other
_LOCK_FH = None

#===================#
# Colour / output   #
#===================#

def fncSetColorMode(monochrome: bool):
    """Call once after parsing args to disable colours when needed."""
    global _COLOR_MONO
    _COLOR_MONO = bool(monochrome)

def fncWantColor(stream=None) -> bool:
    """Decide if we should output ANSI colours."""
    if _COLOR_MONO:
        return False
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    try:
        return (stream or sys.stdout).isatty()
    except Exception:
        return False

# Function: fncPrintMessage
# Purpose : Human-friendly colored console messages.
# Notes   : Used for important user-facing prints (not logs).
def fncPrintMessage(message, msg_type="info"):
    styles = {
        "info":    (Fore.CYAN,  "{~} "),
        "warning": (Fore.YELLOW, "{!} "),
        "success": (Fore.GREEN, "{=]} "),
        "error":   (Fore.RED,   "{!} "),
        "plain":   ("",         ""),
    }
    colour, prefix = styles.get(msg_type, (Fore.WHITE, ""))
    if fncWantColor() and colour:
        print(f"{colour}{prefix}{message}{Style.RESET_ALL}")
    else:
        print(f"{prefix}{message}")

#===================#
# Logging           #
#===================#

# Function: fncSetupLogging
# Purpose : Configure logging to file, stdout and (optionally) local syslog.
# Notes   : INFO for changes; DEBUG for verbose diagnostics. A handler that
#           cannot be opened is skipped with a warning, never fatal.
def fncSetupLogging(verbose: bool = False):
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    try:
        os.makedirs(os.path.dirname(settings.LOG_FILE), exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE))
    except OSError as e:
        fncPrintMessage(f"Couldn't open log file {settings.LOG_FILE} ({e}); logging to stdout only", "warning")

    if settings.USE_SYSLOG and os.path.exists("/dev/log"):
        try:
            syslog = logging.handlers.SysLogHandler(
                address="/dev/log", facility=logging.handlers.SysLogHandler.LOG_USER
            )
            syslog.ident = f"{settings.LOG_TAG}: "
            syslog.setLevel(logging.INFO)
            handlers.append(syslog)
        except OSError as e:
            fncPrintMessage(f"Couldn't connect to syslog ({e}); continuing without it", "warning")

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    logging.debug("Logging to %d handler(s)", len(handlers))

#===================#
# Preflight         #
#===================#

# Function: fncCheckPyVersion
# Purpose : Fail fast on unsupported Python versions.
# Notes   : Requires Python >= MIN_PYTHON_VERSION.
def fncCheckPyVersion():
    if sys.version_info < settings.MIN_PYTHON_VERSION:
        wanted = ".".join(str(p) for p in settings.MIN_PYTHON_VERSION)
        fncPrintMessage(f"This script requires Python {wanted} or higher. Please upgrade.", "error")
        sys.exit(1)

# Function: fncAdminCheck
# Purpose : Ensure the process runs as root when ADMIN_REQUIRED is True.
def fncAdminCheck():
    if settings.ADMIN_REQUIRED and os.geteuid() != 0:
        fncPrintMessage("This needs root. Try sudo; account and group changes can't be made otherwise", "error")
        sys.exit(1)

def fncAcquireLock():
    """Acquire an exclusive lock to prevent concurrent runs."""
    global _LOCK_FH
    lock_path = os.path.join(settings.STATE_DIR, ".lock")
    try:
        os.makedirs(settings.STATE_DIR, exist_ok=True)
        _LOCK_FH = open(lock_path, "w")
        os.chmod(lock_path, 0o600)
        fcntl.lockf(_LOCK_FH, fcntl.LOCK_EX | fcntl.LOCK_NB)
        logging.debug("Acquired lock: %s", lock_path)
    except BlockingIOError:
        fncPrintMessage("Another instance of usermatic is already running.", "warning")
        sys.exit(1)
    except OSError as e:
        fncPrintMessage(f"Failed to acquire lock ({lock_path}): {e}", "error")
        sys.exit(1)
