# Module: settings.py
# Global settings for usermatic. Every default below can be overridden from
# the environment (or from the env file, see fncLoadEnvFile).

# ==============================
# Imports
# ==============================

# Standard library
import logging
import os
import re

#=================#
# Global Settings #
#=================#

MIN_PYTHON_VERSION = (3, 11)

#-----------------------------#
# Defaults (env-overridable)  #
#-----------------------------#
ENV_FILE = "/etc/usermatic.env"          # KEY=value lines, read once at start-up

ADMIN_REQUIRED = True                    # Script requires root
DEFAULT_SHELL = "/bin/bash"              # e.g. /bin/bash or /bin/zsh

LOG_FILE = "/var/log/usermatic/usermatic.log"
LOG_TAG = "user_project"                 # syslog ident for the audit trail
USE_SYSLOG = True

BACKUP_DIR = "/var/backups/user_homes"   # home archives taken before userdel
STATE_DIR = "/var/lib/usermatic"

#------------------------------#
# Pinned binaries for exec     #
#------------------------------#
BIN = {
  "id":       "/usr/bin/id",
  "getent":   "/usr/bin/getent",
  "useradd":  "/usr/sbin/useradd",
  "usermod":  "/usr/sbin/usermod",
  "userdel":  "/usr/sbin/userdel",
  "passwd":   "/usr/bin/passwd",
  "groupadd": "/usr/sbin/groupadd",
  "groupdel": "/usr/sbin/groupdel",
  "tar":      "/usr/bin/tar",
}

# KEY=value, KEY='value' or KEY="value", optional trailing comment
ENV_ASSIGN_RE = re.compile(r"""^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(?:'([^']*)'|"([^"]*)"|([^\s#]*))\s*(?:#.*)?$""")

#===========================#
# Environment Overlay Utils #
#===========================#

# Function: _env_bool
# Purpose : Read boolean-like env vars with a default.
# Notes   : Accepts 1/true/yes/y/on (case-insensitive).
def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")

# Function: _env_str
# Purpose : Return stripped string from env with default fallback.
# Notes   : Blank values fall back to the default too.
def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return v.strip()

# Function: fncParseEnvText
# Purpose : Parse the text of an env file into a dict.
# Notes   : Skips blanks, comments and lines that are not assignments.
def fncParseEnvText(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        m = ENV_ASSIGN_RE.match(line)
        if not m:
            logging.debug("Ignoring env file line: %r", line)
            continue
        key = m.group(1)
        value = next((g for g in m.groups()[1:] if g is not None), "")
        values[key] = value
    return values

# Function: fncLoadEnvFile
# Purpose : Merge an env file into os.environ without clobbering real env vars.
# Notes   : Missing/unreadable file is not an error; returns the keys applied.
def fncLoadEnvFile(path: str | None = None) -> list[str]:
    path = path or os.getenv("USERMATIC_ENV_FILE") or ENV_FILE
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError:
        return []
    applied = []
    for key, value in fncParseEnvText(text).items():
        if key not in os.environ:
            os.environ[key] = value
            applied.append(key)
    return applied

#===========================#
# Apply Environment Overrides
#===========================#

# Function: fncApplyEnvironment
# Purpose : Re-read every overridable setting from the environment.
# Notes   : Called at import and again by the CLI after the env file is loaded.
def fncApplyEnvironment():
    global ADMIN_REQUIRED, DEFAULT_SHELL, LOG_FILE, LOG_TAG, USE_SYSLOG, BACKUP_DIR, STATE_DIR
    ADMIN_REQUIRED = _env_bool("ADMIN_REQUIRED", True)
    DEFAULT_SHELL  = _env_str ("DEFAULT_SHELL", "/bin/bash")
    LOG_FILE       = _env_str ("LOG_FILE", "/var/log/usermatic/usermatic.log")
    LOG_TAG        = _env_str ("LOG_TAG", "user_project")
    USE_SYSLOG     = _env_bool("USE_SYSLOG", True)
    BACKUP_DIR     = _env_str ("BACKUP_DIR", "/var/backups/user_homes")
    STATE_DIR      = _env_str ("STATE_DIR", "/var/lib/usermatic")

fncApplyEnvironment()
