# Module: directory.py
# Account/group directory access.
#
# DirectoryService is the narrow interface the reconciler and the menu talk
# to. SystemDirectory is the real thing: local accounts via shadow-utils,
# executed through the pinned binaries in settings.BIN.

# ==============================
# Imports
# ==============================

# Standard library
import logging
import os
import subprocess
from typing import Protocol

from usermatic import settings

LOCKED_STATUS = ("L", "LK")


class DirectoryError(RuntimeError):
    """A directory operation failed. str(err) is the detail to report."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class DirectoryService(Protocol):
    def account_exists(self, name: str) -> bool: ...
    def create_account(self, name: str) -> None: ...
    def set_account_locked(self, name: str, locked: bool) -> None: ...
    def delete_account(self, name: str, also_remove_home: bool) -> None: ...
    def group_exists(self, name: str) -> bool: ...
    def create_group(self, name: str) -> None: ...
    def delete_group(self, name: str) -> None: ...
    def add_account_to_group(self, account: str, group: str) -> bool: ...
    def home_directory(self, name: str) -> str | None: ...


#====================#
# Command execution  #
#====================#

# Function: fncRun
# Purpose : Execute a pinned binary by logical key; capture rc/stdout/stderr.
# Notes   : Returns (returncode, stdout, stderr). Uses BIN map for safety.
def fncRun(cmdkey: str, args: list[str] | None = None, input: str | None = None) -> tuple[int, str, str]:
    exe = settings.BIN.get(cmdkey)
    if not exe or not os.path.exists(exe):
        return 127, "", f"binary not found: {cmdkey} -> {exe}"
    logging.debug("Running %s %s", exe, " ".join(args or []))
    try:
        p = subprocess.run([exe] + (args or []), input=input, capture_output=True, text=True, check=False)
        return p.returncode, p.stdout.strip(), p.stderr.strip()
    except OSError as e:
        return 127, "", str(e)

# Function: fncRunInteractive
# Purpose : Execute a pinned binary attached to the caller's terminal.
# Notes   : For prompts like passwd; nothing is captured.
def fncRunInteractive(cmdkey: str, args: list[str] | None = None) -> int:
    exe = settings.BIN.get(cmdkey)
    if not exe or not os.path.exists(exe):
        logging.error("binary not found: %s -> %s", cmdkey, exe)
        return 127
    try:
        return subprocess.run([exe] + (args or []), check=False).returncode
    except OSError as e:
        logging.error("Failed to run %s: %s", exe, e)
        return 127

def _check(cmdkey: str, args: list[str]):
    """Run a mutating command; raise DirectoryError with stderr when it fails."""
    rc, _, err = fncRun(cmdkey, args)
    if rc != 0:
        raise DirectoryError(err or f"{cmdkey} exited with status {rc}")


#====================#
# Local accounts     #
#====================#

class SystemDirectory:
    """Local /etc/passwd + /etc/group directory driven by shadow-utils."""

    def __init__(self, shell: str | None = None):
        self.shell = shell or settings.DEFAULT_SHELL

    # ---- accounts ----

    def account_exists(self, name: str) -> bool:
        rc, _, _ = fncRun("id", ["-u", name])
        return rc == 0

    def create_account(self, name: str) -> None:
        # -m provisions the home directory from /etc/skel
        _check("useradd", ["-m", "-s", self.shell, name])

    def is_locked(self, name: str) -> bool:
        """Parse `passwd -S`; False when the status can't be read."""
        rc, out, _ = fncRun("passwd", ["-S", name])
        if rc != 0 or not out:
            return False
        parts = out.split()
        # shadow-utils prints L, the RHEL/SUSE passwd prints LK
        return len(parts) >= 2 and parts[1] in LOCKED_STATUS

    def set_account_locked(self, name: str, locked: bool) -> None:
        # unlock is unconditional
        if locked and self.is_locked(name):
            logging.debug("User %s already locked; no change", name)
            return
        _check("usermod", ["-L" if locked else "-U", name])

    def delete_account(self, name: str, also_remove_home: bool) -> None:
        _check("userdel", (["-r"] if also_remove_home else []) + [name])

    def home_directory(self, name: str) -> str | None:
        rc, out, _ = fncRun("getent", ["passwd", name])
        if rc != 0 or not out:
            return None
        fields = out.splitlines()[0].split(":")
        return fields[5] if len(fields) >= 7 and fields[5] else None

    def set_password_interactive(self, name: str) -> None:
        rc = fncRunInteractive("passwd", [name])
        if rc != 0:
            raise DirectoryError(f"passwd exited with status {rc}")

    # ---- groups ----

    def group_exists(self, name: str) -> bool:
        rc, _, _ = fncRun("getent", ["group", name])
        return rc == 0

    def create_group(self, name: str) -> None:
        _check("groupadd", [name])

    def delete_group(self, name: str) -> None:
        _check("groupdel", [name])

    def current_groups(self, name: str) -> set[str]:
        """Group names of an account via `id -nG`; empty set on error."""
        rc, out, _ = fncRun("id", ["-nG", name])
        if rc != 0 or not out:
            return set()
        return set(out.split())

    def add_account_to_group(self, account: str, group: str) -> bool:
        if group in self.current_groups(account):
            logging.debug("User %s already in group %s; no change", account, group)
            return False
        _check("usermod", ["-aG", group, account])
        return True
