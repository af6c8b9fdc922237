# Module: menu.py
# Interactive menu. Each option is a one-shot wrapper around the same
# directory primitives the batch mode uses; nothing here raises to the loop.

# ==============================
# Imports
# ==============================

# Standard library
import logging
import os
import re
from datetime import datetime

from usermatic import settings
from usermatic.console import fncPrintMessage
from usermatic.directory import DirectoryError, DirectoryService, fncRun
from usermatic.records import fncIsValidName

MENU = """\
==== User Functions ====
1) Create User
2) Delete User
3) Lock User Account
4) Unlock User Account
==== Group Functions ====
5) Create Group
6) Delete Group
7) Add User to Group
9) Exit"""

NAME_HINT = "Names must start with a lowercase letter or underscore and contain only a-z, 0-9, underscores or hyphens (max 32)"


def _ask(prompt: str) -> str:
    return input(prompt).strip()

def _confirm(prompt: str) -> bool:
    return re.fullmatch(r"[Yy]", _ask(prompt)) is not None

def _existingUser(directory: DirectoryService, prompt: str) -> str | None:
    """Prompt for a username and make sure it exists."""
    username = _ask(prompt)
    if not fncIsValidName(username) or not directory.account_exists(username):
        fncPrintMessage(f"Error: User '{username}' doesn't exist", "error")
        return None
    return username

def _existingGroup(directory: DirectoryService, prompt: str) -> str | None:
    groupname = _ask(prompt)
    if not fncIsValidName(groupname) or not directory.group_exists(groupname):
        fncPrintMessage(f"Error: Group '{groupname}' doesn't exist", "error")
        return None
    return groupname

def _failed(action: str, e: DirectoryError) -> bool:
    fncPrintMessage(f"Error: Failed to {action}", "error")
    fncPrintMessage(f"Details: {e.detail}", "error")
    logging.error("Failed to %s: %s", action, e.detail)
    return False


#====================#
# Home backups       #
#====================#

# Function: fncBackupHome
# Purpose : Archive a home directory to BACKUP_DIR before the account goes.
# Notes   : Returns the archive path; raises DirectoryError if tar fails.
def fncBackupHome(username: str, home_dir: str) -> str:
    try:
        os.makedirs(settings.BACKUP_DIR, mode=0o700, exist_ok=True)
    except OSError as e:
        raise DirectoryError(f"can't create {settings.BACKUP_DIR}: {e}") from e
    stamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")
    backup_file = os.path.join(settings.BACKUP_DIR, f"{username}-{stamp}.tar.gz")
    rc, _, err = fncRun("tar", ["-czf", backup_file, "-C", "/", home_dir.lstrip("/")])
    if rc != 0:
        raise DirectoryError(err or f"tar exited with status {rc}")
    return backup_file


#====================#
# Menu actions       #
#====================#

def fncMenuCreateUser(directory: DirectoryService) -> bool:
    username = _ask("Enter your username: ")
    if not fncIsValidName(username):
        fncPrintMessage("Error: Invalid name format", "error")
        fncPrintMessage(NAME_HINT, "info")
        return False
    if directory.account_exists(username):
        fncPrintMessage(f"Error: User '{username}' already exists", "error")
        return False

    try:
        directory.create_account(username)
    except DirectoryError as e:
        return _failed("create user", e)
    logging.info("Successfully created user: %s", username)

    # Adapters without a terminal password prompt just leave the account locked
    set_password = getattr(directory, "set_password_interactive", None)
    if set_password is not None:
        fncPrintMessage("Now set password", "info")
        try:
            set_password(username)
            logging.info("Successfully set password for %s", username)
            return True
        except DirectoryError as e:
            fncPrintMessage(f"Warning: Failed to set password ({e.detail})", "warning")

    try:
        directory.set_account_locked(username, True)
        fncPrintMessage("The account is created but locked", "warning")
        logging.info("Created user %s (password not set, account locked)", username)
    except DirectoryError as e:
        logging.warning("Created user %s but failed to lock it: %s", username, e.detail)
        fncPrintMessage(f"Warning: account created but could not be locked ({e.detail})", "warning")
    return True

# Function: fncMenuDeleteUser
# Purpose : Delete an account and its home, after confirmation and a home backup.
# Notes   : A failed backup means no deletion.
def fncMenuDeleteUser(directory: DirectoryService) -> bool:
    username = _existingUser(directory, "Enter username to delete: ")
    if username is None:
        return False

    fncPrintMessage(
        f"WARNING: This will permanently delete the user '{username}' and back up their home directory",
        "warning",
    )
    if not _confirm("Are you absolutely sure? (y/n): "):
        fncPrintMessage("Deletion cancelled", "info")
        return False

    home_dir = directory.home_directory(username)
    if home_dir and os.path.isdir(home_dir):
        fncPrintMessage(f"Backing up {home_dir}", "info")
        try:
            backup_file = fncBackupHome(username, home_dir)
        except DirectoryError as e:
            fncPrintMessage(f"Warning: Couldn't back up home dir ({e.detail}), not deleting user", "warning")
            logging.error("Backup of %s failed, user %s kept: %s", home_dir, username, e.detail)
            return False
        logging.info("Backed up %s to %s", home_dir, backup_file)
    else:
        fncPrintMessage(f"No home dir found at {home_dir}, skipping backup", "info")

    try:
        directory.delete_account(username, also_remove_home=True)
    except DirectoryError as e:
        return _failed("delete user", e)
    logging.info("Successfully deleted user '%s' and their home dir", username)
    return True

def fncMenuSetLocked(directory: DirectoryService, locked: bool) -> bool:
    word = "lock" if locked else "unlock"
    username = _existingUser(directory, f"Enter username to {word}: ")
    if username is None:
        return False
    try:
        directory.set_account_locked(username, locked)
    except DirectoryError as e:
        return _failed(f"{word} account", e)
    logging.info("Successfully %sed account for user '%s'", word, username)
    fncPrintMessage(f"Account for '{username}' is now {word}ed", "success")
    return True

def fncMenuCreateGroup(directory: DirectoryService) -> bool:
    groupname = _ask("Enter new group name: ")
    if not fncIsValidName(groupname):
        fncPrintMessage("Error: Invalid group name format", "error")
        fncPrintMessage(NAME_HINT, "info")
        return False
    if directory.group_exists(groupname):
        fncPrintMessage(f"Error: Group '{groupname}' already exists", "error")
        return False
    try:
        directory.create_group(groupname)
    except DirectoryError as e:
        return _failed("create group", e)
    logging.info("Successfully created group: %s", groupname)
    fncPrintMessage(f"Group '{groupname}' created", "success")
    return True

def fncMenuDeleteGroup(directory: DirectoryService) -> bool:
    groupname = _existingGroup(directory, "Enter your group name to delete: ")
    if groupname is None:
        return False
    if not _confirm(f"Sure you want to delete the group '{groupname}'? (y/n): "):
        fncPrintMessage("Deletion cancelled", "info")
        return False
    try:
        directory.delete_group(groupname)
    except DirectoryError as e:
        _failed("delete group", e)
        fncPrintMessage("You often can't delete a group if it's the primary group for any user", "info")
        return False
    logging.info("Successfully deleted group: %s", groupname)
    fncPrintMessage(f"Group '{groupname}' deleted", "success")
    return True

def fncMenuAddUserToGroup(directory: DirectoryService) -> bool:
    username = _existingUser(directory, "Enter username: ")
    if username is None:
        return False
    groupname = _existingGroup(directory, "Enter group name to add user to: ")
    if groupname is None:
        return False
    try:
        added = directory.add_account_to_group(username, groupname)
    except DirectoryError as e:
        return _failed("add user to group", e)
    if added:
        logging.info("Successfully added user '%s' to group '%s'", username, groupname)
        fncPrintMessage(f"User '{username}' added to group '{groupname}'", "success")
    else:
        fncPrintMessage(f"User '{username}' is already in group '{groupname}'", "info")
    return True


ACTIONS = {
    "1": fncMenuCreateUser,
    "2": fncMenuDeleteUser,
    "3": lambda d: fncMenuSetLocked(d, True),
    "4": lambda d: fncMenuSetLocked(d, False),
    "5": fncMenuCreateGroup,
    "6": fncMenuDeleteGroup,
    "7": fncMenuAddUserToGroup,
}

# Function: fncMainMenu
# Purpose : Show the menu until the user exits (option 9 or EOF).
def fncMainMenu(directory: DirectoryService):
    while True:
        fncPrintMessage(MENU, "plain")
        try:
            choice = _ask("Enter your choice: ")
            if choice == "9":
                logging.info("Exiting")
                fncPrintMessage("Bye bye", "info")
                return
            action = ACTIONS.get(choice)
            if action is None:
                fncPrintMessage("Invalid option, try again", "warning")
            else:
                action(directory)
            _ask("Press Enter to continue")
        except EOFError:
            logging.info("Exiting (end of input)")
            return
