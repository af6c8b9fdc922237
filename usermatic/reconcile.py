# Module: reconcile.py
# Batch reconciliation: bring each input record's account, groups and
# memberships into existence, one record at a time, in input order.
#
# Every step is ensure-exists-then-act, so running the same input twice is
# safe: the second run only reports things that already exist.

# ==============================
# Imports
# ==============================

# Standard library
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from usermatic.directory import DirectoryError, DirectoryService
from usermatic.records import Record, Skip, fncIsValidName, fncParseLine

INVALID_NAME = "invalid name"

#---------------#
# Outcome kinds #
#---------------#
ACCOUNT_CREATED = "AccountCreated"
ACCOUNT_EXISTS = "AccountAlreadyExists"
ACCOUNT_FAILED = "AccountCreateFailed"
GROUP_CREATED = "GroupCreated"
GROUP_FAILED = "GroupCreateFailed"
MEMBERSHIP_ADDED = "MembershipAdded"
MEMBERSHIP_PRESENT = "MembershipAlreadyPresent"
MEMBERSHIP_FAILED = "MembershipAddFailed"
SKIPPED = "Skipped"

FAILURE_KINDS = {ACCOUNT_FAILED, GROUP_FAILED, MEMBERSHIP_FAILED, SKIPPED}


class StreamAccessError(OSError):
    """The batch input couldn't be opened, read or decoded."""


@dataclass(frozen=True)
class Outcome:
    kind: str
    name: str = ""                # group name for group-level outcomes
    detail: str = ""              # failure detail / skip reason
    warning: str | None = None    # non-fatal problem (e.g. lock failed after create)

    @property
    def failed(self) -> bool:
        return self.kind in FAILURE_KINDS

    def describe(self) -> str:
        text = {
            ACCOUNT_CREATED:    "account created and locked",
            ACCOUNT_EXISTS:     "account already exists",
            ACCOUNT_FAILED:     f"account create failed: {self.detail}",
            GROUP_CREATED:      f"group '{self.name}' created",
            GROUP_FAILED:       f"group '{self.name}' failed: {self.detail}",
            MEMBERSHIP_ADDED:   f"added to '{self.name}'",
            MEMBERSHIP_PRESENT: f"already in '{self.name}'",
            MEMBERSHIP_FAILED:  f"add to '{self.name}' failed: {self.detail}",
            SKIPPED:            f"skipped: {self.detail}",
        }.get(self.kind, self.kind)
        if self.warning:
            text += f" (warning: {self.warning})"
        return text


@dataclass
class BatchSummary:
    lines_read: int = 0
    lines_ignored: int = 0
    records: int = 0
    skipped: int = 0
    accounts_created: int = 0
    accounts_existing: int = 0
    account_failures: int = 0
    lock_failures: int = 0
    groups_created: int = 0
    group_failures: int = 0
    memberships_added: int = 0
    memberships_present: int = 0
    membership_failures: int = 0
    outcomes: list[tuple[int, str, Outcome]] = field(default_factory=list)

    @property
    def failures(self) -> int:
        return self.skipped + self.account_failures + self.group_failures + self.membership_failures

    def add(self, line_num: int, account: str, outcome: Outcome):
        """Count one outcome and keep it (with its line) for reporting."""
        self.outcomes.append((line_num, account, outcome))
        if outcome.kind == SKIPPED:
            self.skipped += 1
        elif outcome.kind == ACCOUNT_CREATED:
            self.accounts_created += 1
            if outcome.warning:
                self.lock_failures += 1
        elif outcome.kind == ACCOUNT_EXISTS:
            self.accounts_existing += 1
        elif outcome.kind == ACCOUNT_FAILED:
            self.account_failures += 1
        elif outcome.kind == GROUP_CREATED:
            self.groups_created += 1
        elif outcome.kind == GROUP_FAILED:
            self.group_failures += 1
        elif outcome.kind == MEMBERSHIP_ADDED:
            self.memberships_added += 1
        elif outcome.kind == MEMBERSHIP_PRESENT:
            self.memberships_present += 1
        elif outcome.kind == MEMBERSHIP_FAILED:
            self.membership_failures += 1

    def count(self, kind: str) -> int:
        return sum(1 for _, _, o in self.outcomes if o.kind == kind)

    def lines(self) -> list[str]:
        """Human-readable summary, one counter per line."""
        return [
            f"Lines read:           {self.lines_read} ({self.lines_ignored} blank/comment)",
            f"Accounts created:     {self.accounts_created}",
            f"Accounts existing:    {self.accounts_existing}",
            f"Groups created:       {self.groups_created}",
            f"Memberships added:    {self.memberships_added}",
            f"Memberships present:  {self.memberships_present}",
            f"Lock warnings:        {self.lock_failures}",
            f"Failures:             {self.failures}"
            f" (skipped={self.skipped}, accounts={self.account_failures},"
            f" groups={self.group_failures}, memberships={self.membership_failures})",
        ]


#====================#
# Reconciler         #
#====================#

# Function: _ensureAccount
# Purpose : Make sure the record's account exists; create + lock it if missing.
# Notes   : An existing account is left alone (no lock/password change).
def _ensureAccount(name: str, directory: DirectoryService) -> Outcome:
    if not fncIsValidName(name):
        logging.error("Invalid account name %r", name)
        return Outcome(ACCOUNT_FAILED, detail=INVALID_NAME)

    try:
        exists = directory.account_exists(name)
    except DirectoryError as e:
        logging.error("Failed to look up user %s: %s", name, e.detail)
        return Outcome(ACCOUNT_FAILED, detail=f"lookup failed: {e.detail}")
    if exists:
        logging.info("User '%s' already exists, skipping", name)
        return Outcome(ACCOUNT_EXISTS)

    try:
        directory.create_account(name)
    except DirectoryError as e:
        logging.error("Failed to create user %s: %s", name, e.detail)
        return Outcome(ACCOUNT_FAILED, detail=e.detail)
    logging.info("Created user: %s", name)

    try:
        directory.set_account_locked(name, True)
    except DirectoryError as e:
        logging.warning("Created user %s but failed to lock password: %s", name, e.detail)
        return Outcome(ACCOUNT_CREATED, warning=f"lock failed: {e.detail}")
    except Exception as e:
        logging.exception("Created user %s but locking raised unexpectedly", name)
        return Outcome(ACCOUNT_CREATED, warning=f"lock failed: unexpected error: {e}")
    logging.info("Locked password for %s", name)
    return Outcome(ACCOUNT_CREATED)

# Function: _ensureGroupMembership
# Purpose : Make sure one group exists and the account is a member of it.
# Notes   : Returns 1-2 outcomes; a group that can't be created gets no membership attempt.
def _ensureGroupMembership(account: str, group: str, directory: DirectoryService) -> list[Outcome]:
    if not fncIsValidName(group):
        logging.error("Invalid group name %r for user %s", group, account)
        return [Outcome(GROUP_FAILED, name=group, detail=INVALID_NAME)]

    outcomes = []
    try:
        if not directory.group_exists(group):
            logging.info("Group '%s' not found, creating", group)
            directory.create_group(group)
            logging.info("Created group: %s", group)
            outcomes.append(Outcome(GROUP_CREATED, name=group))
    except DirectoryError as e:
        logging.error("Failed to create group %s: %s", group, e.detail)
        return [Outcome(GROUP_FAILED, name=group, detail=e.detail)]
    except Exception as e:
        logging.exception("Unexpected error ensuring group %s", group)
        return [Outcome(GROUP_FAILED, name=group, detail=f"unexpected error: {e}")]

    try:
        added = directory.add_account_to_group(account, group)
    except DirectoryError as e:
        logging.error("Failed to add %s to group %s: %s", account, group, e.detail)
        outcomes.append(Outcome(MEMBERSHIP_FAILED, name=group, detail=e.detail))
        return outcomes
    except Exception as e:
        logging.exception("Unexpected error adding %s to group %s", account, group)
        outcomes.append(Outcome(MEMBERSHIP_FAILED, name=group, detail=f"unexpected error: {e}"))
        return outcomes

    if added:
        logging.info("Added user '%s' to group '%s'", account, group)
        outcomes.append(Outcome(MEMBERSHIP_ADDED, name=group))
    else:
        logging.debug("User %s already in group %s; no change", account, group)
        outcomes.append(Outcome(MEMBERSHIP_PRESENT, name=group))
    return outcomes

# Function: fncReconcile
# Purpose : Apply one Record against the directory.
# Notes   : Account outcome is settled before any group is touched; if the
#           account is neither created nor already present, groups are skipped.
#           Any error inside one group step stays with that group.
def fncReconcile(record: Record, directory: DirectoryService) -> tuple[Outcome, list[Outcome]]:
    account = _ensureAccount(record.name, directory)
    if account.failed:
        return account, []

    group_outcomes: list[Outcome] = []
    for group in record.groups:
        group = group.strip()
        if not group:
            continue
        try:
            group_outcomes.extend(_ensureGroupMembership(record.name, group, directory))
        except Exception as e:
            logging.exception("Unexpected error handling group %s for user %s", group, record.name)
            group_outcomes.append(Outcome(GROUP_FAILED, name=group, detail=f"unexpected error: {e}"))
    return account, group_outcomes


#====================#
# Batch driver       #
#====================#

# Function: fncReadLines
# Purpose : Load the whole batch input up front.
# Notes   : Any open/read/decode problem is fatal and raised before processing starts.
def fncReadLines(path: str) -> list[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().splitlines()
    except UnicodeDecodeError as e:
        raise StreamAccessError(f"File '{path}' is not valid UTF-8: {e}") from e
    except OSError as e:
        raise StreamAccessError(f"File '{path}' not found or not readable: {e.strerror or e}") from e

# Function: fncRunBatch
# Purpose : Parse and reconcile every line in order; never stops on a bad record.
# Notes   : Returns the BatchSummary; per-line diagnostics go to the log.
def fncRunBatch(lines: Iterable[str], directory: DirectoryService) -> BatchSummary:
    summary = BatchSummary()

    for line_num, raw in enumerate(lines, start=1):
        summary.lines_read += 1
        parsed = fncParseLine(raw)

        if isinstance(parsed, Skip):
            if parsed.is_error:
                logging.warning("Skipping line %d: %s", line_num, parsed.reason)
                summary.add(line_num, "", Outcome(SKIPPED, detail=parsed.reason))
            else:
                summary.lines_ignored += 1
            continue

        summary.records += 1
        logging.info("Processing %s (line %d)", parsed.name, line_num)
        try:
            account, groups = fncReconcile(parsed, directory)
        except Exception as e:
            logging.exception("Line %d: unexpected error reconciling %s", line_num, parsed.name)
            account, groups = Outcome(ACCOUNT_FAILED, detail=f"unexpected error: {e}"), []

        for outcome in [account] + groups:
            summary.add(line_num, parsed.name, outcome)

        report = "; ".join(o.describe() for o in [account] + groups)
        if account.failed or any(o.failed for o in groups):
            logging.warning("Line %d: %s -> %s", line_num, parsed.name, report)
        else:
            logging.info("Line %d: %s -> %s", line_num, parsed.name, report)

    logging.info(
        "Batch processing complete. Created=%d, Existing=%d, Groups=%d, Memberships=%d, Failures=%d",
        summary.accounts_created, summary.accounts_existing, summary.groups_created,
        summary.memberships_added, summary.failures,
    )
    return summary
