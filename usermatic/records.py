# Module: records.py
# Name validation and parsing of batch input lines.
#
# Input format, one record per line:
#   account[,group[,group...]]
# Blank lines and lines starting with '#' are ignored. Whitespace around
# every field is insignificant, empty group fields are dropped.

import re
from dataclasses import dataclass

# Same rule for account and group names (shadow-utils default NAME_REGEX)
NAME_RE = re.compile(r"[a-z_][a-z0-9_-]{0,31}")
NAME_MAXLEN = 32

SKIP_BLANK = "blank line"
SKIP_COMMENT = "comment"
SKIP_NO_USERNAME = "missing username"


@dataclass(frozen=True)
class Record:
    name: str
    groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class Skip:
    reason: str

    @property
    def is_error(self) -> bool:
        """Blank and comment lines are expected; anything else is a data problem."""
        return self.reason not in (SKIP_BLANK, SKIP_COMMENT)


# Function: fncIsValidName
# Purpose : Check an account/group name against NAME_RE.
# Notes   : Pure; fullmatch so a trailing newline doesn't sneak through.
def fncIsValidName(name) -> bool:
    if not isinstance(name, str) or not 1 <= len(name) <= NAME_MAXLEN:
        return False
    return NAME_RE.fullmatch(name) is not None


# Function: fncParseLine
# Purpose : Turn one raw input line into a Record, or a Skip.
# Notes   : No validation or existence checks here, that's the reconciler's job.
def fncParseLine(raw: str) -> Record | Skip:
    line = raw.strip()
    if not line:
        return Skip(SKIP_BLANK)
    if line.startswith("#"):
        return Skip(SKIP_COMMENT)

    name, *rest = line.split(",")
    name = name.strip()
    if not name:
        return Skip(SKIP_NO_USERNAME)

    groups = tuple(g.strip() for g in rest if g.strip())
    return Record(name=name, groups=groups)
