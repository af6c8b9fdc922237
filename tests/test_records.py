import pytest

from usermatic.records import (
    SKIP_BLANK,
    SKIP_COMMENT,
    SKIP_NO_USERNAME,
    Record,
    Skip,
    fncIsValidName,
    fncParseLine,
)


@pytest.mark.parametrize("name", [
    "alice", "_svc", "a", "web-01", "db_admin", "x" * 32, "_", "a-b_c9",
])
def test_valid_names(name):
    assert fncIsValidName(name)


@pytest.mark.parametrize("name", [
    "", "1alice", "Alice", "-alice", "x" * 33, "al ice", "alice,dev",
    "a/b", "alice\n", " alice", "ali.ce", "élise", None,
])
def test_invalid_names(name):
    assert not fncIsValidName(name)


def test_validator_is_stable():
    assert fncIsValidName("alice") == fncIsValidName("alice")


def test_parse_account_and_groups():
    assert fncParseLine("alice,dev,ops") == Record("alice", ("dev", "ops"))


def test_parse_drops_trailing_and_doubled_separators():
    assert fncParseLine("bob,admins,") == Record("bob", ("admins",))
    assert fncParseLine("bob,,admins,,") == Record("bob", ("admins",))


def test_parse_trims_whitespace_around_fields():
    assert fncParseLine("  carol , dev ,  ops  \n") == Record("carol", ("dev", "ops"))


def test_parse_account_without_groups():
    assert fncParseLine("charlie") == Record("charlie", ())


def test_parse_keeps_duplicate_groups():
    assert fncParseLine("dave,dev,dev").groups == ("dev", "dev")


def test_parse_does_not_validate_names():
    assert fncParseLine("Bad Name,Group!") == Record("Bad Name", ("Group!",))


@pytest.mark.parametrize("line,reason", [
    ("", SKIP_BLANK),
    ("   ", SKIP_BLANK),
    ("# comment", SKIP_COMMENT),
    ("   # indented comment", SKIP_COMMENT),
])
def test_parse_ignored_lines(line, reason):
    parsed = fncParseLine(line)
    assert parsed == Skip(reason)
    assert not parsed.is_error


@pytest.mark.parametrize("line", [",dev", "  ,dev,ops", ","])
def test_parse_missing_username(line):
    parsed = fncParseLine(line)
    assert parsed == Skip(SKIP_NO_USERNAME)
    assert parsed.is_error
