import logging

import pytest

from usermatic.reconcile import (
    ACCOUNT_CREATED,
    ACCOUNT_EXISTS,
    ACCOUNT_FAILED,
    GROUP_CREATED,
    MEMBERSHIP_ADDED,
    MEMBERSHIP_PRESENT,
    SKIPPED,
    StreamAccessError,
    fncReadLines,
    fncRunBatch,
)

SAMPLE = "alice,dev,ops\nbob,admins\ncharlie\n# comment\n"


def test_end_to_end_against_empty_directory(directory):
    summary = fncRunBatch(SAMPLE.splitlines(), directory)

    assert set(directory.accounts) == {"alice", "bob", "charlie"}
    assert all(a["locked"] for a in directory.accounts.values())
    assert directory.groups == {"dev": {"alice"}, "ops": {"alice"}, "admins": {"bob"}}
    assert summary.accounts_created == 3
    assert summary.groups_created == 3
    assert summary.memberships_added == 3
    assert summary.failures == 0
    assert summary.lines_read == 4
    assert summary.lines_ignored == 1
    assert summary.records == 3


def test_second_run_changes_nothing(directory):
    fncRunBatch(SAMPLE.splitlines(), directory)
    summary = fncRunBatch(SAMPLE.splitlines(), directory)

    assert summary.count(ACCOUNT_CREATED) == 0
    assert summary.count(GROUP_CREATED) == 0
    assert summary.count(ACCOUNT_EXISTS) == 3
    assert summary.count(MEMBERSHIP_PRESENT) == 3
    assert summary.count(MEMBERSHIP_ADDED) == 0
    assert summary.failures == 0


def test_missing_username_is_skipped_and_batch_continues(directory, caplog):
    caplog.set_level(logging.INFO)
    summary = fncRunBatch([",dev", "alice,dev"], directory)

    assert summary.skipped == 1
    assert summary.failures == 1
    assert summary.accounts_created == 1
    assert directory.groups == {"dev": {"alice"}}
    assert "Skipping line 1: missing username" in caplog.text
    line, account, outcome = summary.outcomes[0]
    assert (line, account, outcome.kind) == (1, "", SKIPPED)


def test_bad_record_does_not_stop_later_lines(directory, caplog):
    directory.fail[("create_account", "bob")] = "useradd: failure"
    caplog.set_level(logging.INFO)

    summary = fncRunBatch(["alice,dev", "bob,dev", "Bad,dev", "carol,dev"], directory)

    assert summary.accounts_created == 2
    assert summary.account_failures == 2
    assert directory.groups["dev"] == {"alice", "carol"}
    assert "Line 2: bob -> account create failed: useradd: failure" in caplog.text
    assert "Line 3: Bad -> account create failed: invalid name" in caplog.text


def test_later_line_sees_earlier_changes(directory):
    summary = fncRunBatch(["alice,dev", "bob,dev"], directory)

    assert summary.groups_created == 1
    assert summary.memberships_added == 2


def test_unexpected_error_is_isolated_to_its_line(directory, monkeypatch):
    original = directory.account_exists

    def flaky(name):
        if name == "bob":
            raise KeyError("nss exploded")
        return original(name)
    monkeypatch.setattr(directory, "account_exists", flaky)

    summary = fncRunBatch(["bob,dev", "carol,dev"], directory)

    assert summary.account_failures == 1
    assert summary.accounts_created == 1
    failed = [o for _, name, o in summary.outcomes if name == "bob"]
    assert failed[0].kind == ACCOUNT_FAILED
    assert "unexpected error" in failed[0].detail


def test_lock_warning_is_counted_but_not_a_failure(directory):
    directory.fail[("set_account_locked", "alice")] = "usermod: denied"

    summary = fncRunBatch(["alice"], directory)

    assert summary.accounts_created == 1
    assert summary.lock_failures == 1
    assert summary.failures == 0


def test_summary_lines(directory):
    summary = fncRunBatch(SAMPLE.splitlines(), directory)
    text = "\n".join(summary.lines())

    assert "Accounts created:     3" in text
    assert "Failures:             0" in text


def test_read_lines(tmp_path):
    path = tmp_path / "users.txt"
    path.write_text(SAMPLE, encoding="utf-8")

    assert fncReadLines(str(path)) == ["alice,dev,ops", "bob,admins", "charlie", "# comment"]


def test_read_lines_missing_file(tmp_path):
    with pytest.raises(StreamAccessError, match="not found or not readable"):
        fncReadLines(str(tmp_path / "nope.txt"))


def test_read_lines_directory(tmp_path):
    with pytest.raises(StreamAccessError):
        fncReadLines(str(tmp_path))


def test_read_lines_not_utf8(tmp_path):
    path = tmp_path / "users.txt"
    path.write_bytes(b"alice,\xff\xfe\n")

    with pytest.raises(StreamAccessError, match="not valid UTF-8"):
        fncReadLines(str(path))


def test_group_error_keeps_account_counted(directory, monkeypatch):
    original = directory.group_exists

    def broken(name):
        if name == "dev":
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        return original(name)
    monkeypatch.setattr(directory, "group_exists", broken)

    summary = fncRunBatch(["alice,dev,ops"], directory)

    assert summary.accounts_created == 1
    assert summary.group_failures == 1
    assert summary.groups_created == 1
    assert summary.memberships_added == 1
