import pytest

from usermatic import console, settings
from usermatic.directory import DirectoryError


class FakeDirectory:
    """In-memory directory. Put (operation, name) -> detail in .fail to make a call fail."""

    def __init__(self):
        self.accounts = {}   # name -> {"locked": bool, "home": str}
        self.groups = {}     # name -> set of member names
        self.fail = {}
        self.calls = []

    def _call(self, op, name):
        self.calls.append((op, name))
        if (op, name) in self.fail:
            raise DirectoryError(self.fail[(op, name)])

    def account_exists(self, name):
        return name in self.accounts

    def create_account(self, name):
        self._call("create_account", name)
        if name in self.accounts:
            raise DirectoryError(f"useradd: user '{name}' already exists")
        self.accounts[name] = {"locked": False, "home": f"/home/{name}"}

    def set_account_locked(self, name, locked):
        self._call("set_account_locked", name)
        if name not in self.accounts:
            raise DirectoryError(f"usermod: user '{name}' does not exist")
        self.accounts[name]["locked"] = locked

    def delete_account(self, name, also_remove_home):
        self._call("delete_account", name)
        if name not in self.accounts:
            raise DirectoryError(f"userdel: user '{name}' does not exist")
        del self.accounts[name]
        for members in self.groups.values():
            members.discard(name)

    def home_directory(self, name):
        account = self.accounts.get(name)
        return account["home"] if account else None

    def group_exists(self, name):
        return name in self.groups

    def create_group(self, name):
        self._call("create_group", name)
        if name in self.groups:
            raise DirectoryError(f"groupadd: group '{name}' already exists")
        self.groups[name] = set()

    def delete_group(self, name):
        self._call("delete_group", name)
        if name not in self.groups:
            raise DirectoryError(f"groupdel: group '{name}' does not exist")
        del self.groups[name]

    def add_account_to_group(self, account, group):
        self._call("add_account_to_group", group)
        if account not in self.accounts or group not in self.groups:
            raise DirectoryError(f"usermod: can't add {account} to {group}")
        if account in self.groups[group]:
            return False
        self.groups[group].add(account)
        return True


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep every test away from /var, /etc and syslog."""
    values = {
        "LOG_FILE": str(tmp_path / "log" / "usermatic.log"),
        "BACKUP_DIR": str(tmp_path / "backups"),
        "STATE_DIR": str(tmp_path / "state"),
    }
    for key, value in values.items():
        monkeypatch.setattr(settings, key, value)
        monkeypatch.setenv(key, value)
    monkeypatch.setattr(settings, "USE_SYSLOG", False)
    monkeypatch.setenv("USE_SYSLOG", "0")
    monkeypatch.setattr(settings, "ADMIN_REQUIRED", False)
    monkeypatch.setenv("ADMIN_REQUIRED", "0")
    monkeypatch.setenv("USERMATIC_ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.setattr(console, "_COLOR_MONO", False)
    return tmp_path


@pytest.fixture
def answers(monkeypatch):
    """Feed canned answers to input(); EOFError once they run out."""
    def _feed(*replies):
        it = iter(replies)

        def fake_input(prompt=""):
            try:
                return next(it)
            except StopIteration:
                raise EOFError
        monkeypatch.setattr("builtins.input", fake_input)
    return _feed
