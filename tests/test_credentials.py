from __future__ import annotations

import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from sdm_ui.services import credentials as credentials_module
from sdm_ui.services.credentials import SERVICE_NAME, CredentialProvider, zenity_prompt
from sdm_ui.services.errors import AuthenticationException, SelectionCancelledException
from tests.sdm_utils import ACCOUNT, FakeRunner, completed


class FakeKeyring:
    def __init__(self) -> None:
        self.secrets: dict[tuple[str, str], str] = {}
        self.fail_get = False
        self.fail_set = False
        self.deletes: list[tuple[str, str]] = []

    def get_password(self, service: str, username: str) -> str | None:
        if self.fail_get:
            raise KeyringError("locked")
        return self.secrets.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        if self.fail_set:
            raise KeyringError("read only")
        self.secrets[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        self.deletes.append((service, username))
        if (service, username) not in self.secrets:
            raise PasswordDeleteError("not found")
        del self.secrets[(service, username)]


@pytest.fixture
def fake_keyring(monkeypatch) -> FakeKeyring:
    fake = FakeKeyring()
    monkeypatch.setattr(credentials_module.keyring, "get_password", fake.get_password)
    monkeypatch.setattr(credentials_module.keyring, "set_password", fake.set_password)
    monkeypatch.setattr(credentials_module.keyring, "delete_password", fake.delete_password)
    return fake


def _never_prompt(account: str) -> str:
    raise AssertionError("prompt must not be shown")


def test_keyring_password_is_used_first(fake_keyring) -> None:
    fake_keyring.secrets[(SERVICE_NAME, ACCOUNT)] = "from-keyring"
    provider = CredentialProvider(ACCOUNT, prompt=_never_prompt)
    assert provider.get_password() == "from-keyring"


def test_prompted_password_is_saved(fake_keyring) -> None:
    prompts: list[str] = []

    def prompt(account: str) -> str:
        prompts.append(account)
        return "typed"

    provider = CredentialProvider(ACCOUNT, prompt=prompt)
    assert provider.get_password() == "typed"
    assert prompts == [ACCOUNT]
    assert fake_keyring.secrets[(SERVICE_NAME, ACCOUNT)] == "typed"


def test_keyring_errors_fall_back_to_prompt(fake_keyring) -> None:
    fake_keyring.fail_get = True
    fake_keyring.fail_set = True
    provider = CredentialProvider(ACCOUNT, prompt=lambda account: "typed")
    assert provider.get_password() == "typed"


def test_empty_password_is_rejected(fake_keyring) -> None:
    provider = CredentialProvider(ACCOUNT, prompt=lambda account: "")
    with pytest.raises(AuthenticationException):
        provider.get_password()
    assert fake_keyring.secrets == {}


def test_cancel_propagates(fake_keyring) -> None:
    def prompt(account: str) -> str:
        raise SelectionCancelledException("password prompt canceled by user")

    with pytest.raises(SelectionCancelledException):
        CredentialProvider(ACCOUNT, prompt=prompt).get_password()


def test_delete_is_best_effort(fake_keyring) -> None:
    provider = CredentialProvider(ACCOUNT, prompt=_never_prompt)
    provider.delete_password()
    fake_keyring.secrets[(SERVICE_NAME, ACCOUNT)] = "stale"
    provider.delete_password()
    assert fake_keyring.secrets == {}
    assert fake_keyring.deletes == [(SERVICE_NAME, ACCOUNT)] * 2


def test_password_command_selects_prompt() -> None:
    assert CredentialProvider(ACCOUNT, password_command="cli")._prompt is credentials_module.cli_prompt
    assert CredentialProvider(ACCOUNT, password_command="zenity")._prompt is credentials_module.zenity_prompt


def test_zenity_prompt_reads_stdout() -> None:
    runner = FakeRunner(lambda cmd, _: completed(cmd, stdout="pa ss\n"))
    assert zenity_prompt(ACCOUNT, runner=runner) == "pa ss"
    assert runner.calls[0][:2] == ["zenity", "--password"]


def test_zenity_cancel() -> None:
    runner = FakeRunner(lambda cmd, _: completed(cmd, returncode=1))
    with pytest.raises(SelectionCancelledException):
        zenity_prompt(ACCOUNT, runner=runner)
