from __future__ import annotations

import subprocess

import pytest

from sdm_ui.proc import CommandError, CommandLaunchError, CommandTimeoutError
from sdm_ui.services.errors import MalformedOutputException, SdmError, SdmErrorCode
from sdm_ui.services.sdm_client import SdmClient
from tests.sdm_utils import FakeRunner, completed


def _client(handler) -> tuple[SdmClient, FakeRunner]:
    runner = FakeRunner(handler)
    return SdmClient(runner=runner, timeout=0.5), runner


def test_ready_parses_state() -> None:
    client, runner = _client(
        lambda cmd, _: completed(
            cmd,
            stdout='{"account":"some.account@mail.com","listener_running":true,"state_loaded":true,"is_linked":true}',
        )
    )
    state = client.ready()
    assert state.account == "some.account@mail.com"
    assert state.listener_running and state.state_loaded and state.is_linked
    assert runner.calls == [["sdm", "ready"]]
    assert runner.timeouts == [0.5]


def test_ready_without_account() -> None:
    client, _ = _client(
        lambda cmd, _: completed(cmd, stdout='{"listener_running":true,"state_loaded":true,"is_linked":true}')
    )
    assert client.ready().account is None


def test_ready_failure_and_garbage() -> None:
    client, _ = _client(lambda cmd, _: completed(cmd, returncode=1, stdout="You are not authenticated\n"))
    with pytest.raises(CommandError) as exc_info:
        client.ready()
    assert not isinstance(exc_info.value, SdmError)
    assert exc_info.value.result.returncode == 1

    client, _ = _client(lambda cmd, _: completed(cmd, stdout="not json"))
    with pytest.raises(MalformedOutputException):
        client.ready()


def test_login_sends_password_on_stdin() -> None:
    client, runner = _client(lambda cmd, _: completed(cmd, stdout="logged in"))
    client.login("dev@example.com", "hunter2")
    assert runner.calls == [["sdm", "login", "--email", "dev@example.com"]]
    assert runner.inputs == ["hunter2\n"]


def test_login_invalid_credentials() -> None:
    client, _ = _client(lambda cmd, _: completed(cmd, returncode=1, stdout="access denied\n"))
    with pytest.raises(SdmError) as exc_info:
        client.login("dev@example.com", "wrong")
    assert exc_info.value.code is SdmErrorCode.INVALID_CREDENTIALS


def test_logout_not_authenticated_is_classified() -> None:
    client, _ = _client(
        lambda cmd, _: completed(cmd, returncode=9, stdout="You are not authenticated. Please login again.")
    )
    with pytest.raises(SdmError) as exc_info:
        client.logout()
    assert exc_info.value.code is SdmErrorCode.UNAUTHORIZED


def test_status_returns_raw_output() -> None:
    client, runner = _client(lambda cmd, _: completed(cmd, stdout="[]"))
    assert client.status() == "[]"
    assert runner.calls == [["sdm", "status", "-j"]]


def test_connect_resource_not_found() -> None:
    client, runner = _client(
        lambda cmd, _: completed(cmd, returncode=1, stdout="Cannot find datasource named 'pg'")
    )
    with pytest.raises(SdmError) as exc_info:
        client.connect("pg")
    assert exc_info.value.code is SdmErrorCode.RESOURCE_NOT_FOUND
    assert runner.calls == [["sdm", "connect", "pg"]]


def test_timeout_is_not_classified() -> None:
    def handler(cmd, _):
        raise subprocess.TimeoutExpired(cmd, 0.5)

    client, _ = _client(handler)
    with pytest.raises(CommandTimeoutError):
        client.status()


def test_missing_executable() -> None:
    def handler(cmd, _):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    client, _ = _client(handler)
    with pytest.raises(CommandLaunchError):
        client.connect("pg")


def test_ensure_account_logs_out_other_account() -> None:
    def handler(cmd, _):
        if cmd[1] == "ready":
            return completed(cmd, stdout='{"account": "other@example.com"}')
        return completed(cmd, stdout="logged out")

    client, runner = _client(handler)
    client.ensure_account("dev@example.com")
    assert [call[1] for call in runner.calls] == ["ready", "logout"]


def test_ensure_account_same_account_is_noop() -> None:
    client, runner = _client(lambda cmd, _: completed(cmd, stdout='{"account": "dev@example.com"}'))
    client.ensure_account("dev@example.com")
    assert runner.calls == [["sdm", "ready"]]


def test_ensure_account_propagates_real_logout_errors() -> None:
    def handler(cmd, _):
        if cmd[1] == "ready":
            return completed(cmd, stdout='{"account": "other@example.com"}')
        return completed(cmd, returncode=1, stdout="Permission denied")

    client, _ = _client(handler)
    with pytest.raises(SdmError) as exc_info:
        client.ensure_account("dev@example.com")
    assert exc_info.value.code is SdmErrorCode.PERMISSION_DENIED
