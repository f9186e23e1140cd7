from __future__ import annotations

import json
import logging

from pydantic import BaseModel, ValidationError

from sdm_ui.proc import CommandError, CommandRunner, run_command
from sdm_ui.services.classifier import classify_error
from sdm_ui.services.errors import MalformedOutputException, SdmError, SdmErrorCode

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class SdmReady(BaseModel):
    account: str | None = None
    listener_running: bool = False
    state_loaded: bool = False
    is_linked: bool = False


def _parse_sdm_error(output: str, error: CommandError) -> Exception:
    return classify_error(output, error) or error


class SdmClient:
    """Adapter for the sdm executable."""

    def __init__(
        self,
        *,
        executable: str = "sdm",
        timeout: float = DEFAULT_TIMEOUT,
        runner: CommandRunner | None = None,
    ) -> None:
        self.executable = executable
        self.timeout = timeout
        self._runner = runner

    def _run(self, *args: str, input: str | None = None, error_message: str, classify: bool = True) -> str:
        result = run_command(
            [self.executable, *args],
            runner=self._runner,
            input=input,
            timeout=self.timeout,
            error_message=error_message,
            error_parser=_parse_sdm_error if classify else None,
        )
        return result.output

    def ready(self) -> SdmReady:
        # sdm ready reports failure only through its exit status
        output = self._run("ready", error_message="sdm ready failed", classify=False)
        logger.debug("Ready command output=%r", output)
        try:
            return SdmReady.model_validate(json.loads(output))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise MalformedOutputException(f"Failed to parse sdm ready output: {exc}") from exc

    def login(self, email: str, password: str) -> None:
        logger.debug("Logging in email=%s", email)
        self._run(
            "login",
            "--email",
            email,
            input=f"{password}\n",
            error_message=f"sdm login failed for {email}",
        )
        logger.debug("Login successful email=%s", email)

    def logout(self) -> None:
        self._run("logout", error_message="sdm logout failed")
        logger.debug("Logout successful")

    def status(self) -> str:
        return self._run("status", "-j", error_message="sdm status failed")

    def connect(self, name: str) -> None:
        self._run("connect", name, error_message=f"sdm connect failed for {name!r}")
        logger.debug("Connect successful datasource=%s", name)

    def ensure_account(self, account: str) -> None:
        """Log out when sdm holds a session for an account other than ``account``."""
        state = self.ready()
        if state.account is None or state.account == account:
            return
        logger.info("Logged in with a different account current=%s expected=%s, logging out", state.account, account)
        try:
            self.logout()
        except SdmError as exc:
            if exc.code is SdmErrorCode.UNAUTHORIZED:
                logger.debug("Already logged out")
                return
            raise
