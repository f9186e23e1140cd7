from __future__ import annotations

import logging
from typing import Callable, Literal

import keyring
import typer
from keyring.errors import KeyringError, PasswordDeleteError

from sdm_ui.proc import CommandError, CommandRunner, run_command
from sdm_ui.services.errors import AuthenticationException, SdmErrorCode, SelectionCancelledException

logger = logging.getLogger(__name__)

SERVICE_NAME = "sdm-credential"

PasswordCommand = Literal["zenity", "cli"]
PasswordPrompt = Callable[[str], str]


def zenity_prompt(account: str, *, runner: CommandRunner | None = None) -> str:
    try:
        result = run_command(
            ["zenity", "--password", "--title", f"Enter password for {account}"],
            runner=runner,
            error_message="zenity password prompt failed",
        )
    except CommandError as exc:
        if exc.result.returncode == 1:
            logger.debug("User canceled zenity password prompt")
            raise SelectionCancelledException("password prompt canceled by user") from exc
        raise
    return result.output.rstrip("\n")


def cli_prompt(account: str) -> str:
    try:
        return typer.prompt(f"Enter password for {account}", hide_input=True)
    except typer.Abort as exc:
        raise SelectionCancelledException("password prompt canceled by user") from exc


class CredentialProvider:
    """Passwords for the sdm account: keyring first, interactive prompt second."""

    def __init__(
        self,
        account: str,
        *,
        password_command: PasswordCommand = "zenity",
        prompt: PasswordPrompt | None = None,
        service: str = SERVICE_NAME,
    ) -> None:
        self.account = account
        self.password_command = password_command
        self.service = service
        self._prompt = prompt or (zenity_prompt if password_command == "zenity" else cli_prompt)

    def get_password(self) -> str:
        if not self.account:
            raise AuthenticationException("no account provided", code=SdmErrorCode.UNAUTHORIZED)

        logger.debug("Retrieving password from keyring account=%s", self.account)
        try:
            password = keyring.get_password(self.service, self.account)
        except KeyringError as exc:
            logger.debug("Failed to retrieve password from keyring account=%s: %s", self.account, exc)
            password = None
        if password:
            return password

        logger.debug("Prompting user for password method=%s", self.password_command)
        password = self._prompt(self.account)
        if not password:
            logger.warning("User provided empty password")
            raise AuthenticationException("empty password provided", code=SdmErrorCode.UNAUTHORIZED)

        try:
            keyring.set_password(self.service, self.account, password)
            logger.debug("Password saved in keyring account=%s", self.account)
        except KeyringError as exc:
            logger.warning("Failed to save password in keyring account=%s: %s", self.account, exc)
        return password

    def delete_password(self) -> None:
        try:
            keyring.delete_password(self.service, self.account)
            logger.debug("Deleted stored password account=%s", self.account)
        except PasswordDeleteError:
            logger.debug("No stored password to delete account=%s", self.account)
        except KeyringError as exc:
            logger.warning("Failed to delete stored password account=%s: %s", self.account, exc)
