from __future__ import annotations

import logging
from typing import Callable, Protocol, TypeVar

from sdm_ui.proc import CommandError, CommandLaunchError, CommandTimeoutError, truncate
from sdm_ui.services.errors import (
    AuthenticationException,
    CommandFailedException,
    CredentialsRevokedException,
    RecoveryException,
    ResourceNotFoundException,
    SdmError,
    SdmErrorCode,
    SdmUiException,
    SelectionCancelledException,
)
from sdm_ui.services.notifier import Notifier

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NOTIFICATION_DETAIL_LIMIT = 400

# Failures outside the sdm error taxonomy: reported, never retried.
_INFRASTRUCTURE_ERRORS = (SdmUiException, CommandError, CommandTimeoutError, CommandLaunchError)


class LoginClient(Protocol):
    def login(self, email: str, password: str) -> None: ...


class PasswordSource(Protocol):
    def get_password(self) -> str: ...

    def delete_password(self) -> None: ...


class RecoveryController:
    """Run one sdm operation, re-authenticating once when the session has expired.

    An operation that fails with UNAUTHORIZED triggers a single login followed
    by a single retry; whatever the retry raises is terminal. INVALID_CREDENTIALS
    (or a rejected login) deletes the stored password. Every terminal failure is
    raised as a RecoveryException subclass carrying the classified code, after a
    desktop notification. Errors that are not SdmError propagate unchanged.
    """

    def __init__(
        self,
        *,
        account: str,
        client: LoginClient,
        credentials: PasswordSource,
        notifier: Notifier,
    ) -> None:
        self.account = account
        self._client = client
        self._credentials = credentials
        self._notifier = notifier

    def run(self, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except SdmError as exc:
            if exc.code is not SdmErrorCode.UNAUTHORIZED:
                raise self._terminal(exc) from exc
            logger.info("Session is not authenticated; re-authenticating account=%s", self.account)
        except SelectionCancelledException:
            raise
        except _INFRASTRUCTURE_ERRORS as exc:
            self._report_unexpected(exc)
            raise

        self._reauthenticate()

        try:
            return operation()
        except SdmError as exc:
            raise self._terminal(exc, after_login=True) from exc
        except SelectionCancelledException:
            raise
        except _INFRASTRUCTURE_ERRORS as exc:
            self._report_unexpected(exc)
            raise

    def _reauthenticate(self) -> None:
        self._notifier.notify("🔐 Authenticating...")

        try:
            password = self._credentials.get_password()
        except AuthenticationException as exc:
            self._notifier.notify("🔐 Authentication error", str(exc))
            raise

        logger.debug("Logging in account=%s", self.account)
        try:
            self._client.login(self.account, password)
        except SdmError as exc:
            self._credentials.delete_password()
            self._notifier.notify("🔐 Authentication error", truncate(exc.output.strip(), _NOTIFICATION_DETAIL_LIMIT))
            raise CredentialsRevokedException(
                f"login failed: {exc}", code=exc.code, cause=exc
            ) from exc
        except (CommandError, CommandTimeoutError, CommandLaunchError) as exc:
            self._report_unexpected(exc)
            raise
        logger.debug("Login successful account=%s", self.account)

    def _terminal(self, exc: SdmError, *, after_login: bool = False) -> RecoveryException:
        code = exc.code
        detail = truncate(exc.output.strip(), _NOTIFICATION_DETAIL_LIMIT)

        if code is SdmErrorCode.UNAUTHORIZED and after_login:
            self._notifier.notify("🔐 Authentication error", "Still not authenticated after login")
            return AuthenticationException(
                f"still unauthorized after re-authentication: {exc}", code=code, cause=exc
            )
        if code is SdmErrorCode.INVALID_CREDENTIALS:
            self._notifier.notify("🔐 Authentication error", "Invalid credentials")
            self._credentials.delete_password()
            return CredentialsRevokedException(f"invalid credentials: {exc}", code=code, cause=exc)
        if code is SdmErrorCode.RESOURCE_NOT_FOUND:
            self._notifier.notify("🔐 Resource not found", detail)
            return ResourceNotFoundException(f"resource not found: {exc}", code=code, cause=exc)

        self._notifier.notify("🔐 Error", detail)
        return CommandFailedException(f"command error: {exc}", code=code, cause=exc)

    def _report_unexpected(self, exc: Exception) -> None:
        logger.debug("Unexpected error while running sdm operation", exc_info=True)
        self._notifier.notify("❗Unexpected error", truncate(str(exc), _NOTIFICATION_DETAIL_LIMIT))
