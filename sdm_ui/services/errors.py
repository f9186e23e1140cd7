from __future__ import annotations

from enum import Enum


class SdmUiException(Exception):
    pass


class ConfigurationException(SdmUiException):
    pass


class DependencyException(SdmUiException):
    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required executables: {', '.join(missing)}")


class CacheException(SdmUiException):
    pass


class NotFoundException(SdmUiException):
    pass


class MalformedOutputException(SdmUiException):
    pass


class SelectionCancelledException(SdmUiException):
    """The user dismissed a menu, fuzzy finder or password prompt."""


class SdmErrorCode(str, Enum):
    UNAUTHORIZED = "Unauthorized"
    INVALID_CREDENTIALS = "InvalidCredentials"
    RESOURCE_NOT_FOUND = "ResourceNotFound"
    CONNECTION_FAILED = "ConnectionFailed"
    PERMISSION_DENIED = "PermissionDenied"
    UNKNOWN = "Unknown"


class SdmError(SdmUiException):
    """A failure of the wrapped sdm tool, classified from its printed output."""

    def __init__(self, code: SdmErrorCode, output: str, cause: Exception | None = None) -> None:
        self.code = code
        self.output = output
        self.cause = cause
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        text = self.output.strip()
        if self.cause is not None:
            return f"{self.code.value}: {text} ({self.cause})"
        return f"{self.code.value}: {text}"


class RecoveryException(SdmUiException):
    """Terminal outcome of a command run under recovery."""

    def __init__(self, message: str, *, code: SdmErrorCode, cause: Exception | None = None) -> None:
        self.code = code
        self.cause = cause
        super().__init__(message)


class ResourceNotFoundException(RecoveryException):
    pass


class CredentialsRevokedException(RecoveryException):
    pass


class AuthenticationException(RecoveryException):
    pass


class CommandFailedException(RecoveryException):
    pass
