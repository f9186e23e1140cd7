from __future__ import annotations

from dataclasses import dataclass
import logging
import subprocess
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

_DETAIL_LIMIT = 400


class CommandRunner(Protocol):
    def __call__(
        self,
        command: list[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]: ...


@dataclass(frozen=True)
class CommandResult:
    command: list[str]
    returncode: int
    output: str


class CommandError(RuntimeError):
    def __init__(self, *, message: str, result: CommandResult) -> None:
        self.result = result
        super().__init__(self._build_message(message))

    @property
    def output(self) -> str:
        return self.result.output

    def _build_message(self, message: str) -> str:
        cmd = " ".join(self.result.command)
        return (
            f"{message} (returncode={self.result.returncode}, "
            f"command={cmd!r}, detail={truncate(self.result.output.strip(), _DETAIL_LIMIT)!r})"
        )


class CommandTimeoutError(RuntimeError):
    def __init__(self, *, command: list[str], timeout: float | None) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command {' '.join(command)!r} timed out after {timeout}s")


class CommandLaunchError(RuntimeError):
    def __init__(self, *, command: list[str], reason: str) -> None:
        self.command = command
        super().__init__(f"Unable to launch {command[0]!r}: {reason}")


ErrorParser = Callable[[str, CommandError], Exception]


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[: limit - 3]}..."


def default_runner(
    command: list[str],
    *,
    input: str | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    # stderr is folded into stdout: the wrapped tools print their errors on either stream
    return subprocess.run(
        command,
        input=input,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        timeout=timeout,
        check=False,
    )


def run_command(
    command: list[str],
    *,
    runner: CommandRunner | None = None,
    input: str | None = None,
    timeout: float | None = None,
    error_message: str,
    error_parser: ErrorParser | None = None,
) -> CommandResult:
    active_runner = runner or default_runner
    logger.debug("Running command=%s timeout=%s", command, timeout)
    try:
        completed = active_runner(command, input=input, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        logger.warning("Command timed out command=%s timeout=%s", command, timeout)
        raise CommandTimeoutError(command=command, timeout=timeout) from exc
    except OSError as exc:
        raise CommandLaunchError(command=command, reason=str(exc)) from exc

    result = CommandResult(
        command=command,
        returncode=completed.returncode,
        output=completed.stdout or "",
    )
    if result.returncode != 0:
        logger.debug("Command failed command=%s returncode=%s output=%r", command, result.returncode, result.output)
        error = CommandError(message=error_message, result=result)
        if error_parser is not None:
            raise error_parser(result.output, error) from error
        raise error
    return result
