from __future__ import annotations

import logging

from sdm_ui.proc import CommandError, CommandLaunchError, CommandRunner, CommandTimeoutError, run_command

logger = logging.getLogger(__name__)

APP_NAME = "SDM CLI"


class Notifier:
    """Desktop notifications through notify-send. Never raises."""

    def __init__(self, *, runner: CommandRunner | None = None, app_name: str = APP_NAME) -> None:
        self._runner = runner
        self.app_name = app_name

    def notify(self, title: str, message: str = "") -> None:
        command = ["notify-send", "--app-name", self.app_name, title]
        if message:
            command.append(message)
        try:
            run_command(command, runner=self._runner, timeout=5, error_message="notify-send failed")
        except (CommandError, CommandLaunchError, CommandTimeoutError) as exc:
            logger.warning("Failed to send notification title=%r: %s", title, exc)


class NullNotifier(Notifier):
    def notify(self, title: str, message: str = "") -> None:
        logger.debug("Notification suppressed title=%r", title)
