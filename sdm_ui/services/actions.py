from __future__ import annotations

import logging
import os
import webbrowser

from sdm_ui.models import DataSource
from sdm_ui.proc import CommandError, CommandLaunchError, CommandRunner, CommandTimeoutError, run_command
from sdm_ui.services.notifier import Notifier

logger = logging.getLogger(__name__)


def looks_like_url(address: str) -> bool:
    return address.startswith("http")


def clipboard_command() -> list[str]:
    if os.getenv("WAYLAND_DISPLAY"):
        return ["wl-copy"]
    return ["xclip", "-selection", "clipboard"]


class PostConnectAction:
    """Open web resources in the browser, copy every other address to the clipboard."""

    def __init__(
        self,
        notifier: Notifier,
        *,
        runner: CommandRunner | None = None,
        open_url=webbrowser.open,
    ) -> None:
        self._notifier = notifier
        self._runner = runner
        self._open_url = open_url

    def __call__(self, datasource: DataSource) -> None:
        address = datasource.address
        if looks_like_url(address):
            logger.debug("Opening URL in browser url=%s", address)
            try:
                if not self._open_url(address):
                    logger.warning("No browser available to open url=%s", address)
            except webbrowser.Error as exc:
                logger.warning("Failed to open URL in browser url=%s: %s", address, exc)
        else:
            self.copy_to_clipboard(address)

        self._notifier.notify("🔌 Data Source Connected", f"{datasource.name}\n📋 {address}")

    def copy_to_clipboard(self, text: str) -> None:
        logger.debug("Copying address to clipboard")
        try:
            run_command(
                clipboard_command(),
                runner=self._runner,
                input=text,
                timeout=5,
                error_message="clipboard copy failed",
            )
        except (CommandError, CommandLaunchError, CommandTimeoutError) as exc:
            logger.warning("Failed to write to clipboard: %s", exc)
