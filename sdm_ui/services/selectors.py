from __future__ import annotations

import logging
from typing import Literal, Sequence

from sdm_ui.proc import CommandError, CommandRunner, run_command
from sdm_ui.services.errors import ConfigurationException, SelectionCancelledException

logger = logging.getLogger(__name__)

MenuCommand = Literal["rofi", "wofi", "noop"]

DEFAULT_PROMPT = "Select Data Source"
# fzf exits 1 when nothing matched and 130 when interrupted
_FZF_CANCEL_CODES = (1, 130)


def _menu_command(menu: MenuCommand, prompt: str) -> list[str]:
    if menu == "rofi":
        return ["rofi", "-dmenu", "-i", "-p", prompt]
    if menu == "wofi":
        return ["wofi", "--dmenu", "--prompt", prompt]
    raise ConfigurationException(f"menu command {menu!r} cannot show a selection")


class MenuSelector:
    """dmenu-style picker (rofi or wofi) that returns the chosen line."""

    def __init__(
        self,
        menu: MenuCommand = "rofi",
        *,
        prompt: str = DEFAULT_PROMPT,
        runner: CommandRunner | None = None,
    ) -> None:
        self.menu = menu
        self.prompt = prompt
        self._runner = runner

    def select(self, entries: Sequence[str]) -> str:
        entries = [entry for entry in entries if entry]
        if not entries:
            logger.warning("No entries to display in menu")
            raise SelectionCancelledException("no entries to select from")

        logger.debug("Displaying menu command=%s entries=%s", self.menu, len(entries))
        try:
            result = run_command(
                _menu_command(self.menu, self.prompt),
                runner=self._runner,
                input="\n".join(entries) + "\n",
                error_message=f"{self.menu} selection failed",
            )
        except CommandError as exc:
            if exc.result.returncode == 1:
                logger.debug("User canceled menu selection")
                raise SelectionCancelledException("no selection made") from exc
            raise

        selection = result.output.strip("\n")
        if not selection:
            raise SelectionCancelledException("no selection made")
        logger.debug("Selection made in menu selection=%r", selection)
        return selection


class FuzzySelector:
    """fzf picker; returns the index of the chosen entry."""

    def __init__(self, *, runner: CommandRunner | None = None) -> None:
        self._runner = runner

    def select(self, entries: Sequence[str]) -> int:
        if not entries:
            raise SelectionCancelledException("no entries to select from")

        # Number each line so duplicates still map back to one index.
        lines = [f"{index}\t{entry}" for index, entry in enumerate(entries)]
        try:
            result = run_command(
                ["fzf", "--delimiter", "\t", "--with-nth", "2..", "--no-multi"],
                runner=self._runner,
                input="\n".join(lines) + "\n",
                error_message="fzf selection failed",
            )
        except CommandError as exc:
            if exc.result.returncode in _FZF_CANCEL_CODES:
                logger.debug("User canceled fzf selection")
                raise SelectionCancelledException("no selection made") from exc
            raise

        chosen = result.output.strip("\n")
        index_text, _, _ = chosen.partition("\t")
        try:
            index = int(index_text)
        except ValueError as exc:
            raise SelectionCancelledException(f"unrecognised fzf selection {chosen!r}") from exc
        if not 0 <= index < len(entries):
            raise SelectionCancelledException(f"fzf returned out-of-range index {index}")
        return index
