from __future__ import annotations

import logging
import shutil
from typing import Callable

from sdm_ui.config import Settings

logger = logging.getLogger(__name__)


def required_dependencies(settings: Settings, *, fuzzy: bool = False) -> list[str]:
    required = [settings.sdm_executable]
    if settings.password_command == "zenity":
        required.append("zenity")
    if settings.menu_command != "noop":
        required.append(settings.menu_command)
    if fuzzy:
        required.append("fzf")
    return required


def missing_dependencies(
    settings: Settings,
    *,
    fuzzy: bool = False,
    which: Callable[[str], str | None] | None = None,
) -> list[str]:
    which = which or shutil.which
    missing = []
    for dependency in required_dependencies(settings, fuzzy=fuzzy):
        path = which(dependency)
        if path is None:
            logger.error("Dependency not found dependency=%s", dependency)
            missing.append(dependency)
        else:
            logger.debug("Dependency found dependency=%s path=%s", dependency, path)
    return missing
