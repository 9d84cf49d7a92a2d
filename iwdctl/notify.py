"""Desktop notifications for connection outcomes."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

from iwdctl.core.config import DEFAULT_NOTIFY_COMMAND

LOGGER = logging.getLogger(__name__)


class DesktopNotifier:
    def __init__(self, command: Sequence[str] = DEFAULT_NOTIFY_COMMAND) -> None:
        self.command = tuple(command)

    def __call__(self, title: str, body: str) -> None:
        cmd = [*self.command, title, body]
        try:
            result = subprocess.run(cmd, check=False, capture_output=True, text=True)
        except FileNotFoundError:
            LOGGER.debug("Notification command %s not installed", self.command[0])
            return
        if result.returncode != 0:
            LOGGER.warning(
                "Notification command %s exited with %d: %s",
                self.command[0],
                result.returncode,
                (result.stderr or "").strip(),
            )
