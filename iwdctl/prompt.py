"""Passphrase prompts handed to the agent."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import typer

from iwdctl.core.errors import PromptCanceled

LOGGER = logging.getLogger(__name__)


class CommandPrompt:
    """Ask through an external program such as a dmenu or rofi password prompt.

    ``{ssid}`` in any argument is replaced with the network name. The secret
    is the first line of stdout; a non-zero exit or empty output cancels.
    """

    def __init__(self, command: Sequence[str]) -> None:
        if not command:
            raise ValueError("prompt command must not be empty")
        self.command = tuple(command)

    async def __call__(self, ssid: str) -> str | None:
        args = [arg.replace("{ssid}", ssid) for arg in self.command]
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise PromptCanceled(f"Prompt command {args[0]} not found") from exc

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise

        if proc.returncode != 0:
            LOGGER.debug("Prompt exited with %d: %s", proc.returncode, stderr.decode(errors="replace").strip())
            raise PromptCanceled("User canceled")
        lines = stdout.decode(errors="replace").splitlines()
        secret = lines[0] if lines else ""
        return secret or None


class TerminalPrompt:
    """Ask on the controlling terminal with hidden input."""

    async def __call__(self, ssid: str) -> str | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._ask, ssid)

    @staticmethod
    def _ask(ssid: str) -> str | None:
        try:
            return typer.prompt(f"Passphrase for {ssid}", hide_input=True)
        except typer.Abort as exc:
            raise PromptCanceled("User canceled") from exc
