"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Awaitable, Protocol

from iwdctl.core.model import EventKind, PassphraseReply

SignalHandler = Callable[[EventKind, str, list[Any]], None]


class Registration(Protocol):
    async def close(self) -> None:
        """Undo the registration. Calling it twice is harmless."""


class AgentBackend(Protocol):
    """What the exported agent object forwards daemon calls to."""

    def release(self) -> None: ...

    def request_passphrase(self, network_path: str) -> Awaitable[PassphraseReply]: ...

    def cancel(self, reason: str) -> None: ...


class Bus(Protocol):
    async def get_managed_objects(self) -> Mapping[str, Mapping[str, Mapping[str, Any]]]:
        """Return the daemon's whole object tree with variants unpacked."""

    async def call_method(
        self,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        """Call a daemon method and return the reply body, raising RpcError on error replies."""

    async def ping(self, timeout_s: float) -> None:
        """Check the daemon answers within timeout_s."""

    async def export_agent(self, path: str, backend: AgentBackend) -> Registration:
        """Expose the agent interface at path."""

    async def subscribe(self, kind: EventKind, handler: SignalHandler) -> Registration:
        """Deliver daemon signals of one kind to handler."""

    async def close(self) -> None:
        """Drop the bus connection."""
