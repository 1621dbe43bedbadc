from typing import Protocol

from .payloads import Request


class Transport(Protocol):
    """Delivers one encoded request; returns True only on collector success."""

    async def send(self, request: Request) -> bool: ...

    async def aclose(self) -> None: ...
