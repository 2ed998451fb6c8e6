"""Interfaces to the messaging backend, plus a console stand-in for local runs."""

import asyncio
import sys
from typing import AsyncIterator, Optional, TextIO

import click
from pydantic import BaseModel


class IncomingMessage(BaseModel):
    """A message that arrived in the control conversation."""
    text: str
    chat_id: Optional[str] = None
    message_id: Optional[int] = None


class DescriptionClient:
    """What descbot needs from the messaging backend.

    ``set_description`` raises ThrottleError for flood waits,
    ContentRejectedError when the backend refuses the text, and
    TransportError for network or authorization problems.
    """

    async def set_description(self, text: str) -> None:
        raise NotImplementedError

    async def is_premium(self) -> Optional[bool]:
        """Account tier, or None if the backend cannot tell."""
        return None

    def messages(self) -> AsyncIterator[IncomingMessage]:
        raise NotImplementedError

    async def reply(self, message: IncomingMessage, text: str) -> None:
        raise NotImplementedError


class ConsoleClient(DescriptionClient):
    """Reads control messages from stdin and prints description updates."""

    def __init__(self, stream: Optional[TextIO] = None, premium: Optional[bool] = None):
        self.stream = stream or sys.stdin
        self.premium = premium
        self.description: Optional[str] = None

    async def set_description(self, text: str) -> None:
        self.description = text
        click.echo(f"[description] {text}")

    async def is_premium(self) -> Optional[bool]:
        return self.premium

    async def messages(self) -> AsyncIterator[IncomingMessage]:
        loop = asyncio.get_running_loop()
        count = 0
        while True:
            line = await loop.run_in_executor(None, self.stream.readline)
            if not line:
                return
            count += 1
            yield IncomingMessage(text=line.rstrip("\n"), chat_id="console", message_id=count)

    async def reply(self, message: IncomingMessage, text: str) -> None:
        click.echo(text)
