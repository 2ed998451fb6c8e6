"""Rate gate for the one outbound call: setting the account description.

Every request is eventually honored, but never closer than
``min_interval`` seconds to the previous accepted call. While a request is
held, a newer one replaces it (last write wins) and the replaced caller is
acknowledged as coalesced. Flood-wait signals from the backend are absorbed
here with exponential backoff; callers only see the extra latency.

Usage:
    gate = RateGate(client.set_description, min_interval=60)
    receipt = await gate.send("Out for lunch")
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict

from .clock import Clock, SystemClock
from .errors import ThrottleError

logger = logging.getLogger(__name__)


class GatePhase(str, Enum):
    """What the gate is doing right now."""
    IDLE = "idle"
    WAITING = "waiting"
    SENDING = "sending"
    BACKOFF = "backoff"


class SendReceipt(BaseModel):
    """Acknowledgment for a send() call."""

    model_config = ConfigDict(frozen=True)

    text: str  # the text that was (or will be) transmitted
    coalesced: bool = False


class _Request:
    __slots__ = ("text", "future")

    def __init__(self, text: str, future: asyncio.Future):
        self.text = text
        self.future = future


class RateGate:
    """Serializes and throttles calls to the description setter."""

    def __init__(
        self,
        transmit: Callable[[str], Awaitable[None]],
        min_interval: float = 60.0,
        backoff_max_delay: float = 3600.0,
        clock: Optional[Clock] = None,
    ):
        self._transmit = transmit
        self.min_interval = min_interval
        self.backoff_max_delay = backoff_max_delay
        self.clock = clock or SystemClock()

        self.phase = GatePhase.IDLE
        self.last_sent: Optional[float] = None
        self.backoff_level = 0
        self.retry_at: Optional[float] = None

        self._pending: Optional[_Request] = None
        self._drainer: Optional[asyncio.Task] = None

    def ready_at(self) -> float:
        """Earliest time the next transmission may start."""
        ready = self.clock.now()
        if self.last_sent is not None:
            ready = max(ready, self.last_sent + self.min_interval)
        if self.retry_at is not None:
            ready = max(ready, self.retry_at)
        return ready

    @property
    def pending_text(self) -> Optional[str]:
        return self._pending.text if self._pending is not None else None

    async def send(self, text: str) -> SendReceipt:
        """Queue text for transmission and wait until it is sent or superseded.

        Raises the client's error if the transmission fails for any reason
        other than throttling.
        """
        future = asyncio.get_running_loop().create_future()
        superseded = self._pending
        self._pending = _Request(text, future)
        if superseded is not None and not superseded.future.done():
            logger.debug("Coalescing held description update")
            superseded.future.set_result(SendReceipt(text=text, coalesced=True))

        if self._drainer is None or self._drainer.done():
            self._drainer = asyncio.create_task(self._drain())

        return await future

    def _backoff_delay(self, hint: float) -> float:
        delay = min(max(hint, 0.0) * (2 ** self.backoff_level), self.backoff_max_delay)
        self.backoff_level += 1
        return delay

    async def _drain(self) -> None:
        try:
            while self._pending is not None:
                wait = self.ready_at() - self.clock.now()
                if wait > 0:
                    if self.phase is not GatePhase.BACKOFF:
                        self.phase = GatePhase.WAITING
                    logger.debug("Rate gate holding update for %.1fs", wait)
                    await self.clock.sleep(wait)
                    continue

                request, self._pending = self._pending, None
                if request.future.done():
                    continue

                self.phase = GatePhase.SENDING
                try:
                    await self._transmit(request.text)
                except ThrottleError as e:
                    delay = self._backoff_delay(e.wait_seconds)
                    self.retry_at = self.clock.now() + delay
                    self.phase = GatePhase.BACKOFF
                    logger.warning(
                        "Flood wait of %ss, backing off %.0fs (level %d)",
                        e.wait_seconds, delay, self.backoff_level,
                    )
                    if self._pending is None:
                        self._pending = request
                    elif not request.future.done():
                        request.future.set_result(SendReceipt(text=self._pending.text, coalesced=True))
                    continue
                except Exception as e:
                    if not request.future.done():
                        request.future.set_exception(e)
                    self.phase = GatePhase.IDLE
                    continue

                self.last_sent = self.clock.now()
                self.retry_at = None
                self.backoff_level = 0
                self.phase = GatePhase.IDLE
                if not request.future.done():
                    request.future.set_result(SendReceipt(text=request.text))
        finally:
            self.phase = GatePhase.IDLE

    async def close(self) -> None:
        """Abandon any held request and stop the drain task."""
        if self._pending is not None and not self._pending.future.done():
            self._pending.future.cancel()
        self._pending = None
        if self._drainer is not None and not self._drainer.done():
            self._drainer.cancel()
            try:
                await self._drainer
            except asyncio.CancelledError:
                pass
        self._drainer = None
