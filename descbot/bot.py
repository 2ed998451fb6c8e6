"""Wires the client, scheduler and dispatcher into one running bot."""

import asyncio
import logging
import signal
from typing import Optional

from .clock import Clock, SystemClock
from .client import DescriptionClient, IncomingMessage
from .commands import strip_prefix
from .descriptions import DescriptionSet
from .dispatcher import CommandDispatcher
from .errors import DescbotError
from .gate import RateGate
from .scheduler import Scheduler
from .settings import BotSettings
from .storage import DescriptionFile, DescriptionSource

logger = logging.getLogger(__name__)


class DescriptionBot:
    """One account, one control conversation, one scheduler."""

    def __init__(
        self,
        client: DescriptionClient,
        descriptions: DescriptionSet,
        settings: BotSettings,
        source: Optional[DescriptionSource] = None,
        clock: Optional[Clock] = None,
        detected_premium: Optional[bool] = None,
    ):
        self.client = client
        self.settings = settings
        self.clock = clock or SystemClock()
        self.gate = RateGate(
            client.set_description,
            min_interval=settings.min_update_interval,
            backoff_max_delay=settings.backoff_max_delay,
            clock=self.clock,
        )
        self.scheduler = Scheduler(
            descriptions,
            self.gate,
            clock=self.clock,
            source=source,
            persist_edits=settings.persist_edits,
            detected_premium=detected_premium,
        )
        self.dispatcher = CommandDispatcher(self.scheduler, settings.command_prefix)
        self._queue: "asyncio.Queue[IncomingMessage]" = asyncio.Queue(maxsize=settings.inbox_size)

    def stop(self) -> None:
        """Begin a graceful shutdown."""
        logger.info("Shutdown requested")
        self.scheduler.stop()

    async def _listen(self) -> None:
        """Feed control messages into the bounded queue.

        Ordinary chat is dropped here. Commands wait for room in the queue
        rather than being discarded.
        """
        try:
            async for message in self.client.messages():
                if strip_prefix(message.text, self.settings.command_prefix) is None:
                    continue
                await self._queue.put(message)
        except DescbotError as e:
            logger.error("Inbound message stream failed: %s", e)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Inbound message stream crashed")
        logger.info("Inbound message stream ended")

    async def _work(self) -> None:
        """Handle queued commands one at a time, in arrival order."""
        while True:
            message = await self._queue.get()
            try:
                reply = await self.dispatcher.handle(message.text)
                if reply is not None:
                    await self.client.reply(message, reply)
            except asyncio.CancelledError:
                raise
            except DescbotError as e:
                logger.error("Failed to reply to command: %s", e)
            except Exception:
                logger.exception("Unexpected error while handling command")
            finally:
                self._queue.task_done()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except NotImplementedError:
                # Windows event loops lack add_signal_handler
                signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(self.stop))

    async def run(self, install_signal_handlers: bool = True) -> None:
        """Run until stop() is called or a shutdown signal arrives."""
        if install_signal_handlers:
            self._install_signal_handlers(asyncio.get_running_loop())

        scheduler_task = asyncio.ensure_future(self.scheduler.run())
        listener = asyncio.ensure_future(self._listen())
        worker = asyncio.ensure_future(self._work())
        try:
            await scheduler_task
        finally:
            for task in (listener, worker):
                task.cancel()
            await asyncio.gather(listener, worker, return_exceptions=True)
            if not scheduler_task.done():
                scheduler_task.cancel()
                await asyncio.gather(scheduler_task, return_exceptions=True)
        logger.info("Bot stopped")


async def create_bot(
    client: DescriptionClient,
    settings: BotSettings,
    clock: Optional[Clock] = None,
) -> DescriptionBot:
    """Load and validate the descriptions document, then build the bot.

    Raises ConfigError if the document is missing or invalid.
    """
    source = DescriptionFile(settings.descriptions_path)
    document = source.load()

    detected: Optional[bool] = None
    if document.auto_detect_premium:
        try:
            detected = await client.is_premium()
        except DescbotError as e:
            logger.warning("Failed to auto-detect premium status: %s. Using config value.", e)
        if detected is None:
            logger.warning("Premium status unknown, using config value (premium: %s)", document.is_premium)
        else:
            logger.info("Auto-detected premium status: %s", "Premium" if detected else "Free")
            document = document.model_copy(update={"is_premium": detected})

    descriptions = DescriptionSet.from_document(document)
    logger.info(
        "Loaded %d descriptions (premium: %s)", len(descriptions), descriptions.is_premium
    )
    if not len(descriptions):
        logger.warning("No descriptions configured; nothing will be sent until one is added")

    return DescriptionBot(
        client,
        descriptions,
        settings,
        source=source,
        clock=clock,
        detected_premium=detected,
    )
