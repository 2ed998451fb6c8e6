"""Control loop that owns the rotation state.

The scheduler is the only code that touches RotationState. Other tasks talk
to it through submit(), which queues the command and waits for the reply.
Each loop iteration recomputes how long until the current entry is due and
waits for whichever comes first: that timer or the next command.

Sends are handed to the RateGate in their own tasks, so a held or
backed-off update never stops the loop from taking the next command.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from . import commands as cmd
from .clock import Clock
from .descriptions import DescriptionSet
from .errors import DescbotError, RotationStateError, SendError
from .gate import RateGate
from .models import Description, Outcome, SchedulerState, Snapshot
from .rotation import RotationState
from .storage import DescriptionSource
from .validator import validate

logger = logging.getLogger(__name__)


class ControlMessage:
    """A command on its way into the scheduler, with the future for its reply."""

    __slots__ = ("command", "reply")

    def __init__(self, command: Optional[cmd.Command], reply: Optional[asyncio.Future]):
        self.command = command
        self.reply = reply


def _short(text: str, limit: int = 30) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class Scheduler:
    """Rotates descriptions on their timers and applies control commands."""

    def __init__(
        self,
        descriptions: DescriptionSet,
        gate: RateGate,
        clock: Optional[Clock] = None,
        source: Optional[DescriptionSource] = None,
        persist_edits: bool = False,
        detected_premium: Optional[bool] = None,
    ):
        self.clock = clock or gate.clock
        self._gate = gate
        self._source = source
        self._persist_edits = persist_edits
        self._detected_premium = detected_premium
        self._rotation = RotationState(descriptions, self.clock.now())
        self._inbox: "asyncio.Queue[ControlMessage]" = asyncio.Queue()
        self._stopped = False
        self._requested: Optional[str] = None
        self._deliveries: Set[asyncio.Task] = set()

        self._handlers: Dict[type, Callable[..., Outcome]] = {
            cmd.Skip: self._skip,
            cmd.Status: self._report,
            cmd.Goto: self._goto,
            cmd.Pause: self._pause,
            cmd.Resume: self._resume,
            cmd.Reload: self._reload,
            cmd.SetOverride: self._set_override,
            cmd.ClearOverride: self._clear_override,
            cmd.Help: self._report,
            cmd.Info: self._report,
            cmd.ListAll: self._report,
            cmd.View: self._view,
            cmd.Add: self._add,
            cmd.Edit: self._edit,
            cmd.SetDuration: self._set_duration,
            cmd.Delete: self._delete,
        }

    @property
    def handled_commands(self):
        return frozenset(self._handlers)

    @property
    def state(self) -> SchedulerState:
        if self._stopped:
            return SchedulerState.STOPPED
        if self._rotation.paused:
            return SchedulerState.PAUSED
        return SchedulerState.RUNNING

    def snapshot(self) -> Snapshot:
        rotation = self._rotation
        return Snapshot(
            state=self.state,
            entries=list(rotation.descriptions.entries),
            current_index=rotation.current_index,
            remaining=rotation.seconds_until_due(self.clock.now()),
            override=rotation.override,
            is_premium=rotation.descriptions.is_premium,
        )

    async def submit(self, command: cmd.Command) -> Outcome:
        """Apply a command inside the loop and wait for the result.

        Raises the DescbotError the command was rejected with.
        """
        if self._stopped:
            raise RotationStateError("Scheduler is stopped.")
        reply = asyncio.get_running_loop().create_future()
        await self._inbox.put(ControlMessage(command, reply))
        return await reply

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration."""
        if not self._stopped:
            self._inbox.put_nowait(ControlMessage(None, None))

    async def run(self) -> None:
        """Run until stop() is called or the task is cancelled."""
        logger.info("Description scheduler started with %d descriptions", len(self._rotation.descriptions))
        self._deliver(self._rotation.display_text())
        getter: Optional[asyncio.Future] = None
        try:
            while not self._stopped:
                self._advance_if_due()

                wait = self._rotation.seconds_until_due(self.clock.now())
                if getter is None:
                    getter = asyncio.ensure_future(self._inbox.get())
                waiters = {getter}
                timer = None
                if wait is not None:
                    timer = asyncio.ensure_future(self.clock.sleep(wait))
                    waiters.add(timer)

                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                if timer is not None and not timer.done():
                    timer.cancel()

                if getter in done:
                    message = getter.result()
                    getter = None
                    self._handle(message)
        finally:
            self._stopped = True
            if getter is not None:
                getter.cancel()
            self._reject_queued()
            for task in list(self._deliveries):
                task.cancel()
            await self._gate.close()
            logger.info("Description scheduler stopped")

    def _reject_queued(self) -> None:
        while not self._inbox.empty():
            message = self._inbox.get_nowait()
            if message.reply is not None and not message.reply.done():
                message.reply.set_exception(RotationStateError("Scheduler is stopped."))

    def _advance_if_due(self) -> None:
        now = self.clock.now()
        if not self._rotation.is_due(now):
            return
        self._rotation.advance(now)
        current = self._rotation.current
        logger.info(
            "Advancing to [%s] (%d/%d)",
            current.id, self._rotation.current_index + 1, len(self._rotation.descriptions),
        )
        self._deliver(self._rotation.display_text())

    def _handle(self, message: ControlMessage) -> None:
        if message.command is None:
            logger.info("Scheduler shutting down")
            self._stopped = True
            return

        handler = self._handlers[type(message.command)]
        try:
            outcome = handler(message.command)
        except DescbotError as e:
            logger.info("Command %s rejected: %s", type(message.command).__name__, e)
            if not message.reply.done():
                message.reply.set_exception(e)
            return
        except Exception as e:
            logger.exception("Command %s failed", type(message.command).__name__)
            if not message.reply.done():
                message.reply.set_exception(e)
            return

        if not message.reply.done():
            message.reply.set_result(outcome)

    def _deliver(self, text: Optional[str]) -> None:
        """Hand text to the rate gate without waiting for it."""
        if text is None:
            return
        verdict = validate(text, self._rotation.descriptions.is_premium)
        if not verdict.ok:
            logger.error("Refusing to send invalid description: %s", verdict.message)
            return
        self._requested = text
        task = asyncio.ensure_future(self._send(text))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _send(self, text: str) -> None:
        logger.debug("Requesting description update: %s", _short(text))
        try:
            receipt = await self._gate.send(text)
        except SendError as e:
            logger.error("Failed to update description: %s", e)
            return
        except Exception:
            logger.exception("Unexpected error while updating description")
            return
        if receipt.coalesced:
            logger.debug("Update superseded by a newer description")
        else:
            logger.info("Description updated: %s", _short(receipt.text))

    def _sync(self) -> None:
        """Send the display text if it differs from the last one requested."""
        text = self._rotation.display_text()
        if text is not None and text != self._requested:
            self._deliver(text)

    def _outcome(self, **kwargs) -> Outcome:
        return Outcome(snapshot=self.snapshot(), **kwargs)

    def _save(self, descriptions: DescriptionSet) -> None:
        if self._source is None or not self._persist_edits:
            return
        self._source.save(
            descriptions.to_document(auto_detect_premium=self._detected_premium is not None)
        )

    def _entry(self, description_id: str) -> Description:
        return self._rotation.descriptions.get(description_id)

    # Command handlers. Each validates fully before it changes anything.

    def _report(self, command: cmd.Command) -> Outcome:
        return self._outcome()

    def _view(self, command: cmd.View) -> Outcome:
        return self._outcome(entry=self._rotation.descriptions.get(command.target))

    def _skip(self, command: cmd.Skip) -> Outcome:
        entry = self._rotation.skip(self.clock.now())
        self._deliver(self._rotation.display_text())
        return self._outcome(entry=entry)

    def _goto(self, command: cmd.Goto) -> Outcome:
        entry = self._rotation.goto(command.target, self.clock.now())
        self._deliver(self._rotation.display_text())
        return self._outcome(entry=entry)

    def _pause(self, command: cmd.Pause) -> Outcome:
        self._rotation.pause()
        return self._outcome()

    def _resume(self, command: cmd.Resume) -> Outcome:
        self._rotation.resume(self.clock.now())
        self._sync()
        return self._outcome()

    def _set_override(self, command: cmd.SetOverride) -> Outcome:
        self._rotation.set_override(command.text)
        self._deliver(command.text)
        return self._outcome()

    def _clear_override(self, command: cmd.ClearOverride) -> Outcome:
        self._rotation.clear_override()
        self._sync()
        return self._outcome()

    def _reload(self, command: cmd.Reload) -> Outcome:
        if self._source is None:
            raise RotationStateError("Reload is not available: no descriptions file configured.")
        document = self._source.load()
        if document.auto_detect_premium and self._detected_premium is not None:
            document = document.model_copy(update={"is_premium": self._detected_premium})
        descriptions = DescriptionSet.from_document(document)

        previous_count = len(self._rotation.descriptions)
        self._rotation.replace_descriptions(descriptions, self.clock.now())
        logger.info("Reloaded descriptions: %d -> %d", previous_count, len(descriptions))
        self._sync()
        return self._outcome(previous_count=previous_count)

    def _add(self, command: cmd.Add) -> Outcome:
        description = Description(id=command.id, text=command.text, duration=command.duration)
        self._save(self._rotation.descriptions.add(description))
        entry = self._rotation.add(description, self.clock.now())
        self._sync()
        return self._outcome(entry=entry)

    def _edit(self, command: cmd.Edit) -> Outcome:
        updated = self._rotation.descriptions.edit(command.id, command.text)
        self._save(updated)
        previous = self._entry(command.id)
        entry = self._rotation.edit(command.id, command.text)
        self._sync()
        return self._outcome(entry=entry, previous=previous)

    def _set_duration(self, command: cmd.SetDuration) -> Outcome:
        updated = self._rotation.descriptions.set_duration(command.id, command.duration)
        self._save(updated)
        previous = self._entry(command.id)
        entry = self._rotation.set_duration(command.id, command.duration)
        return self._outcome(entry=entry, previous=previous)

    def _delete(self, command: cmd.Delete) -> Outcome:
        updated, _ = self._rotation.descriptions.delete(command.id)
        self._save(updated)
        removed = self._rotation.delete(command.id, self.clock.now())
        self._sync()
        return self._outcome(entry=removed)
