"""Command dispatcher: parse, hand to the scheduler, format the reply.

    owner types: "/description_bot goto evening"
                  ↓
    parse() → Goto(target="evening")
                  ↓
    scheduler.submit(Goto) → Outcome (or a DescbotError)
                  ↓
    "✓ Jumping to [evening]: ..." goes back to the same chat

Messages without the prefix return None and get no reply at all.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from . import __version__
from . import commands as cmd
from .errors import DescbotError
from .models import Outcome, SchedulerState
from .scheduler import Scheduler
from .validator import display_length, max_length

logger = logging.getLogger(__name__)


def truncate(text: str, limit: int) -> str:
    """Cut text to limit characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_duration(seconds: int) -> str:
    """30s, 5m, 2h, 1h 30m."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    hours, minutes = seconds // 3600, (seconds % 3600) // 60
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


class CommandDispatcher:
    """Turns control messages into replies."""

    def __init__(self, scheduler: Scheduler, prefix: str = cmd.DEFAULT_PREFIX):
        self.scheduler = scheduler
        self.prefix = prefix
        self._formatters: Dict[type, Callable[..., str]] = {
            cmd.Skip: self._format_skip,
            cmd.Status: self._format_status,
            cmd.Goto: self._format_goto,
            cmd.Pause: lambda c, o: "⏸ Description rotation paused.",
            cmd.Resume: lambda c, o: "▶ Description rotation resumed.",
            cmd.Reload: self._format_reload,
            cmd.SetOverride: lambda c, o: f"✓ Setting custom description: \"{truncate(c.text, 30)}\"",
            cmd.ClearOverride: lambda c, o: "✓ Custom description cleared.",
            cmd.ListAll: self._format_list,
            cmd.View: self._format_view,
            cmd.Add: self._format_add,
            cmd.Edit: lambda c, o: f"✓ Updated [{c.id}]: \"{truncate(c.text, 30)}\"",
            cmd.SetDuration: self._format_duration,
            cmd.Delete: lambda c, o: f"✓ Deleted [{o.entry.id}]: \"{truncate(o.entry.text, 30)}\"",
        }

    async def handle(self, text: str) -> Optional[str]:
        """Reply text for a message, or None when the message is not a command."""
        parsed = cmd.parse(text, self.prefix)
        if parsed is None:
            return None
        if isinstance(parsed, cmd.ParseFailure):
            logger.info("Could not parse command %r: %s", parsed.verb, parsed.reason)
            return f"✗ {parsed.message}"
        return await self.dispatch(parsed)

    async def dispatch(self, command: cmd.Command) -> str:
        name = type(command).__name__
        if isinstance(command, cmd.Help):
            return self.help_text()
        if isinstance(command, cmd.Info):
            return self.info_text()
        try:
            outcome = await self.scheduler.submit(command)
        except DescbotError as e:
            logger.info("Command %s failed: %s", name, e)
            return f"✗ {e}"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Command %s crashed", name)
            return f"✗ Internal error: {e}"
        logger.info("Command %s applied", name)
        return self._formatters[type(command)](command, outcome)

    def help_text(self) -> str:
        lines = [f"Description Bot Commands (prefix: {self.prefix})", ""]
        for usage, aliases, text in cmd.help_entries():
            alias_str = f" ({', '.join(aliases)})" if aliases else ""
            lines.append(f"  {usage}{alias_str} - {text}")
        return "\n".join(lines)

    def info_text(self) -> str:
        return (
            f"Description Bot v{__version__}\n"
            "Rotates your profile description on a schedule."
        )

    def _format_skip(self, command: cmd.Skip, outcome: Outcome) -> str:
        return f"✓ Skipped to [{outcome.entry.id}]: \"{truncate(outcome.entry.text, 30)}\""

    def _format_goto(self, command: cmd.Goto, outcome: Outcome) -> str:
        return f"✓ Jumping to [{outcome.entry.id}]: \"{truncate(outcome.entry.text, 30)}\""

    def _format_status(self, command: cmd.Status, outcome: Outcome) -> str:
        snap = outcome.snapshot
        current = snap.current
        if current is None:
            current_desc = "None"
            position = f"0/{len(snap.entries)}"
        else:
            current_desc = f"[{current.id}] \"{truncate(current.text, 30)}\""
            position = f"{snap.current_index + 1}/{len(snap.entries)}"
        status = "⏸ Paused" if snap.state is SchedulerState.PAUSED else "▶ Running"
        time_info = f"{int(snap.remaining)}s remaining" if snap.remaining is not None else "N/A"
        lines = [
            f"Status: {status}",
            f"Current: {current_desc}",
            f"Index: {position}",
            f"Time: {time_info}",
        ]
        if snap.override is not None:
            lines.append(f"Custom: \"{truncate(snap.override, 30)}\"")
        lines.append(f"Account: {'Premium' if snap.is_premium else 'Free'}")
        return "\n".join(lines)

    def _format_reload(self, command: cmd.Reload, outcome: Outcome) -> str:
        return (
            f"✓ Reloaded configuration. {outcome.previous_count} → "
            f"{len(outcome.snapshot.entries)} descriptions."
        )

    def _format_list(self, command: cmd.ListAll, outcome: Outcome) -> str:
        snap = outcome.snapshot
        if not snap.entries:
            return "No descriptions configured."
        lines = ["Configured descriptions:"]
        for i, desc in enumerate(snap.entries):
            marker = "→ " if i == snap.current_index else "  "
            lines.append(f"{marker}[{desc.id}] {truncate(desc.text, 25)} ({format_duration(desc.duration)})")
        return "\n".join(lines)

    def _format_view(self, command: cmd.View, outcome: Outcome) -> str:
        desc = outcome.entry
        return (
            f"Description [{desc.id}]:\n"
            f"Text: \"{desc.text}\"\n"
            f"Duration: {format_duration(desc.duration)}\n"
            f"Length: {display_length(desc.text)}/{max_length(outcome.snapshot.is_premium)} chars"
        )

    def _format_add(self, command: cmd.Add, outcome: Outcome) -> str:
        return (
            f"✓ Added description [{command.id}]: \"{truncate(command.text, 25)}\" "
            f"({format_duration(command.duration)})"
        )

    def _format_duration(self, command: cmd.SetDuration, outcome: Outcome) -> str:
        return (
            f"✓ Updated [{command.id}] duration: {format_duration(outcome.previous.duration)} → "
            f"{format_duration(command.duration)}"
        )
