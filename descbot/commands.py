"""Control commands and the parser that recognizes them.

Only messages that start with the configured prefix are commands; anything
else is ordinary chat and parse() returns None for it. A recognized prefix
always yields either a Command or a ParseFailure with a usage hint.

    /description_bot add lunch 1800 Out for lunch
    -> Add(id="lunch", duration=1800, text="Out for lunch")
"""

from typing import Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from .models import MAX_DURATION

DEFAULT_PREFIX = "/description_bot"


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)


class Skip(_Command):
    pass


class Status(_Command):
    pass


class Goto(_Command):
    target: str


class Pause(_Command):
    pass


class Resume(_Command):
    pass


class Reload(_Command):
    pass


class SetOverride(_Command):
    text: str


class ClearOverride(_Command):
    pass


class Help(_Command):
    pass


class Info(_Command):
    pass


class ListAll(_Command):
    pass


class View(_Command):
    target: str


class Add(_Command):
    id: str
    duration: int
    text: str


class Edit(_Command):
    id: str
    text: str


class SetDuration(_Command):
    id: str
    duration: int


class Delete(_Command):
    id: str


Command = Union[
    Skip, Status, Goto, Pause, Resume, Reload, SetOverride, ClearOverride,
    Help, Info, ListAll, View, Add, Edit, SetDuration, Delete,
]

COMMAND_TYPES = (
    Skip, Status, Goto, Pause, Resume, Reload, SetOverride, ClearOverride,
    Help, Info, ListAll, View, Add, Edit, SetDuration, Delete,
)


class ParseFailure(BaseModel):
    """A prefixed message that is not a valid command."""

    model_config = ConfigDict(frozen=True)

    verb: str
    reason: str
    usage: Optional[str] = None

    @property
    def message(self) -> str:
        if self.usage:
            return f"{self.reason}\nUsage: {self.usage}"
        return self.reason


class _Usage(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _one_arg(args: str, what: str) -> str:
    if not args:
        raise _Usage(f"Missing {what}.")
    return args.split()[0]


def _rest(args: str, what: str) -> str:
    if not args:
        raise _Usage(f"Missing {what}.")
    return args


def _duration(value: str) -> int:
    # length check first: int() refuses very long digit strings
    if (
        not (value.isascii() and value.isdigit())
        or len(value) > len(str(MAX_DURATION))
        or int(value) > MAX_DURATION
    ):
        shown = value if len(value) <= 12 else value[:12] + "..."
        raise _Usage(
            f"Duration must be a whole number of seconds up to {MAX_DURATION}, got '{shown}'."
        )
    return int(value)


def _parse_add(args: str) -> Add:
    parts = args.split(None, 2)
    if len(parts) < 3:
        raise _Usage("Missing arguments.")
    return Add(id=parts[0], duration=_duration(parts[1]), text=parts[2].strip())


def _parse_edit(args: str) -> Edit:
    parts = args.split(None, 1)
    if len(parts) < 2:
        raise _Usage("Missing arguments.")
    return Edit(id=parts[0], text=parts[1].strip())


def _parse_duration(args: str) -> SetDuration:
    parts = args.split()
    if len(parts) < 2:
        raise _Usage("Missing arguments.")
    return SetDuration(id=parts[0], duration=_duration(parts[1]))


# name, aliases, usage, help text, builder(args)
_VERBS: List[Tuple[str, Tuple[str, ...], str, str, Callable[[str], Command]]] = [
    ("skip", ("next",), "skip", "Skip current description, move to next",
     lambda args: Skip()),
    ("status", ("stat", "s"), "status", "Show current status and time remaining",
     lambda args: Status()),
    ("list", ("ls", "l"), "list", "List all configured descriptions",
     lambda args: ListAll()),
    ("view", ("v", "show"), "view <id>", "View details of a specific description",
     lambda args: View(target=_one_arg(args, "description id"))),
    ("goto", ("go", "jump"), "goto <id>", "Jump to a specific description (by ID or position)",
     lambda args: Goto(target=_one_arg(args, "description id"))),
    ("pause", ("stop",), "pause", "Pause description rotation",
     lambda args: Pause()),
    ("resume", ("start", "continue"), "resume", "Resume description rotation",
     lambda args: Resume()),
    ("reload", ("refresh",), "reload", "Reload descriptions from file",
     lambda args: Reload()),
    ("set", (), "set <text>", "Show a custom description until the next rotation",
     lambda args: SetOverride(text=_rest(args, "text"))),
    ("clear", ("unset",), "clear", "Drop the custom description",
     lambda args: ClearOverride()),
    ("add", ("a", "new"), "add <id> <seconds> <text>", "Add a new description",
     _parse_add),
    ("edit", ("e", "change"), "edit <id> <text>", "Edit description text",
     _parse_edit),
    ("duration", ("dur", "time"), "duration <id> <seconds>", "Change description duration",
     _parse_duration),
    ("delete", ("del", "rm", "remove"), "delete <id>", "Delete a description",
     lambda args: Delete(id=_one_arg(args, "description id"))),
    ("info", ("about", "version"), "info", "Show bot information",
     lambda args: Info()),
    ("help", ("h", "?"), "help", "Show this help message",
     lambda args: Help()),
]

_LOOKUP: Dict[str, Tuple[str, str, Callable[[str], Command]]] = {}
for _name, _aliases, _usage, _help, _build in _VERBS:
    for _verb in (_name,) + _aliases:
        _LOOKUP[_verb] = (_name, _usage, _build)


def help_entries() -> List[Tuple[str, Tuple[str, ...], str]]:
    """(usage, aliases, help text) for every command, in help order."""
    return [(usage, aliases, text) for _, aliases, usage, text, _ in _VERBS]


def strip_prefix(text: str, prefix: str) -> Optional[str]:
    """Return what follows the prefix, or None if the message is not addressed to us."""
    text = text.strip()
    if not text.startswith(prefix):
        return None
    rest = text[len(prefix):]
    if rest and not rest[0].isspace():
        return None
    return rest.strip()


def parse(text: str, prefix: str = DEFAULT_PREFIX) -> Optional[Union[Command, ParseFailure]]:
    """Turn a raw message into a Command, a ParseFailure, or None."""
    body = strip_prefix(text, prefix)
    if body is None:
        return None
    if not body:
        return Help()

    parts = body.split(None, 1)
    verb = parts[0].lower()
    args = parts[1].strip() if len(parts) > 1 else ""

    entry = _LOOKUP.get(verb)
    if entry is None:
        return ParseFailure(
            verb=verb,
            reason=f"Unknown command: '{verb}'.",
            usage=f"{prefix} help",
        )

    name, usage, build = entry
    try:
        return build(args)
    except _Usage as e:
        return ParseFailure(verb=name, reason=e.reason, usage=f"{prefix} {usage}")
