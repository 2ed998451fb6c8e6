"""Test suite for descbot - validator, description set, rotation, parser, storage, CLI."""

import json

import pytest
from click.testing import CliRunner

from descbot import commands as cmd
from descbot.cli import cli
from descbot.descriptions import DescriptionSet
from descbot.dispatcher import format_duration, truncate
from descbot.errors import (
    ConfigError,
    DescriptionNotFound,
    DescriptionValidationError,
    DuplicateIdError,
    InvalidDurationError,
    RotationStateError,
)
from descbot.models import MAX_DURATION, Description, DescriptionDocument, DescriptionEntry
from descbot.rotation import RotationState
from descbot.settings import BotSettings
from descbot.storage import DescriptionFile
from descbot.validator import VerdictKind, display_length, ensure_valid, validate

PREFIX = "/description_bot"


def make_set(*rows, is_premium=False):
    """Build a validated set from (id, text, duration) tuples."""
    return DescriptionSet.load(
        [Description(id=i, text=t, duration=d) for i, t, d in rows], is_premium
    )


def abc_set():
    return make_set(("a", "Alpha", 10), ("b", "Bravo", 20), ("c", "Charlie", 30))


# Validator


def test_free_tier_length_boundary():
    """Test: 70 characters pass and 71 fail on a free account."""
    assert validate("a" * 70, is_premium=False).ok
    verdict = validate("a" * 71, is_premium=False)
    assert verdict.kind is VerdictKind.TOO_LONG
    assert verdict.limit == 70
    assert verdict.length == 71


def test_premium_tier_length_boundary():
    """Test: 140 characters pass and 141 fail on a premium account."""
    assert validate("a" * 140, is_premium=True).ok
    verdict = validate("a" * 141, is_premium=True)
    assert verdict.kind is VerdictKind.TOO_LONG
    assert verdict.limit == 140


def test_zero_width_space_rejected_regardless_of_length():
    assert validate("Hi\u200bthere", is_premium=False).kind is VerdictKind.INVISIBLE_CHARACTERS
    assert validate("\u200b", is_premium=True).kind is VerdictKind.INVISIBLE_CHARACTERS
    assert validate("a" * 100 + "\u200b", is_premium=False).kind is VerdictKind.INVISIBLE_CHARACTERS


@pytest.mark.parametrize("ch", ["\u200c", "\u200d", "\u2060", "\ufeff", "\u3164"])
def test_other_invisible_characters_rejected(ch):
    verdict = validate(f"Hello{ch}World", is_premium=False)
    assert verdict.kind is VerdictKind.INVISIBLE_CHARACTERS
    assert verdict.code_point == ord(ch)


def test_empty_and_blank_text_rejected():
    assert validate("", is_premium=False).kind is VerdictKind.EMPTY
    assert validate("   \n", is_premium=False).kind is VerdictKind.EMPTY


def test_non_text_content_rejected():
    embedded = validate("photo \ufffc", is_premium=False)
    assert embedded.kind is VerdictKind.NON_TEXT_CONTENT
    assert "Embedded objects" in embedded.message
    assert validate("bell\x07", is_premium=False).kind is VerdictKind.NON_TEXT_CONTENT


def test_newlines_tabs_and_emoji_allowed():
    assert validate("Line one\nLine\ttwo", is_premium=False).ok
    assert validate("Привет мир! 👋", is_premium=False).ok


def test_length_counts_perceived_characters():
    assert display_length("Hello 👋🌍") == 8
    assert display_length("\u2600\ufe0f") == 1  # sun + variation selector
    assert display_length("e\u0301") == 1  # e + combining acute
    assert display_length("\U0001f44b\U0001f3fd") == 1  # wave + skin tone
    assert display_length("1\ufe0f\u20e3") == 1  # keycap
    assert display_length("\U0001f1fa\U0001f1e6") == 2  # flag: two regional indicators
    assert validate("e\u0301" * 70, is_premium=False).ok


def test_ensure_valid_raises_with_verdict():
    with pytest.raises(DescriptionValidationError) as exc:
        ensure_valid("a" * 71, is_premium=False)
    assert exc.value.verdict.kind is VerdictKind.TOO_LONG
    assert "71 chars (max: 70)" in str(exc.value)


# DescriptionSet


def test_load_valid_set():
    descriptions = abc_set()
    assert len(descriptions) == 3
    assert [d.id for d in descriptions] == ["a", "b", "c"]


@pytest.mark.parametrize(
    "rows, fragment",
    [
        ([("a", "One", 10), ("a", "Two", 10)], "Duplicate description ID"),
        ([("a", "One", 10), ("b", "", 10)], "empty"),
        ([("a", "One", 0)], "invalid duration"),
        ([("a", "One", -5)], "invalid duration"),
        ([("a", "One", MAX_DURATION + 1)], "invalid duration"),
        ([("a", "One", 10 ** 400)], "invalid duration"),
        ([("a", "x" * 71, 10)], "too long"),
        ([("a", "Hi\u200b", 10)], "Invisible"),
        ([("has space", "Hi", 10)], "Invalid description ID"),
    ],
)
def test_load_rejects_invalid_documents(rows, fragment):
    with pytest.raises(ConfigError) as exc:
        make_set(*rows)
    assert fragment.lower() in str(exc.value).lower()


def test_premium_allows_longer_entries():
    descriptions = make_set(("long", "a" * 100, 60), is_premium=True)
    assert descriptions[0].text == "a" * 100


def test_from_document():
    document = DescriptionDocument(
        descriptions=[DescriptionEntry(id="x", text="Hello", duration_secs=30)],
        is_premium=True,
    )
    descriptions = DescriptionSet.from_document(document)
    assert descriptions.is_premium
    assert descriptions[0] == Description(id="x", text="Hello", duration=30)
    assert descriptions.to_document().descriptions[0].duration_secs == 30


def test_add_rejects_existing_id_without_overwrite():
    descriptions = abc_set()
    with pytest.raises(DuplicateIdError):
        descriptions.add(Description(id="a", text="Other", duration=5))
    assert descriptions.get("a").text == "Alpha"


def test_add_returns_new_set():
    descriptions = abc_set()
    updated = descriptions.add(Description(id="d", text="Delta", duration=40))
    assert len(descriptions) == 3
    assert len(updated) == 4
    assert updated[3].id == "d"


def test_add_validates_text_and_duration():
    descriptions = abc_set()
    with pytest.raises(DescriptionValidationError):
        descriptions.add(Description(id="d", text="", duration=40))
    with pytest.raises(InvalidDurationError):
        descriptions.add(Description(id="d", text="Delta", duration=0))


def test_duration_upper_bound():
    descriptions = abc_set()
    assert descriptions.set_duration("a", MAX_DURATION).get("a").duration == MAX_DURATION
    with pytest.raises(InvalidDurationError):
        descriptions.set_duration("a", MAX_DURATION + 1)
    with pytest.raises(InvalidDurationError) as exc:
        descriptions.add(Description(id="x", text="Hello", duration=10 ** 400))
    assert f"more than {MAX_DURATION}" in str(exc.value)
    assert descriptions.get("a").duration == 10


def test_edit_and_set_duration():
    descriptions = abc_set()
    edited = descriptions.edit("b", "Beta")
    assert edited.get("b").text == "Beta"
    assert descriptions.get("b").text == "Bravo"

    longer = descriptions.set_duration("b", 99)
    assert longer.get("b").duration == 99

    with pytest.raises(DescriptionNotFound):
        descriptions.edit("zzz", "text")
    with pytest.raises(DescriptionValidationError):
        descriptions.edit("b", "x" * 71)
    with pytest.raises(InvalidDurationError):
        descriptions.set_duration("b", 0)


def test_delete_returns_index():
    updated, index = abc_set().delete("b")
    assert index == 1
    assert [d.id for d in updated] == ["a", "c"]
    with pytest.raises(DescriptionNotFound):
        updated.delete("b")


def test_resolve_by_id_or_position():
    descriptions = abc_set()
    assert descriptions.resolve("c") == 2
    assert descriptions.resolve("1") == 0
    assert descriptions.resolve("3") == 2
    with pytest.raises(DescriptionNotFound):
        descriptions.resolve("4")
    with pytest.raises(DescriptionNotFound):
        descriptions.resolve("0")
    with pytest.raises(DescriptionNotFound):
        descriptions.resolve("9" * 5000)


# RotationState


def test_advance_is_circular():
    """Test: L advances return to the starting index."""
    state = RotationState(abc_set(), now=0)
    start = state.current_index
    for step in range(len(state.descriptions)):
        state.advance(now=step)
    assert state.current_index == start


def test_advance_wraps_and_resets_timing():
    state = RotationState(abc_set(), now=0)
    state.current_index = 2
    state.override = "Lunch"
    state.advance(now=42)
    assert state.current_index == 0
    assert state.started_at == 42
    assert state.override is None


def test_goto_missing_leaves_state_unchanged():
    state = RotationState(abc_set(), now=0)
    state.goto("b", now=5)
    with pytest.raises(DescriptionNotFound):
        state.goto("missing", now=9)
    assert state.current_index == 1
    assert state.started_at == 5


def test_goto_by_position_clears_override():
    state = RotationState(abc_set(), now=0)
    state.set_override("Custom")
    entry = state.goto("3", now=1)
    assert entry.id == "c"
    assert state.override is None


def test_is_due_respects_duration_and_pause():
    state = RotationState(abc_set(), now=0)
    assert not state.is_due(9)
    assert state.is_due(10)
    assert state.seconds_until_due(4) == 6
    state.pause()
    assert not state.is_due(100)
    assert state.seconds_until_due(100) is None


def test_resume_resets_start_time():
    state = RotationState(abc_set(), now=0)
    state.pause()
    state.resume(now=500)
    assert state.started_at == 500
    assert not state.is_due(509)
    assert state.is_due(510)


def test_pause_and_resume_reject_repeats():
    state = RotationState(abc_set(), now=0)
    with pytest.raises(RotationStateError):
        state.resume(now=1)
    state.pause()
    with pytest.raises(RotationStateError):
        state.pause()
    with pytest.raises(RotationStateError):
        state.skip(now=1)


def test_override_is_display_text_only():
    state = RotationState(abc_set(), now=0)
    state.set_override("Out for lunch")
    assert state.display_text() == "Out for lunch"
    assert state.current.text == "Alpha"
    with pytest.raises(DescriptionValidationError):
        state.set_override("x" * 71)
    assert state.override == "Out for lunch"
    state.clear_override()
    assert state.display_text() == "Alpha"
    with pytest.raises(RotationStateError):
        state.clear_override()


def test_delete_active_middle_entry():
    state = RotationState(abc_set(), now=0)
    state.goto("b", now=3)
    removed = state.delete("b", now=7)
    assert removed.id == "b"
    assert state.current.id == "c"
    assert state.started_at == 7


def test_delete_active_last_entry_wraps():
    state = RotationState(abc_set(), now=0)
    state.goto("c", now=0)
    state.delete("c", now=1)
    assert state.current_index == 0
    assert state.current.id == "a"


def test_delete_before_active_keeps_entry():
    state = RotationState(abc_set(), now=0)
    state.goto("c", now=2)
    state.delete("a", now=9)
    assert state.current.id == "c"
    assert state.current_index == 1
    assert state.started_at == 2


def test_delete_everything_marks_empty():
    state = RotationState(make_set(("only", "Solo", 10)), now=0)
    state.delete("only", now=1)
    assert state.is_empty
    assert state.current_index is None
    assert state.display_text() is None
    assert not state.is_due(1000)
    with pytest.raises(RotationStateError):
        state.skip(now=1000)


def test_replace_descriptions_clamps_and_keeps_pause():
    state = RotationState(abc_set(), now=0)
    state.goto("c", now=0)
    state.pause()
    state.replace_descriptions(make_set(("x", "Xray", 10)), now=5)
    assert state.current_index == 0
    assert state.paused


def test_add_to_empty_set_starts_rotation():
    state = RotationState(DescriptionSet(), now=0)
    assert state.is_empty
    state.add(Description(id="n", text="New", duration=10), now=50)
    assert state.current.id == "n"
    assert state.started_at == 50


# Command parser


@pytest.mark.parametrize("verb", ["S", "s", "status", "Status", "STAT"])
def test_status_aliases_case_insensitive(verb):
    assert cmd.parse(f"{PREFIX} {verb}", PREFIX) == cmd.Status()


@pytest.mark.parametrize("text", ["hello there", "/other_bot skip", f"{PREFIX}skip", ""])
def test_non_commands_produce_nothing(text):
    assert cmd.parse(text, PREFIX) is None


def test_bare_prefix_is_help():
    assert cmd.parse(PREFIX, PREFIX) == cmd.Help()


@pytest.mark.parametrize(
    "text, expected",
    [
        ("skip", cmd.Skip()),
        ("next", cmd.Skip()),
        ("goto morning", cmd.Goto(target="morning")),
        ("pause", cmd.Pause()),
        ("resume", cmd.Resume()),
        ("reload", cmd.Reload()),
        ("set Hello World", cmd.SetOverride(text="Hello World")),
        ("clear", cmd.ClearOverride()),
        ("help", cmd.Help()),
        ("info", cmd.Info()),
        ("ls", cmd.ListAll()),
        ("list", cmd.ListAll()),
        ("v morning", cmd.View(target="morning")),
        ("add test_id 3600 Hello World", cmd.Add(id="test_id", duration=3600, text="Hello World")),
        ("a x 30 Hello", cmd.Add(id="x", duration=30, text="Hello")),
        ("e test_id New text here", cmd.Edit(id="test_id", text="New text here")),
        ("dur test_id 7200", cmd.SetDuration(id="test_id", duration=7200)),
        ("rm test_id", cmd.Delete(id="test_id")),
        ("del test_id", cmd.Delete(id="test_id")),
        ("DELETE test_id", cmd.Delete(id="test_id")),
    ],
)
def test_parse_commands(text, expected):
    assert cmd.parse(f"{PREFIX} {text}", PREFIX) == expected


def test_unknown_verb_is_parse_failure():
    result = cmd.parse(f"{PREFIX} dance", PREFIX)
    assert isinstance(result, cmd.ParseFailure)
    assert "Unknown command" in result.message
    assert f"{PREFIX} help" in result.message


@pytest.mark.parametrize(
    "text, usage",
    [
        ("goto", "goto <id>"),
        ("view", "view <id>"),
        ("set", "set <text>"),
        ("add x 30", "add <id> <seconds> <text>"),
        ("edit x", "edit <id> <text>"),
        ("duration x", "duration <id> <seconds>"),
        ("delete", "delete <id>"),
    ],
)
def test_missing_arguments_give_usage(text, usage):
    result = cmd.parse(f"{PREFIX} {text}", PREFIX)
    assert isinstance(result, cmd.ParseFailure)
    assert usage in result.message


@pytest.mark.parametrize(
    "text",
    [
        "add x soon Hello",
        "add x -5 Hello",
        "dur x 1.5",
        "duration x ten",
        "dur x " + "9" * 5000,
        "add x 99999999999 Hello",
        f"dur x {MAX_DURATION + 1}",
    ],
)
def test_non_numeric_duration_is_parse_failure(text):
    result = cmd.parse(f"{PREFIX} {text}", PREFIX)
    assert isinstance(result, cmd.ParseFailure)
    assert "whole number of seconds" in result.reason


def test_custom_prefix():
    assert cmd.parse("!bio skip", "!bio") == cmd.Skip()
    assert cmd.parse(f"{PREFIX} skip", "!bio") is None


def test_help_lists_every_command():
    usages = [usage for usage, _, _ in cmd.help_entries()]
    assert len(usages) == 16
    assert "add <id> <seconds> <text>" in usages


# Formatting helpers


def test_truncate():
    assert truncate("Hello", 10) == "Hello"
    assert truncate("Hello, World!", 5) == "Hello..."
    assert truncate("Hi", 2) == "Hi"


def test_format_duration():
    assert format_duration(30) == "30s"
    assert format_duration(60) == "1m"
    assert format_duration(90) == "1m"
    assert format_duration(3600) == "1h"
    assert format_duration(3660) == "1h 1m"
    assert format_duration(7200) == "2h"


# Storage and settings


def test_description_file_round_trip(tmp_path):
    path = tmp_path / "descriptions.json"
    source = DescriptionFile(path)
    source.save(DescriptionDocument.example())

    loaded = DescriptionFile(path).load()
    assert [e.id for e in loaded.descriptions] == ["morning", "working", "evening"]
    assert not (tmp_path / "descriptions.json.tmp").exists()


def test_description_file_errors(tmp_path):
    with pytest.raises(ConfigError):
        DescriptionFile(tmp_path / "missing.json").load()

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ConfigError):
        DescriptionFile(bad).load()

    undecodable = tmp_path / "latin1.json"
    undecodable.write_bytes(b'{"descriptions": [], "note": "\xff"}')
    with pytest.raises(ConfigError):
        DescriptionFile(undecodable).load()

    wrong = tmp_path / "wrong.json"
    wrong.write_text(json.dumps({"descriptions": [{"id": "a", "text": "Hi"}]}))
    with pytest.raises(ConfigError):
        DescriptionFile(wrong).load()


def test_settings_defaults_and_env(monkeypatch):
    settings = BotSettings()
    assert settings.command_prefix == "/description_bot"
    assert settings.min_update_interval == 60
    assert settings.backoff_max_delay == 3600

    monkeypatch.setenv("DESCBOT_COMMAND_PREFIX", "!bio")
    monkeypatch.setenv("DESCBOT_MIN_UPDATE_INTERVAL", "120")
    settings = BotSettings()
    assert settings.command_prefix == "!bio"
    assert settings.min_update_interval == 120
    assert BotSettings(min_update_interval=5).min_update_interval == 5


# CLI


def test_cli_generate_and_validate(tmp_path):
    path = tmp_path / "descriptions.json"
    runner = CliRunner()

    result = runner.invoke(cli, ["-c", str(path), "generate-config"])
    assert result.exit_code == 0
    assert path.exists()

    again = runner.invoke(cli, ["-c", str(path), "generate-config"])
    assert again.exit_code == 1

    result = runner.invoke(cli, ["-c", str(path), "validate"])
    assert result.exit_code == 0
    assert "3 descriptions are valid" in result.output


def test_cli_validate_rejects_duplicates(tmp_path):
    path = tmp_path / "descriptions.json"
    path.write_text(json.dumps({
        "descriptions": [
            {"id": "same", "text": "First", "duration_secs": 60},
            {"id": "same", "text": "Second", "duration_secs": 60},
        ]
    }))
    result = CliRunner().invoke(cli, ["-c", str(path), "validate"])
    assert result.exit_code == 1
    assert "Duplicate description ID" in result.output


def test_cli_config_show(monkeypatch):
    monkeypatch.setenv("DESCBOT_COMMAND_PREFIX", "!bio")
    result = CliRunner().invoke(cli, ["config", "show"])
    assert result.exit_code == 0
    assert "!bio" in result.output
