"""Plain-text policy for account descriptions.

The backend shows at most 70 characters on a free account and 140 on a
premium one, counted the way a reader sees them: a base character plus any
combining marks, variation selectors or skin-tone modifiers is one character.

The same check runs when a description is loaded, when it is edited
interactively, and once more right before every outbound send.
"""

import unicodedata
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .errors import DescriptionValidationError

MAX_LENGTH_FREE = 70
MAX_LENGTH_PREMIUM = 140

OBJECT_REPLACEMENT = "\ufffc"
ALLOWED_CONTROLS = frozenset("\n\t")

# Zero-width or blank-rendering code points that unicodedata does not
# classify as format characters.
BLANK_CODE_POINTS = frozenset(
    {
        0x034F,  # combining grapheme joiner
        0x115F,  # hangul choseong filler
        0x1160,  # hangul jungseong filler
        0x2800,  # braille pattern blank
        0x3164,  # hangul filler
        0xFFA0,  # halfwidth hangul filler
    }
)


class VerdictKind(str, Enum):
    """Outcome of validating a description text."""
    OK = "ok"
    EMPTY = "empty"
    TOO_LONG = "too_long"
    NON_TEXT_CONTENT = "non_text_content"
    INVISIBLE_CHARACTERS = "invisible_characters"


class Verdict(BaseModel):
    """Validator result with enough detail to explain a rejection."""

    model_config = ConfigDict(frozen=True)

    kind: VerdictKind
    length: int = 0
    limit: Optional[int] = None
    code_point: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.kind is VerdictKind.OK

    @property
    def message(self) -> str:
        if self.kind is VerdictKind.EMPTY:
            return "Description text cannot be empty."
        if self.kind is VerdictKind.TOO_LONG:
            return f"Text too long: {self.length} chars (max: {self.limit})"
        if self.kind is VerdictKind.NON_TEXT_CONTENT:
            if self.code_point == ord(OBJECT_REPLACEMENT):
                return "Embedded objects (images, files) are not allowed. Only text is supported."
            return f"Invalid character detected (code: U+{self.code_point:04X}). Only text is allowed."
        if self.kind is VerdictKind.INVISIBLE_CHARACTERS:
            return (
                f"Invisible/zero-width characters detected (U+{self.code_point:04X}). "
                "Please use only visible text."
            )
        return "OK"


def max_length(is_premium: bool) -> int:
    """Character limit for the account tier."""
    return MAX_LENGTH_PREMIUM if is_premium else MAX_LENGTH_FREE


COMBINING_KEYCAP = 0x20E3


def _is_modifier(ch: str) -> bool:
    cp = ord(ch)
    return (
        unicodedata.combining(ch) != 0
        or cp == COMBINING_KEYCAP
        or 0xFE00 <= cp <= 0xFE0F
        or 0x1F3FB <= cp <= 0x1F3FF
    )


def display_length(text: str) -> int:
    """Count user-perceived characters.

    A flag is a pair of regional indicator symbols and counts as two.
    """
    return sum(1 for ch in text if not _is_modifier(ch))


def _is_non_text(ch: str) -> bool:
    if ch == OBJECT_REPLACEMENT:
        return True
    category = unicodedata.category(ch)
    if category == "Cc":
        return ch not in ALLOWED_CONTROLS
    return category in ("Co", "Cs")


def _is_invisible(ch: str) -> bool:
    return unicodedata.category(ch) == "Cf" or ord(ch) in BLANK_CODE_POINTS


def validate(text: str, is_premium: bool) -> Verdict:
    """Check a candidate description against the plain-text policy."""
    if not text or not text.strip():
        return Verdict(kind=VerdictKind.EMPTY)

    for ch in text:
        if _is_non_text(ch):
            return Verdict(kind=VerdictKind.NON_TEXT_CONTENT, code_point=ord(ch))

    for ch in text:
        if _is_invisible(ch):
            return Verdict(kind=VerdictKind.INVISIBLE_CHARACTERS, code_point=ord(ch))

    length = display_length(text)
    limit = max_length(is_premium)
    if length > limit:
        return Verdict(kind=VerdictKind.TOO_LONG, length=length, limit=limit)

    return Verdict(kind=VerdictKind.OK, length=length, limit=limit)


def ensure_valid(text: str, is_premium: bool) -> Verdict:
    """Like validate(), but raise DescriptionValidationError on rejection."""
    verdict = validate(text, is_premium)
    if not verdict.ok:
        raise DescriptionValidationError(verdict)
    return verdict
