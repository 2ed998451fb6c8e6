"""Ordered, validated collection of rotation entries."""

from typing import Iterable, Iterator, List, Optional, Tuple

from .errors import (
    ConfigError,
    DescriptionNotFound,
    DuplicateIdError,
    InvalidDurationError,
)
from .models import MAX_DURATION, Description, DescriptionDocument, DescriptionEntry
from .validator import ensure_valid, validate


def _check_id(description_id: str) -> None:
    if not description_id or any(ch.isspace() for ch in description_id):
        raise ConfigError(f"Invalid description ID {description_id!r}: must be non-empty and contain no spaces")


def _check_duration(duration: int, description_id: str) -> None:
    if not 0 < duration <= MAX_DURATION:
        raise InvalidDurationError(duration, description_id)


class DescriptionSet:
    """Entries in rotation order plus the account tier.

    Instances are never mutated. Every edit validates first and returns a
    new set, so a rejected edit leaves the original untouched.
    """

    def __init__(self, entries: Iterable[Description] = (), is_premium: bool = False):
        self._entries: Tuple[Description, ...] = tuple(entries)
        self.is_premium = is_premium

    @classmethod
    def load(cls, entries: Iterable[Description], is_premium: bool) -> "DescriptionSet":
        """Validate every entry and build a set, or raise ConfigError."""
        entries = list(entries)
        seen = set()
        for index, desc in enumerate(entries):
            try:
                _check_id(desc.id)
            except ConfigError as e:
                raise ConfigError(f"Description at index {index}: {e}") from e
            if desc.id in seen:
                raise ConfigError(f"Duplicate description ID found: {desc.id}")
            seen.add(desc.id)

            verdict = validate(desc.text, is_premium)
            if not verdict.ok:
                raise ConfigError(
                    f"Description at index {index} (id: {desc.id}) is invalid: {verdict.message}"
                )

            try:
                _check_duration(desc.duration, desc.id)
            except InvalidDurationError as e:
                raise ConfigError(f"Description at index {index}: {e}") from e
        return cls(entries, is_premium)

    @classmethod
    def from_document(cls, document: DescriptionDocument) -> "DescriptionSet":
        return cls.load(
            [entry.to_description() for entry in document.descriptions],
            document.is_premium,
        )

    def to_document(self, auto_detect_premium: bool = False) -> DescriptionDocument:
        return DescriptionDocument(
            descriptions=[DescriptionEntry.from_description(d) for d in self._entries],
            is_premium=self.is_premium,
            auto_detect_premium=auto_detect_premium,
        )

    @property
    def entries(self) -> Tuple[Description, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Description]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> Description:
        return self._entries[index]

    def index_of(self, description_id: str) -> Optional[int]:
        for i, desc in enumerate(self._entries):
            if desc.id == description_id:
                return i
        return None

    def resolve(self, target: str) -> int:
        """Find an entry by id, falling back to a 1-based position."""
        index = self.index_of(target)
        if index is not None:
            return index
        # positions never have more digits than the entry count
        if target.isascii() and target.isdigit() and len(target) <= len(str(len(self._entries))):
            position = int(target)
            if 0 < position <= len(self._entries):
                return position - 1
        raise DescriptionNotFound(target)

    def get(self, target: str) -> Description:
        return self._entries[self.resolve(target)]

    def _require(self, description_id: str) -> int:
        index = self.index_of(description_id)
        if index is None:
            raise DescriptionNotFound(description_id)
        return index

    def _replace(self, index: int, description: Description) -> "DescriptionSet":
        entries: List[Description] = list(self._entries)
        entries[index] = description
        return DescriptionSet(entries, self.is_premium)

    def add(self, description: Description) -> "DescriptionSet":
        """Append a new entry; an existing id is rejected, never overwritten."""
        if self.index_of(description.id) is not None:
            raise DuplicateIdError(description.id)
        _check_id(description.id)
        ensure_valid(description.text, self.is_premium)
        _check_duration(description.duration, description.id)
        return DescriptionSet(self._entries + (description,), self.is_premium)

    def edit(self, description_id: str, text: str) -> "DescriptionSet":
        index = self._require(description_id)
        ensure_valid(text, self.is_premium)
        return self._replace(index, self._entries[index].model_copy(update={"text": text}))

    def set_duration(self, description_id: str, duration: int) -> "DescriptionSet":
        index = self._require(description_id)
        _check_duration(duration, description_id)
        return self._replace(index, self._entries[index].model_copy(update={"duration": duration}))

    def delete(self, description_id: str) -> Tuple["DescriptionSet", int]:
        """Remove an entry. Returns the new set and the removed entry's old index."""
        index = self._require(description_id)
        entries = self._entries[:index] + self._entries[index + 1:]
        return DescriptionSet(entries, self.is_premium), index
