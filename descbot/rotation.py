"""Rotation position, timing, pause flag and override text."""

from typing import Optional

from .descriptions import DescriptionSet
from .errors import RotationStateError
from .models import Description
from .validator import ensure_valid


class RotationState:
    """Where the rotation is and when the current entry started.

    Owned by the scheduler task; nothing else holds a reference to it.
    Every method validates before it assigns, so a raised error leaves the
    state exactly as it was.
    """

    def __init__(self, descriptions: DescriptionSet, now: float):
        self.descriptions = descriptions
        self.current_index: Optional[int] = 0 if len(descriptions) else None
        self.started_at = now
        self.paused = False
        self.override: Optional[str] = None

    @property
    def current(self) -> Optional[Description]:
        if self.current_index is None:
            return None
        return self.descriptions[self.current_index]

    @property
    def is_empty(self) -> bool:
        return self.current_index is None

    def display_text(self) -> Optional[str]:
        """Text that should currently be shown, or None for an empty set."""
        current = self.current
        if current is None:
            return None
        return self.override if self.override is not None else current.text

    def _require_entries(self) -> None:
        if self.is_empty:
            raise RotationStateError("No descriptions configured.")

    def seconds_until_due(self, now: float) -> Optional[float]:
        """Seconds until the next advance, or None if nothing will advance."""
        current = self.current
        if self.paused or current is None:
            return None
        return max(0.0, self.started_at + current.duration - now)

    def is_due(self, now: float) -> bool:
        current = self.current
        if self.paused or current is None:
            return False
        return now - self.started_at >= current.duration

    def advance(self, now: float) -> None:
        """Move to the next entry, wrapping around, and drop any override."""
        if self.is_empty:
            return
        self.current_index = (self.current_index + 1) % len(self.descriptions)
        self.started_at = now
        self.override = None

    def skip(self, now: float) -> Description:
        self._require_entries()
        if self.paused:
            raise RotationStateError("Cannot skip while paused. Use 'resume' first.")
        self.advance(now)
        return self.current

    def goto(self, target: str, now: float) -> Description:
        self._require_entries()
        index = self.descriptions.resolve(target)
        self.current_index = index
        self.started_at = now
        self.override = None
        return self.current

    def pause(self) -> None:
        if self.paused:
            raise RotationStateError("Already paused.")
        self.paused = True

    def resume(self, now: float) -> None:
        if not self.paused:
            raise RotationStateError("Already running.")
        self.paused = False
        self.started_at = now

    def set_override(self, text: str) -> None:
        self._require_entries()
        ensure_valid(text, self.descriptions.is_premium)
        self.override = text

    def clear_override(self) -> None:
        if self.override is None:
            raise RotationStateError("No custom description is active.")
        self.override = None

    def replace_descriptions(self, descriptions: DescriptionSet, now: float) -> None:
        """Swap in a new set, keeping the pause flag and clamping the position."""
        if not len(descriptions):
            index = None
        elif self.current_index is None:
            index = 0
        else:
            index = min(self.current_index, len(descriptions) - 1)
        if self.current_index is None and index is not None:
            self.started_at = now
        self.descriptions = descriptions
        self.current_index = index

    def add(self, description: Description, now: float) -> Description:
        self.replace_descriptions(self.descriptions.add(description), now)
        return description

    def edit(self, description_id: str, text: str) -> Description:
        updated = self.descriptions.edit(description_id, text)
        self.descriptions = updated
        return updated.get(description_id)

    def set_duration(self, description_id: str, duration: int) -> Description:
        updated = self.descriptions.set_duration(description_id, duration)
        self.descriptions = updated
        return updated.get(description_id)

    def delete(self, description_id: str, now: float) -> Description:
        """Remove an entry and keep the position inside the remaining ones.

        Deleting the active entry makes the following one active from now.
        """
        updated, removed_index = self.descriptions.delete(description_id)
        removed = self.descriptions[removed_index]
        index = self.current_index
        started_at = self.started_at
        if not len(updated):
            index = None
        elif index > removed_index:
            index -= 1
        elif index == removed_index:
            index = removed_index % len(updated)
            started_at = now
        self.descriptions = updated
        self.current_index = index
        self.started_at = started_at
        return removed
