"""Data models for descriptions, the configuration document and rotation snapshots."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_DURATION = 366 * 24 * 3600  # one (leap) year, in seconds


class Description(BaseModel):
    """A single rotation entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    duration: int  # seconds


class DescriptionEntry(BaseModel):
    """One entry as it appears in the descriptions document."""
    id: str
    text: str
    duration_secs: int

    def to_description(self) -> Description:
        return Description(id=self.id, text=self.text, duration=self.duration_secs)

    @classmethod
    def from_description(cls, description: Description) -> "DescriptionEntry":
        return cls(id=description.id, text=description.text, duration_secs=description.duration)


class DescriptionDocument(BaseModel):
    """The descriptions document loaded at startup and on reload."""
    descriptions: List[DescriptionEntry] = Field(default_factory=list)
    is_premium: bool = False
    auto_detect_premium: bool = False

    @classmethod
    def example(cls) -> "DescriptionDocument":
        return cls(
            descriptions=[
                DescriptionEntry(id="morning", text="☀️ Good morning! Ready for a new day", duration_secs=3600),
                DescriptionEntry(id="working", text="💻 Currently working...", duration_secs=7200),
                DescriptionEntry(id="evening", text="🌙 Relaxing in the evening", duration_secs=3600),
            ],
            is_premium=False,
            auto_detect_premium=False,
        )


class SchedulerState(str, Enum):
    """Scheduler lifecycle states."""
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class Snapshot(BaseModel):
    """Read-only view of the rotation, handed out by the scheduler."""

    model_config = ConfigDict(frozen=True)

    state: SchedulerState
    entries: List[Description] = Field(default_factory=list)
    current_index: Optional[int] = None
    remaining: Optional[float] = None  # seconds until the next advance
    override: Optional[str] = None
    is_premium: bool = False

    @property
    def current(self) -> Optional[Description]:
        if self.current_index is None:
            return None
        return self.entries[self.current_index]


class Outcome(BaseModel):
    """Result of a command applied by the scheduler."""

    model_config = ConfigDict(frozen=True)

    snapshot: Snapshot
    entry: Optional[Description] = None
    previous: Optional[Description] = None
    previous_count: Optional[int] = None
