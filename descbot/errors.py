"""Exception hierarchy for descbot."""

from typing import Optional

from .models import MAX_DURATION


class DescbotError(Exception):
    """Base class for every error descbot raises on purpose."""


class ConfigError(DescbotError):
    """The descriptions document or settings are malformed."""


class DescriptionValidationError(DescbotError):
    """A description text failed the validator."""

    def __init__(self, verdict):
        super().__init__(verdict.message)
        self.verdict = verdict


class DuplicateIdError(DescbotError):
    """A description with this id already exists."""

    def __init__(self, description_id: str):
        super().__init__(
            f"Description with ID '{description_id}' already exists. Use 'edit' to modify it."
        )
        self.description_id = description_id


class InvalidDurationError(DescbotError):
    """Durations must be between 1 and MAX_DURATION seconds."""

    def __init__(self, duration: int, description_id: Optional[str] = None):
        where = f" for [{description_id}]" if description_id else ""
        shown = duration if duration <= MAX_DURATION else f"more than {MAX_DURATION}"
        super().__init__(f"Invalid duration{where}: {shown} (must be between 1 and {MAX_DURATION} seconds)")
        self.duration = duration
        self.description_id = description_id


class DescriptionNotFound(DescbotError):
    """No description matches the requested id or position."""

    def __init__(self, target: str):
        super().__init__(
            f"Description not found: '{target}'. Use 'list' to see available descriptions."
        )
        self.target = target


class RotationStateError(DescbotError):
    """The command does not apply in the current rotation state."""


class StorageError(DescbotError):
    """Writing the descriptions document back to disk failed."""


class SendError(DescbotError):
    """Setting the account description failed."""


class ThrottleError(SendError):
    """The backend asked us to wait before the next call."""

    def __init__(self, wait_seconds: float):
        super().__init__(f"Flood wait: {wait_seconds} seconds")
        self.wait_seconds = wait_seconds


class TransportError(SendError):
    """Network or authorization failure talking to the backend."""


class ContentRejectedError(SendError):
    """The backend refused the description text itself."""
