"""Exceptions raised by the playground client and chat service."""


class PlaygroundError(Exception):
    """Base class for playground client errors."""


class PlaygroundAPIError(PlaygroundError):
    """The backend answered with a non-success status or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TurnInProgressError(PlaygroundError):
    """A new turn was requested while the previous one is still streaming."""
