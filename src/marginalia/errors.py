"""Error kinds raised by marginalia.

Library failures (git, filesystem, JSON) are wrapped and keep the underlying
message. Domain failures are raised where the precondition is violated.
"""

from __future__ import annotations


class MarginaliaError(Exception):
    """Base class for every error marginalia raises on purpose."""

    prefix: str = ""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(self._format(detail))

    def _format(self, detail: str) -> str:
        if self.prefix and detail:
            return f"{self.prefix}: {detail}"
        return self.prefix or detail


class GitError(MarginaliaError):
    prefix = "Git error"


class SessionIOError(MarginaliaError):
    prefix = "IO error"


class SerializationError(MarginaliaError):
    prefix = "JSON serialization error"


class NotARepositoryError(MarginaliaError):
    prefix = "Not a git repository"


class NoChangesError(MarginaliaError):
    prefix = "No changes to review"


class TerminalError(MarginaliaError):
    prefix = "Terminal error"


class CorruptedSessionError(MarginaliaError):
    prefix = "Review session corrupted"


class SessionNotFoundError(MarginaliaError):
    prefix = "Session not found"


class ClipboardError(MarginaliaError):
    prefix = "Clipboard error"
