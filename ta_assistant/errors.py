"""Typed failures of the analysis pipeline and the history store."""
from typing import Optional


class AnalysisError(Exception):
    """Base class for failures returned to the boundary layer."""

    user_text = "An unknown error occurred during analysis."

    def user_message(self) -> str:
        """Message safe to show to the end user."""
        return f"Analysis failed: {self.user_text}"


class CredentialMissing(AnalysisError):
    """The backend credential is not configured; no request was sent."""

    user_text = "the AI backend credential is not configured."


class BackendUnavailable(AnalysisError):
    """The backend call could not be attempted."""

    user_text = "the AI backend is currently unavailable. Please try again later."


class BackendCallFailed(AnalysisError):
    """The backend request was sent but failed or timed out."""

    user_text = "the AI backend request failed. Please try again."


class MalformedResponse(AnalysisError):
    """
    The backend answered with text that is not a valid analysis.

    The raw text is kept for diagnostics only and must never be shown to
    the end user.
    """

    user_text = ("could not parse the analysis from the AI. The response might be "
                 "malformed or the search failed.")

    def __init__(self, message: str, raw_text: str = "", path: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text
        self.path = path


class AnalysisInProgress(AnalysisError):
    """Another analysis is already running for this session."""

    user_text = "another analysis is already in progress."


class StorageError(Exception):
    """Base class for history persistence problems."""


class StorageCorrupted(StorageError):
    """The persisted history payload could not be read."""


class StorageWriteFailed(StorageError):
    """The history payload could not be written."""
