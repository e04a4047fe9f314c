"""Exception hierarchy for the assistant pipeline."""
from __future__ import annotations


class AssistantError(Exception):
    """Base class for errors surfaced by the assistant."""

    status_code: int = 500


class UnparseableModelReply(AssistantError):
    """Raised when a model reply that must be JSON cannot be parsed."""

    status_code = 502

    def __init__(self, message: str, raw_content: str | None = None) -> None:
        super().__init__(message)
        self.raw_content = raw_content


class ExternalCollaboratorFailure(AssistantError):
    """Raised when the chat model or the database driver fails."""

    status_code = 502


class LLMProviderError(ExternalCollaboratorFailure):
    """The chat completion request failed or returned no usable content."""


class QueryExecutionError(ExternalCollaboratorFailure):
    """The SQL query could not be executed."""


class DatabaseNotFound(AssistantError):
    """No connection descriptor is registered under the requested id."""

    status_code = 404


class ServiceUnavailable(AssistantError):
    """The chat model cannot be reached because no credential is configured."""

    status_code = 503


__all__ = [
    "AssistantError",
    "DatabaseNotFound",
    "ExternalCollaboratorFailure",
    "LLMProviderError",
    "QueryExecutionError",
    "ServiceUnavailable",
    "UnparseableModelReply",
]
