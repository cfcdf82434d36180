"""Error kinds surfaced to users of the ingestion pipeline and its collaborators."""

from __future__ import annotations


class QuestionHubError(Exception):
    """Base class for every error this package reports to the user."""

    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class InvalidFormat(QuestionHubError):
    """The document does not look like a chat transcript export."""

    default_message = "Invalid JSON format: could not find the conversation"


class EmptyConversation(QuestionHubError):
    """The transcript is well-formed but has no user questions."""

    default_message = "No user questions found in the transcript"


class InvalidTags(QuestionHubError):
    default_message = "Please add at least one tag"


class AuthenticationRequired(QuestionHubError):
    default_message = "You must be logged in to submit a question"


class StorageFailure(QuestionHubError):
    """Inserting or updating a question failed. Retrying is safe."""

    default_message = "Error submitting question"


class ExternalServiceFailure(QuestionHubError):
    """The embedding service or similarity search could not be reached."""

    default_message = "External service call failed"


class NothingCaptured(QuestionHubError):
    default_message = "No conversation has been captured yet"
