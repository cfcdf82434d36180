"""Data models for transcripts, normalized conversations and stored questions."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from .config import MISSING_ANSWER


class TranscriptFile(BaseModel):
    file_name: str = ""
    file_size: float | None = None
    token_usage: float | None = None
    inserted_at: float | None = None
    updated_at: float | None = None


class SearchResult(BaseModel):
    cite_index: int | None = None
    url: str | None = None


class TranscriptMessage(BaseModel):
    role: str | None = None
    content: str | None = None
    accumulated_token_usage: float | None = None
    inserted_at: float | None = None
    files: list[TranscriptFile] | None = None
    search_results: list[SearchResult] | None = None
    thinking_content: str | None = None
    thinking_elapsed_secs: float | None = None


class ChatSession(BaseModel):
    id: str | None = None
    title: str | None = None


class Transcript(BaseModel):
    """A validated chat export: the session plus its messages in original order."""

    session: ChatSession
    messages: list[TranscriptMessage] = []
    url: str | None = None


class NormalizedConversation(BaseModel):
    """Question/answer record derived from one transcript.

    ``content`` holds the user turns and ``answer`` the assistant turns. They are
    aligned by position and may differ in length.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    content: tuple[str, ...]
    answer: tuple[str, ...]
    url: str | None = None

    def pairs(self) -> list[tuple[str, str]]:
        """Pair each user turn with the assistant turn at the same index."""
        return [
            (question, self.answer[i] if i < len(self.answer) else MISSING_ANSWER)
            for i, question in enumerate(self.content)
        ]


class NewQuestion(BaseModel):
    title: str
    content: list[str]
    answer: list[str]
    tags: list[str]
    author_id: str
    url: str | None = None


class StoredQuestion(NewQuestion):
    id: str
    votes: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class QuestionMatch(BaseModel):
    id: str
    title: str
    similarity: float | None = None


class AuthSession(BaseModel):
    access_token: str
    refresh_token: str | None = None
    user_id: str
    email: str | None = None


class EmbeddingOutcome(BaseModel):
    id: str
    status: str
    error: str | None = None


class EmbeddingSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: list[EmbeddingOutcome] = []
