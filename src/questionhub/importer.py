"""Ingestion pipeline: transcript JSON → normalized conversation → question store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .config import MAX_TAGS, UNTITLED_CONVERSATION
from .errors import AuthenticationRequired, InvalidFormat, InvalidTags, QuestionHubError, StorageFailure
from .models import NewQuestion, NormalizedConversation, StoredQuestion, Transcript
from .parser import load_transcript, partition_roles, validate_transcript

logger = logging.getLogger(__name__)


def normalize(transcript: Transcript) -> NormalizedConversation:
    user_turns, assistant_turns = partition_roles(transcript.messages)
    title = (transcript.session.title or "").strip() or UNTITLED_CONVERSATION
    return NormalizedConversation(
        title=title,
        content=user_turns,
        answer=assistant_turns,
        url=transcript.url,
    )


def ingest(raw: Any) -> NormalizedConversation:
    """Validate a parsed transcript and build its question/answer record.

    Raises InvalidFormat or EmptyConversation; never touches storage.
    """
    return normalize(validate_transcript(raw))


def validate_tags(tags: list[str] | tuple[str, ...]) -> list[str]:
    """Strip and de-duplicate tags, requiring between one and MAX_TAGS of them."""
    cleaned: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)

    if not cleaned:
        raise InvalidTags()
    if len(cleaned) > MAX_TAGS:
        raise InvalidTags(f"Maximum {MAX_TAGS} tags allowed")
    return cleaned


def submit_conversation(
    conversation: NormalizedConversation,
    tags: list[str] | tuple[str, ...],
    author_id: str | None,
    store,
) -> StoredQuestion:
    """Insert the conversation as a question with a single store call.

    ``store`` is anything with ``insert_question`` (the local SQLite store or
    the hosted client).
    """
    if not author_id:
        raise AuthenticationRequired()
    tags = validate_tags(tags)

    question = NewQuestion(
        title=conversation.title,
        content=list(conversation.content),
        answer=list(conversation.answer),
        tags=tags,
        author_id=author_id,
        url=conversation.url,
    )

    try:
        stored = store.insert_question(question)
    except QuestionHubError:
        raise
    except Exception as exc:
        raise StorageFailure(f"Error submitting question: {exc}") from exc

    logger.info("Stored question %s (%d turns)", stored.id, len(question.content))
    return stored


def import_transcript_file(
    path: str | Path,
    tags: list[str] | tuple[str, ...],
    author_id: str | None,
    store,
    url: str | None = None,
) -> StoredQuestion:
    """Read a ``.json`` transcript from disk and submit it.

    ``url`` overrides the source url embedded in the document.
    """
    json_file = Path(path)

    if not json_file.is_file():
        raise InvalidFormat(f"File not found: {path}")
    if json_file.suffix.lower() != ".json":
        raise InvalidFormat(f"Not a JSON file: {path}")

    conversation = normalize(load_transcript(json_file.read_bytes()))
    if url:
        conversation = conversation.model_copy(update={"url": url})

    return submit_conversation(conversation, tags, author_id, store)
