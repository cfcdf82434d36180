"""Validate chat export JSON and split its messages into user and assistant turns."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from .config import ASSISTANT_ROLE, USER_ROLE
from .errors import EmptyConversation, InvalidFormat
from .models import ChatSession, Transcript, TranscriptMessage

logger = logging.getLogger(__name__)


def _biz_data(raw: Any) -> dict[str, Any]:
    """Follow the ``data.biz_data`` path, rejecting anything that is not an object."""
    node = raw
    for key in ("data", "biz_data"):
        if not isinstance(node, dict):
            raise InvalidFormat()
        node = node.get(key)
    if not isinstance(node, dict):
        raise InvalidFormat()
    return node


def partition_roles(messages: list[TranscriptMessage]) -> tuple[list[str], list[str]]:
    """Split messages into (user_turns, assistant_turns), keeping original order.

    Messages with another role or without content are skipped.
    """
    user_turns: list[str] = []
    assistant_turns: list[str] = []

    for message in messages:
        if not message.content:
            continue
        if message.role == USER_ROLE:
            user_turns.append(message.content)
        elif message.role == ASSISTANT_ROLE:
            assistant_turns.append(message.content)

    return user_turns, assistant_turns


def validate_transcript(raw: Any, require_user_turn: bool = True) -> Transcript:
    """Check a parsed JSON value against the export shape.

    Raises InvalidFormat when the chat session or message list is missing or
    malformed, and EmptyConversation when ``require_user_turn`` is set and no
    user message has content.
    """
    biz_data = _biz_data(raw)
    session = biz_data.get("chat_session")
    messages = biz_data.get("chat_messages")

    if not isinstance(session, dict) or not isinstance(messages, list):
        raise InvalidFormat()

    try:
        transcript = Transcript(
            session=ChatSession.model_validate(session),
            messages=[TranscriptMessage.model_validate(m) for m in messages],
            url=raw.get("url") if isinstance(raw.get("url"), str) else None,
        )
    except ValidationError as exc:
        logger.debug("Transcript failed validation: %s", exc)
        raise InvalidFormat(f"Invalid JSON format: {exc.error_count()} malformed field(s)") from exc

    if require_user_turn:
        user_turns, _ = partition_roles(transcript.messages)
        if not user_turns:
            raise EmptyConversation()

    return transcript


def load_transcript(text: str | bytes, require_user_turn: bool = True) -> Transcript:
    """Decode JSON text and validate it as a transcript."""
    try:
        raw = json.loads(text)
    except ValueError as exc:
        raise InvalidFormat(f"Error parsing JSON: {exc}") from exc
    return validate_transcript(raw, require_user_turn=require_user_turn)
