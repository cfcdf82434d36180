"""Holds one intercepted chat-history response and turns it into downloads or an upload."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from .config import CACHE_VERSION_PARAM, CAPTURE_URL_MARKER, DEFAULT_CAPTURE_TAGS, VENDOR_NAME
from .errors import InvalidFormat, NothingCaptured, QuestionHubError
from .importer import normalize, submit_conversation
from .markdown import download_filename, render_markdown
from .models import StoredQuestion
from .parser import load_transcript

logger = logging.getLogger(__name__)

IDLE = "idle"
CAPTURED = "captured"
CONVERTED = "converted"
UPLOAD_FAILED = "upload-failed"
UPLOADED = "uploaded"


def matches(url: str | None) -> bool:
    return bool(url) and CAPTURE_URL_MARKER in url


def strip_cache_version(url: str) -> str:
    """Drop the cache-busting parameter so the full history is returned."""
    if CAPTURE_URL_MARKER in url and CACHE_VERSION_PARAM in url:
        return url.split(CACHE_VERSION_PARAM)[0]
    return url


class CaptureSession:
    """State container for the latest captured conversation.

    Transitions: idle → captured → converted, and from captured or converted
    to uploaded or upload-failed. A new capture always restarts at captured.
    """

    def __init__(self, vendor: str = VENDOR_NAME):
        self.vendor = vendor
        self.state = IDLE
        self.response_text: str | None = None
        self.captured_at: datetime | None = None
        self.markdown: str | None = None
        self.last_error: str | None = None

    def process_response(self, text: str, url: str) -> bool:
        """Keep ``text`` if ``url`` is a chat-history request. Returns True when kept."""
        if not matches(url):
            return False

        self.response_text = text
        self.captured_at = datetime.now(timezone.utc)
        self.markdown = None
        self.last_error = None
        self.state = CAPTURED
        logger.info("Captured response (%d bytes) from %s", len(text), url)

        try:
            transcript = load_transcript(text, require_user_turn=False)
        except QuestionHubError as exc:
            self.last_error = str(exc)
            logger.error("Could not convert captured response: %s", exc)
            return True

        self.markdown = render_markdown(transcript, vendor=self.vendor)
        self.state = CONVERTED
        logger.info("Converted captured response to Markdown")
        return True

    def _require_capture(self) -> dict:
        if self.response_text is None:
            raise NothingCaptured()
        try:
            return json.loads(self.response_text)
        except ValueError as exc:
            raise InvalidFormat(f"Error parsing JSON: {exc}") from exc

    def _title(self, data: dict) -> str | None:
        try:
            return data["data"]["biz_data"]["chat_session"]["title"]
        except (KeyError, TypeError):
            return None

    def json_download(self, page_url: str | None = None) -> tuple[str, bytes]:
        """The captured document with the page url added, plus its file name."""
        data = self._require_capture()
        if page_url and isinstance(data, dict):
            data = {**data, "url": page_url}
        filename = download_filename(self._title(data), "json", vendor=self.vendor)
        return filename, json.dumps(data, ensure_ascii=False).encode("utf-8")

    def markdown_download(self) -> tuple[str, bytes]:
        data = self._require_capture()
        if self.markdown is None:
            raise NothingCaptured("The captured conversation could not be converted to Markdown")
        filename = download_filename(self._title(data), "md", vendor=self.vendor)
        return filename, self.markdown.encode("utf-8")

    def upload(
        self,
        store,
        author_id: str | None,
        page_url: str | None = None,
        tags: list[str] | None = None,
    ) -> StoredQuestion:
        """Submit the captured conversation; state ends as uploaded or upload-failed."""
        if self.response_text is None:
            raise NothingCaptured()

        try:
            conversation = normalize(load_transcript(self.response_text))
            if page_url:
                conversation = conversation.model_copy(update={"url": page_url})
            stored = submit_conversation(
                conversation, tags or DEFAULT_CAPTURE_TAGS, author_id, store
            )
        except QuestionHubError as exc:
            self.state = UPLOAD_FAILED
            self.last_error = str(exc)
            logger.error("Upload failed: %s", exc)
            raise

        self.state = UPLOADED
        self.last_error = None
        return stored
