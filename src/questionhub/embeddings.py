"""Gemini title embeddings and the one-at-a-time batch embedding job."""

from __future__ import annotations

import logging
import time

from google import genai
from google.genai import errors as genai_errors

from .config import EMBED_DELAY, EMBED_MODEL, GEMINI_API_KEY
from .errors import ExternalServiceFailure
from .models import EmbeddingOutcome, EmbeddingSummary

logger = logging.getLogger(__name__)


class GeminiEmbedder:
    """Turns text into a fixed-length vector with the Gemini embedding API."""

    def __init__(self, api_key: str | None = None, model: str = EMBED_MODEL):
        self.api_key = api_key or GEMINI_API_KEY
        self.model = model
        if not self.api_key:
            raise ExternalServiceFailure("GEMINI_API_KEY is not set")
        self.client = genai.Client(api_key=self.api_key)

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.models.embed_content(model=self.model, contents=text)
        except genai_errors.APIError as exc:
            raise ExternalServiceFailure(f"Embedding request failed: {exc}") from exc

        if not response.embeddings or not response.embeddings[0].values:
            raise ExternalServiceFailure("No embedding in response")
        return list(response.embeddings[0].values)


def generate_missing_embeddings(pending, embedder, index, delay: float = EMBED_DELAY) -> EmbeddingSummary:
    """Embed each pending question's title and store it in ``index``.

    Items are processed strictly in order with ``delay`` seconds between them.
    A failed item is recorded and the job moves on to the next one.
    """
    summary = EmbeddingSummary(total=len(pending))
    logger.info("Found %d questions without embeddings", len(pending))

    for question in pending:
        try:
            embedding = embedder.embed(question.title)
            index.upsert_embedding(question.id, question.title, embedding)
        except Exception as exc:
            logger.warning("Failed to embed question %s", question.id, exc_info=True)
            summary.results.append(EmbeddingOutcome(id=question.id, status="failed", error=str(exc)))
            summary.failed += 1
        else:
            logger.debug("Stored embedding for question %s", question.id)
            summary.results.append(EmbeddingOutcome(id=question.id, status="success"))
            summary.successful += 1

        if delay > 0:
            time.sleep(delay)

    return summary
