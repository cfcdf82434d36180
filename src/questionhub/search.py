"""Semantic question search: embed the query, then ask the index for neighbours."""

from __future__ import annotations

import logging

from .config import MATCH_COUNT, MATCH_THRESHOLD
from .models import QuestionMatch

logger = logging.getLogger(__name__)


def semantic_search(
    query: str,
    embedder,
    index,
    threshold: float = MATCH_THRESHOLD,
    limit: int = MATCH_COUNT,
) -> list[QuestionMatch]:
    """Return up to ``limit`` questions whose titles are similar to ``query``.

    ``index`` is anything with ``match_questions`` (the local Chroma index or the
    hosted RPC). Embedding or search failures propagate as ExternalServiceFailure.
    """
    query = query.strip()
    if not query:
        return []

    query_embedding = embedder.embed(query)
    matches = index.match_questions(query_embedding, threshold, limit)
    logger.debug("Semantic search for %r returned %d matches", query, len(matches))
    return matches
