"""ChromaDB index of question title embeddings for similarity search."""

from __future__ import annotations

import logging
from pathlib import Path

import chromadb

from .config import COLLECTION_NAME
from .models import QuestionMatch

logger = logging.getLogger(__name__)


class QuestionVectorStore:
    """ChromaDB-backed store of precomputed title embeddings."""

    def __init__(self, persist_path: Path):
        persist_path.parent.mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(path=str(persist_path))
        self.collection = self.client.get_or_create_collection(
            name=COLLECTION_NAME,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert_embedding(self, question_id: str, title: str, embedding: list[float]):
        self.collection.upsert(
            ids=[question_id],
            embeddings=[embedding],
            documents=[title],
            metadatas=[{"title": title}],
        )

    def has(self, question_id: str) -> bool:
        return bool(self.collection.get(ids=[question_id], include=[])["ids"])

    def missing(self, questions: list) -> list:
        """Return the questions that have no embedding in the index yet."""
        if not questions:
            return []
        present = set(self.collection.get(ids=[q.id for q in questions], include=[])["ids"])
        return [q for q in questions if q.id not in present]

    def match_questions(
        self,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
    ) -> list[QuestionMatch]:
        """Nearest questions above ``match_threshold`` cosine similarity, best first."""
        count = self.collection.count()
        if count == 0 or match_count <= 0:
            return []

        results = self.collection.query(
            query_embeddings=[query_embedding],
            n_results=min(match_count, count),
            include=["metadatas", "distances"],
        )
        if not results["ids"] or not results["ids"][0]:
            return []

        matches: list[QuestionMatch] = []
        for i, question_id in enumerate(results["ids"][0]):
            meta = results["metadatas"][0][i] or {}
            # Cosine distance → similarity score
            similarity = 1.0 - results["distances"][0][i]
            if similarity > match_threshold:
                matches.append(
                    QuestionMatch(
                        id=question_id,
                        title=meta.get("title", ""),
                        similarity=round(similarity, 4),
                    )
                )

        return sorted(matches, key=lambda m: m.similarity, reverse=True)

    def delete_question(self, question_id: str):
        self.collection.delete(ids=[question_id])

    def count(self) -> int:
        return self.collection.count()
