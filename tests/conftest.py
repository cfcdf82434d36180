"""
Pytest configuration and shared fixtures.

Provides sample chat exports and in-memory stand-ins for the question store,
the embedding service and the similarity index.
"""

import os
import tempfile

# Keep every test away from the user's real data directory
os.environ.setdefault("QUESTIONHUB_DATA_DIR", tempfile.mkdtemp(prefix="questionhub-tests-"))

import pytest

from questionhub.models import QuestionMatch, StoredQuestion


def make_transcript(messages, title="T", **extra):
    """Wrap messages in the chat export envelope."""
    doc = {
        "code": 0,
        "data": {
            "biz_code": 0,
            "biz_data": {
                "chat_session": {"id": "session-1", "title": title},
                "chat_messages": messages,
            },
        },
    }
    doc.update(extra)
    return doc


class FakeStore:
    """Records insert calls and hands back a stored row."""

    def __init__(self, fail_with=None):
        self.inserted = []
        self.fail_with = fail_with

    def insert_question(self, question):
        self.inserted.append(question)
        if self.fail_with is not None:
            raise self.fail_with
        return StoredQuestion(id=f"q-{len(self.inserted)}", **question.model_dump())


class FakeEmbedder:
    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def embed(self, text):
        self.calls.append(text)
        if text in self.fail_on:
            raise RuntimeError(f"cannot embed {text}")
        return [float(len(text)), 1.0, 0.0]


class FakeIndex:
    def __init__(self, matches=()):
        self.vectors = {}
        self.queries = []
        self.matches = list(matches)

    def upsert_embedding(self, question_id, title, embedding):
        self.vectors[question_id] = (title, embedding)

    def match_questions(self, query_embedding, match_threshold, match_count):
        self.queries.append((query_embedding, match_threshold, match_count))
        return self.matches[:match_count]


@pytest.fixture
def simple_transcript():
    return make_transcript(
        [
            {"role": "USER", "content": "Q1"},
            {"role": "ASSISTANT", "content": "A1"},
        ]
    )


@pytest.fixture
def rich_transcript():
    return make_transcript(
        [
            {
                "message_id": 1,
                "role": "USER",
                "content": "Summarise the attached paper",
                "accumulated_token_usage": 120,
                "inserted_at": 1709294400.0,
                "files": [
                    {
                        "file_name": "paper.pdf",
                        "file_size": 2048,
                        "token_usage": 900,
                        "inserted_at": 1709294390.0,
                        "updated_at": 1709294395.5,
                    }
                ],
            },
            {
                "message_id": 2,
                "role": "ASSISTANT",
                "content": "It proves $$a^2+b^2=c^2$$ and cites work [citation:1] , see [citation:7].",
                "accumulated_token_usage": 480,
                "inserted_at": 1709294460.25,
                "search_results": [
                    {"cite_index": 1, "url": "https://example.org/1"},
                    {"cite_index": None, "url": "https://example.org/none"},
                ],
                "thinking_content": "The user wants a summary.",
                "thinking_elapsed_secs": 12,
            },
        ],
        title="Paper summary",
    )


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_index():
    return FakeIndex(
        [
            QuestionMatch(id="q-1", title="Sorting a dict", similarity=0.93),
            QuestionMatch(id="q-2", title="Sorting a list", similarity=0.81),
        ]
    )
