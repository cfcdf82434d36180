"""Tests for the MCP tools, run against a temporary store."""

import json

import pytest

from conftest import make_transcript
from questionhub import server
from questionhub.errors import ExternalServiceFailure
from questionhub.models import NewQuestion
from questionhub.storage import QuestionStore


@pytest.fixture
def store(tmp_path, monkeypatch):
    db_path = tmp_path / "questions.db"
    store = QuestionStore(db_path)
    monkeypatch.setattr(server, "SQLITE_PATH", db_path)
    monkeypatch.setattr(server, "_store", store)
    yield store
    store.close()


@pytest.fixture
def question(store):
    return store.insert_question(
        NewQuestion(
            title="Sorting a dict by value",
            content=["How do I sort a dict by value?", "Descending?"],
            answer=["sorted(d.items(), key=lambda kv: kv[1])"],
            tags=["python"],
            author_id="user-1",
            url="https://chat.example.com/s/1",
        )
    )


def test_no_data(tmp_path, monkeypatch):
    monkeypatch.setattr(server, "SQLITE_PATH", tmp_path / "missing.db")
    assert "No questions found" in server.get_stats()


def test_get_question(question):
    text = server.get_question(question.id)
    assert "# Sorting a dict by value" in text
    assert "Source: https://chat.example.com/s/1" in text
    assert "No answer provided for this question." in text


def test_get_missing_question(store):
    assert "Question not found" in server.get_question("nope")


def test_list_questions(question):
    assert question.id in server.list_questions(order="votes")
    assert "No questions tagged 'rust'" in server.list_questions(tag="rust")
    assert "Unknown order" in server.list_questions(order="random")


def test_search_falls_back_to_keywords(question, monkeypatch):
    def no_embedder():
        raise ExternalServiceFailure("GEMINI_API_KEY is not set")

    monkeypatch.setattr(server, "_get_embedder", no_embedder)
    text = server.search_questions("dict")
    assert question.id in text


def test_convert_transcript(simple_transcript):
    markdown = server.convert_transcript(json.dumps(simple_transcript))
    assert markdown.startswith("# DeepSeek - T")
    assert "Invalid JSON format" in server.convert_transcript(json.dumps({"data": {}}))


def test_convert_transcript_reports_invalid_timestamp():
    raw = make_transcript([{"role": "USER", "content": "Q", "inserted_at": 1e20}])
    assert "Invalid timestamp" in server.convert_transcript(json.dumps(raw))
