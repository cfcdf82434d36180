"""Tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner

from conftest import make_transcript
from questionhub import cli as cli_module
from questionhub.cli import cli
from questionhub.storage import QuestionStore


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    data = tmp_path / "data"
    monkeypatch.setattr(cli_module, "DATA_DIR", data)
    monkeypatch.setattr(cli_module, "SQLITE_PATH", data / "questions.db")
    monkeypatch.setattr(cli_module, "CHROMA_PATH", data / "chroma")
    monkeypatch.setattr(cli_module, "SESSION_PATH", data / "session.json")
    monkeypatch.delenv("QUESTIONHUB_AUTHOR", raising=False)
    return data


@pytest.fixture
def transcript_file(tmp_path, simple_transcript):
    path = tmp_path / "chat.json"
    path.write_text(json.dumps(simple_transcript), encoding="utf-8")
    return path


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "questionhub" in result.output


def test_import_and_list(data_dir, transcript_file):
    runner = CliRunner()
    result = runner.invoke(cli, ["import", str(transcript_file), "--tag", "python", "--author", "user-1"])

    assert result.exit_code == 0, result.output
    assert "submitted successfully" in result.output

    store = QuestionStore(data_dir / "questions.db")
    [question] = store.list_questions()
    store.close()
    assert question.title == "T"
    assert question.content == ["Q1"]
    assert question.tags == ["python"]

    result = runner.invoke(cli, ["list"])
    assert question.id in result.output

    result = runner.invoke(cli, ["show", question.id])
    assert "Q1" in result.output and "A1" in result.output


def test_import_requires_author(data_dir, transcript_file):
    result = CliRunner().invoke(cli, ["import", str(transcript_file), "--tag", "python"])
    assert result.exit_code == 1
    assert "must be logged in" in result.output


def test_import_too_many_tags(data_dir, transcript_file):
    args = ["import", str(transcript_file), "--author", "u"]
    for tag in "abcdef":
        args += ["--tag", tag]
    result = CliRunner().invoke(cli, args)
    assert result.exit_code == 1
    assert "Maximum 5 tags" in result.output


def test_import_empty_conversation(data_dir, tmp_path):
    path = tmp_path / "empty.json"
    path.write_text(json.dumps(make_transcript([])), encoding="utf-8")
    result = CliRunner().invoke(cli, ["import", str(path), "--tag", "python", "--author", "u"])
    assert result.exit_code == 1
    assert "No user questions" in result.output


def test_convert(tmp_path, transcript_file):
    out_dir = tmp_path / "out"
    result = CliRunner().invoke(cli, ["convert", str(transcript_file), "--out-dir", str(out_dir)])

    assert result.exit_code == 0, result.output
    [written] = list(out_dir.glob("*.md"))
    assert written.name.startswith("DeepSeek - T_")
    assert "### Human" in written.read_text(encoding="utf-8")


def test_convert_reports_invalid_timestamp(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(
        json.dumps(make_transcript([{"role": "USER", "content": "Q", "inserted_at": 1e20}])), encoding="utf-8"
    )
    result = CliRunner().invoke(cli, ["convert", str(path), "--out-dir", str(tmp_path / "out")])
    assert result.exit_code == 1
    assert "Invalid timestamp" in result.output


def test_capture_writes_downloads(tmp_path, transcript_file):
    out_dir = tmp_path / "out"
    result = CliRunner().invoke(
        cli,
        [
            "capture",
            str(transcript_file),
            "--source-url",
            "https://chat.deepseek.com/api/v0/chat/history_messages?chat_session_id=1",
            "--page-url",
            "https://chat.deepseek.com/a/chat/s/1",
            "--out-dir",
            str(out_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    assert len(list(out_dir.glob("*.json"))) == 1
    assert len(list(out_dir.glob("*.md"))) == 1


def test_capture_rejects_other_urls(tmp_path, transcript_file):
    result = CliRunner().invoke(
        cli, ["capture", str(transcript_file), "--source-url", "https://example.com/x"]
    )
    assert result.exit_code == 1
    assert "Not a chat history response" in result.output


def test_vote(data_dir, transcript_file):
    runner = CliRunner()
    runner.invoke(cli, ["import", str(transcript_file), "--tag", "python", "--author", "user-1"])
    store = QuestionStore(data_dir / "questions.db")
    [question] = store.list_questions()
    store.close()

    result = runner.invoke(cli, ["vote", question.id, "--author", "user-2"])
    assert result.exit_code == 0, result.output
    assert "Votes: 1" in result.output


def test_stats_without_data(data_dir):
    result = CliRunner().invoke(cli, ["stats"])
    assert "No data found" in result.output
