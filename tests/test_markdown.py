"""Tests for the Markdown transcript renderer."""

import re
from datetime import datetime, timezone

import pytest

from conftest import make_transcript
from questionhub.markdown import (
    download_filename,
    link_citations,
    reformat_math,
    render_markdown,
)
from questionhub.errors import InvalidFormat
from questionhub.models import SearchResult
from questionhub.parser import validate_transcript

NOW = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


def _render(raw, **kwargs):
    return render_markdown(validate_transcript(raw, require_user_turn=False), now=NOW, **kwargs)


class TestRenderMarkdown:
    def test_title_line_sums_tokens(self, rich_transcript):
        markdown = _render(rich_transcript)
        assert markdown.startswith("# DeepSeek - Paper summary (Total Tokens: 600)\n")

    def test_missing_token_counters_count_as_zero(self, simple_transcript):
        assert "(Total Tokens: 0)" in _render(simple_transcript)

    def test_untitled_chat(self):
        raw = make_transcript([{"role": "USER", "content": "Q"}], title=None)
        assert _render(raw).startswith("# DeepSeek - Untitled Chat")

    def test_vendor_name(self, simple_transcript):
        assert _render(simple_transcript, vendor="Other").startswith("# Other - T")

    def test_role_headers_follow_message_order(self):
        raw = make_transcript(
            [
                {"role": "USER", "content": "Q1"},
                {"role": "ASSISTANT", "content": "A1"},
                {"role": "USER", "content": "Q2"},
                {"role": "ASSISTANT", "content": "A2"},
                {"role": "ASSISTANT", "content": "A3"},
            ]
        )
        headers = re.findall(r"^### (Human|Assistant)$", _render(raw), flags=re.MULTILINE)
        assert headers == ["Human", "Assistant", "Human", "Assistant", "Assistant"]

    def test_timestamps(self, rich_transcript):
        markdown = _render(rich_transcript)
        assert "*2024-03-01T12:00:00.000Z*" in markdown
        assert "*2024-03-01T12:01:00.250Z*" in markdown

    def test_missing_timestamp_uses_now(self, simple_transcript):
        assert "*2025-01-02T03:04:05.678Z*" in _render(simple_transcript)

    def test_file_information(self, rich_transcript):
        markdown = _render(rich_transcript)
        assert (
            "### File Information\n"
            "- Name: paper.pdf\n"
            "- Size: 2048 bytes\n"
            "- Token Usage: 900\n"
            "- Upload Time: 2024-03-01T11:59:50.000Z\n"
            "- Last Update: 2024-03-01T11:59:55.500Z\n"
        ) in markdown

    def test_thinking_process(self, rich_transcript):
        markdown = _render(rich_transcript)
        assert "\n\n**Thinking Process (12s):**\nThe user wants a summary." in markdown

    def test_thinking_process_without_duration(self):
        raw = make_transcript(
            [{"role": "ASSISTANT", "content": "A", "thinking_content": "hmm"}]
        )
        assert "**Thinking Process :**\nhmm" in _render(raw)

    def test_citations_and_math_in_content(self, rich_transcript):
        markdown = _render(rich_transcript)
        assert "It proves $$a^2+b^2=c^2$$ and cites work  [1](https://example.org/1), see [citation:7]." in markdown

    def test_exact_layout(self, simple_transcript):
        assert _render(simple_transcript) == (
            "# DeepSeek - T (Total Tokens: 0)\n\n"
            "### Human\n"
            "*2025-01-02T03:04:05.678Z*\n\n"
            "Q1\n\n"
            "### Assistant\n"
            "*2025-01-02T03:04:05.678Z*\n\n"
            "A1\n"
        )


class TestLinkCitations:
    def test_known_citation_becomes_link(self):
        result = link_citations("see [citation:2]", [SearchResult(cite_index=2, url="http://x")])
        assert "see  [2](http://x)" in result

    def test_unknown_citation_is_unchanged(self):
        text = "as shown [citation:7] here"
        assert link_citations(text, [SearchResult(cite_index=2, url="http://x")]) == text

    def test_null_cite_index_is_ignored(self):
        text = "fact [citation:0]"
        assert link_citations(text, [SearchResult(cite_index=None, url="http://x")]) == text

    def test_whitespace_before_punctuation_is_collapsed(self):
        result = link_citations(
            "fact [citation:1] , more [citation:1] .",
            [SearchResult(cite_index=1, url="http://x")],
        )
        assert result == "fact  [1](http://x), more  [1](http://x)."


class TestNumericFields:
    def test_fractional_tokens_are_summed(self):
        raw = make_transcript([
            {"role": "USER", "content": "Q", "accumulated_token_usage": 12.5},
            {"role": "ASSISTANT", "content": "A", "accumulated_token_usage": 3},
        ])
        assert _render(raw).startswith("# DeepSeek - T (Total Tokens: 15.5)\n")

    def test_file_size_without_fraction_renders_as_integer(self):
        raw = make_transcript([
            {"role": "USER", "content": "Q", "files": [{"file_name": "a.txt", "file_size": 10.0, "token_usage": 2.5}]},
        ])
        markdown = _render(raw)
        assert "- Size: 10 bytes\n" in markdown
        assert "- Token Usage: 2.5\n" in markdown

    @pytest.mark.parametrize("ts", [1e20, float("inf")])
    def test_out_of_range_timestamp_is_invalid(self, ts):
        raw = make_transcript([{"role": "USER", "content": "Q", "inserted_at": ts}])
        with pytest.raises(InvalidFormat, match="Invalid timestamp"):
            _render(raw)


class TestReformatMath:
    def test_single_line_block_stays_inline(self):
        assert reformat_math("x $$x^2$$ y") == "x $$x^2$$ y"

    def test_multi_line_block_gets_own_lines(self):
        assert reformat_math("before $$a\nb$$ after") == "before \n$$\na\nb\n$$\n after"

    @pytest.mark.parametrize(
        "text",
        [
            "$$x^2$$",
            "a $$x\ny$$ b",
            "a\n$$\nx\n$$\nb",
            "$$a\nb$$$$c\nd$$ and $$e$$",
            "no math here",
            "$$$$$$\n$$",
            "$$\n$$",
        ],
    )
    def test_idempotent(self, text):
        once = reformat_math(text)
        assert reformat_math(once) == once


class TestDownloadFilename:
    def test_format(self):
        assert download_filename("My chat", "md", now=NOW) == "DeepSeek - My chat_2025-01-02T03-04-05.md"

    def test_reserved_characters_replaced(self):
        name = download_filename('a/b\\c?d%e*f:g|h"i<j>', "json", now=NOW)
        assert name == "DeepSeek - a-b-c-d-e-f-g-h-i-j-_2025-01-02T03-04-05.json"

    def test_missing_title(self):
        assert download_filename(None, "md", now=NOW).startswith("DeepSeek - Untitled Chat_")
