"""FastMCP server with question search and transcript conversion tools."""

from __future__ import annotations

import logging
import sqlite3
import sys

from mcp.server.fastmcp import FastMCP

from .config import CHROMA_PATH, DATA_DIR, MISSING_ANSWER, SQLITE_PATH
from .errors import QuestionHubError
from .markdown import render_markdown
from .parser import load_transcript
from .search import semantic_search
from .storage import QuestionStore
from .vectorstore import QuestionVectorStore

# Logging to stderr only; stdout is the MCP JSON-RPC transport
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

mcp = FastMCP(
    "questionhub",
    instructions=(
        "Search and read questions shared on QuestionHub: AI chatbot conversations "
        "submitted by users, with tags and votes. "
        "Use search_questions to find relevant questions by topic. "
        "Use get_question to read the full question and answers. "
        "Use list_questions to browse by recency, votes or tag. "
        "Use convert_transcript to turn a chat export JSON into Markdown."
    ),
)

# Singletons reused across tool calls
_store: QuestionStore | None = None
_vectorstore: QuestionVectorStore | None = None
_embedder = None


def _get_store() -> QuestionStore:
    global _store
    if _store is None:
        _store = QuestionStore(SQLITE_PATH)
    return _store


def _get_vectorstore() -> QuestionVectorStore:
    global _vectorstore
    if _vectorstore is None:
        _vectorstore = QuestionVectorStore(CHROMA_PATH)
    return _vectorstore


def _get_embedder():
    global _embedder
    if _embedder is None:
        from .embeddings import GeminiEmbedder

        _embedder = GeminiEmbedder()
    return _embedder


def _check_data_exists() -> str | None:
    """Return an error message if no questions have been imported."""
    if not SQLITE_PATH.exists():
        return (
            "No questions found. Import a conversation first:\n"
            "  questionhub import conversation.json --tag python"
        )
    return None


@mcp.tool()
def search_questions(query: str, limit: int = 5) -> str:
    """Search questions by meaning (title embeddings) and by keyword.

    Args:
        query: What to search for (natural language)
        limit: Maximum number of results (default 5)
    """
    err = _check_data_exists()
    if err:
        return err

    store = _get_store()
    scored: dict[str, dict] = {}

    try:
        semantic = semantic_search(query, _get_embedder(), _get_vectorstore(), limit=limit)
    except QuestionHubError as exc:
        logger.warning("Semantic search unavailable, using keyword search only: %s", exc)
        semantic = []

    for m in semantic:
        scored[m.id] = {"id": m.id, "title": m.title, "semantic_score": m.similarity or 0.0,
                        "keyword_score": 0.0, "snippet": ""}

    try:
        keyword_results = store.search_keyword(query, limit=limit)
    except sqlite3.OperationalError:
        logger.debug("Query %r is not valid FTS5 syntax", query)
        keyword_results = []

    for r in keyword_results:
        entry = scored.setdefault(
            r["id"],
            {"id": r["id"], "title": r["title"], "semantic_score": 0.0, "keyword_score": 0.0},
        )
        entry["keyword_score"] = 1.0
        entry["snippet"] = r.get("snippet") or ""

    # Combined score: weighted average
    for data in scored.values():
        data["combined_score"] = 0.7 * data["semantic_score"] + 0.3 * data["keyword_score"]

    ranked = sorted(scored.values(), key=lambda x: x["combined_score"], reverse=True)[:limit]

    if not ranked:
        return f"No questions found matching '{query}'."

    lines = [f"Found {len(ranked)} questions matching '{query}':\n"]
    for i, r in enumerate(ranked, 1):
        lines.append(f"{i}. **{r['title']}**")
        lines.append(f"   ID: `{r['id']}` | Relevance: {r['combined_score']:.2f}")
        if r.get("snippet"):
            snippet = r["snippet"].replace("\n", " ")[:150]
            lines.append(f"   Preview: {snippet}")
        lines.append("")

    lines.append("Use get_question(question_id) to read the full question.")
    return "\n".join(lines)


@mcp.tool()
def get_question(question_id: str) -> str:
    """Retrieve a question with every user turn and its answer.

    Args:
        question_id: The question id (from search or list results)
    """
    err = _check_data_exists()
    if err:
        return err

    question = _get_store().get_question(question_id)
    if question is None:
        return f"Question not found: {question_id}"

    lines = [
        f"# {question.title}",
        f"Tags: {', '.join(question.tags)}",
        f"Votes: {question.votes}",
    ]
    if question.url:
        lines.append(f"Source: {question.url}")
    lines += ["", "---", ""]

    for i, user_turn in enumerate(question.content):
        answer = question.answer[i] if i < len(question.answer) else MISSING_ANSWER
        lines += ["**Question**:", user_turn, "", "**Answer**:", answer, ""]

    return "\n".join(lines)


@mcp.tool()
def list_questions(
    order: str = "recent",
    tag: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> str:
    """Browse questions.

    Args:
        order: "recent" (newest first) or "votes" (most voted first)
        tag: Optional tag to filter by
        limit: Maximum results (default 20)
        offset: Skip this many results (for pagination)
    """
    err = _check_data_exists()
    if err:
        return err

    try:
        questions = _get_store().list_questions(order=order, tag=tag, limit=limit, offset=offset)
    except ValueError as exc:
        return str(exc)

    if not questions:
        return f"No questions tagged '{tag}'." if tag else "No questions found."

    lines = [f"Questions (showing {offset + 1}–{offset + len(questions)}):\n"]
    for i, q in enumerate(questions, offset + 1):
        date = q.created_at.strftime("%Y-%m-%d") if q.created_at else "Unknown date"
        lines.append(f"{i}. **{q.title}** ({date})")
        lines.append(f"   ID: `{q.id}` | {q.votes} votes | Tags: {', '.join(q.tags)}")

    if len(questions) == limit:
        lines.append(f"\nMore available — use offset={offset + limit} to see the next page.")
    return "\n".join(lines)


@mcp.tool()
def convert_transcript(transcript_json: str) -> str:
    """Convert a chat export (JSON text) into a Markdown transcript.

    Args:
        transcript_json: The full JSON document returned by the chat history endpoint
    """
    try:
        transcript = load_transcript(transcript_json, require_user_turn=False)
        return render_markdown(transcript)
    except QuestionHubError as exc:
        return str(exc)


@mcp.tool()
def get_stats() -> str:
    """Get statistics about stored questions: totals, votes, date range and top tags."""
    err = _check_data_exists()
    if err:
        return err

    stats = _get_store().get_stats()
    lines = [
        "# QuestionHub Statistics",
        "",
        f"- **Questions**: {stats['total_questions']:,}",
        f"- **Votes cast**: {stats['total_votes']:,}",
        f"- **Embedded titles**: {_get_vectorstore().count():,}",
        "",
    ]
    if stats["date_range_start"]:
        lines.append(f"- **Date range**: {stats['date_range_start']} → {stats['date_range_end']}")
        lines.append("")
    if stats["top_tags"]:
        lines.append("## Top tags:")
        for t in stats["top_tags"]:
            lines.append(f"- {t['tag']}: {t['count']:,} questions")

    lines.append(f"\n*Data stored in: {DATA_DIR}*")
    return "\n".join(lines)
