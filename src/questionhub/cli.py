"""CLI interface for questionhub."""

from __future__ import annotations

import functools
import logging
import shutil
from pathlib import Path

import click

from . import __version__
from .config import (
    CHROMA_PATH,
    DATA_DIR,
    EMBED_DELAY,
    MATCH_COUNT,
    MATCH_THRESHOLD,
    MAX_TAGS,
    MISSING_ANSWER,
    SESSION_PATH,
    SQLITE_PATH,
    SUPABASE_KEY,
    SUPABASE_URL,
)
from .errors import QuestionHubError


def _reports_errors(func):
    """Turn pipeline errors into a one-line notice and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except QuestionHubError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


def _remote_client():
    from .client import SupabaseClient, load_session

    return SupabaseClient(SUPABASE_URL, SUPABASE_KEY, session=load_session(SESSION_PATH))


def _author_id(author: str | None) -> str | None:
    """The explicit --author, else the signed-in user."""
    if author:
        return author
    from .client import load_session

    session = load_session(SESSION_PATH)
    return session.user_id if session else None


def _write(out_dir: Path, filename: str, data: bytes) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / filename
    target.write_bytes(data)
    return target


@click.group()
@click.version_option(version=__version__, prog_name="questionhub")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """questionhub — share, tag and search AI chatbot conversations.

    Import a chat export as a question, convert it to Markdown, and find
    related questions by meaning.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@cli.command("import")
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--tag", "tags", multiple=True, required=True, help=f"Tag (repeat, max {MAX_TAGS})")
@click.option("--author", envvar="QUESTIONHUB_AUTHOR", help="Author id (defaults to the signed-in user)")
@click.option("--url", help="Source url of the conversation")
@click.option("--remote", is_flag=True, help="Submit to the hosted backend instead of the local store")
@_reports_errors
def import_cmd(json_path: str, tags: tuple[str, ...], author: str | None, url: str | None, remote: bool):
    """Import a chat export JSON file as a question.

    Example:
        questionhub import "DeepSeek - Sorting.json" --tag python --tag algorithms
    """
    from .importer import import_transcript_file

    if remote:
        store = _remote_client()
        author_id = author or (store.session.user_id if store.session else None)
    else:
        from .storage import QuestionStore

        store = QuestionStore(SQLITE_PATH)
        author_id = _author_id(author)

    try:
        stored = import_transcript_file(json_path, tags, author_id, store, url=url)
    finally:
        store.close()

    click.echo(click.style("Your question has been submitted successfully!", fg="green", bold=True))
    click.echo(f"  ID:        {stored.id}")
    click.echo(f"  Title:     {stored.title}")
    click.echo(f"  Questions: {len(stored.content)}")
    click.echo(f"  Answers:   {len(stored.answer)}")


@cli.command()
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--out-dir", type=click.Path(file_okay=False), default=".", show_default=True)
@_reports_errors
def convert(json_path: str, out_dir: str):
    """Convert a chat export JSON file to a Markdown transcript."""
    from .markdown import download_filename, render_markdown
    from .parser import load_transcript

    transcript = load_transcript(Path(json_path).read_bytes(), require_user_turn=False)
    markdown = render_markdown(transcript)
    target = _write(Path(out_dir), download_filename(transcript.session.title, "md"), markdown.encode("utf-8"))
    click.echo(f"Wrote {target}")


@cli.command()
@click.argument("response_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--source-url", required=True, help="URL the response was intercepted from")
@click.option("--page-url", help="Chat page url to record with the conversation")
@click.option("--out-dir", type=click.Path(file_okay=False), default=".", show_default=True)
@click.option("--upload", is_flag=True, help="Also submit the conversation to the hosted backend")
@click.option("--tag", "tags", multiple=True, help="Tags for the upload (default: deepseek, ai-conversation)")
@_reports_errors
def capture(response_path: str, source_url: str, page_url: str | None, out_dir: str, upload: bool,
            tags: tuple[str, ...]):
    """Save an intercepted chat-history response as JSON and Markdown downloads."""
    from .capture import CaptureSession, strip_cache_version

    session = CaptureSession()
    text = Path(response_path).read_text(encoding="utf-8")
    if not session.process_response(text, strip_cache_version(source_url)):
        raise click.ClickException(f"Not a chat history response: {source_url}")

    name, data = session.json_download(page_url)
    click.echo(f"Wrote {_write(Path(out_dir), name, data)}")
    if session.markdown is not None:
        name, data = session.markdown_download()
        click.echo(f"Wrote {_write(Path(out_dir), name, data)}")
    else:
        click.echo(f"Markdown skipped: {session.last_error}", err=True)

    if upload:
        client = _remote_client()
        author_id = client.session.user_id if client.session else None
        try:
            stored = session.upload(client, author_id, page_url=page_url, tags=list(tags) or None)
        finally:
            client.close()
        click.echo(click.style(f"Uploaded as question {stored.id}", fg="green"))


@cli.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
@_reports_errors
def login(email: str, password: str):
    """Sign in to the hosted backend and remember the session."""
    from .client import save_session

    client = _remote_client()
    try:
        session = client.sign_in(email, password)
    finally:
        client.close()
    save_session(SESSION_PATH, session)
    click.echo(click.style(f"Signed in as {session.email}", fg="green"))


@cli.command()
def logout():
    """Forget the saved session."""
    if SESSION_PATH.exists():
        SESSION_PATH.unlink()
        click.echo("Signed out.")
    else:
        click.echo("Not signed in.")


@cli.command("list")
@click.option("--order", type=click.Choice(["recent", "votes"]), default="recent", show_default=True)
@click.option("--tag", help="Only questions with this tag")
@click.option("--limit", default=20, show_default=True)
def list_cmd(order: str, tag: str | None, limit: int):
    """List stored questions."""
    from .storage import QuestionStore

    store = QuestionStore(SQLITE_PATH)
    questions = store.list_questions(order=order, tag=tag, limit=limit)
    store.close()

    if not questions:
        click.echo("No questions found.")
        return
    for q in questions:
        date = q.created_at.strftime("%Y-%m-%d") if q.created_at else "?"
        click.echo(f"{q.id}  {q.votes:>4}  {date}  {q.title}  [{', '.join(q.tags)}]")


@cli.command()
@click.argument("question_id")
def show(question_id: str):
    """Print a stored question with its answers."""
    from .storage import QuestionStore

    store = QuestionStore(SQLITE_PATH)
    question = store.get_question(question_id)
    store.close()
    if question is None:
        raise click.ClickException(f"Question not found: {question_id}")

    click.echo(click.style(question.title, bold=True))
    click.echo(f"Tags: {', '.join(question.tags)} | Votes: {question.votes}")
    for i, user_turn in enumerate(question.content):
        click.echo()
        click.echo(click.style("Question:", fg="cyan") + f" {user_turn}")
        answer = question.answer[i] if i < len(question.answer) else MISSING_ANSWER
        click.echo(click.style("Answer:", fg="green") + f" {answer}")


@cli.command()
@click.argument("question_id")
@click.option("--down", is_flag=True, help="Vote down instead of up")
@click.option("--author", envvar="QUESTIONHUB_AUTHOR", help="Voting user id (defaults to the signed-in user)")
@_reports_errors
def vote(question_id: str, down: bool, author: str | None):
    """Vote a question up or down."""
    from .errors import AuthenticationRequired
    from .storage import QuestionStore

    user_id = _author_id(author)
    if not user_id:
        raise AuthenticationRequired("You must be logged in to vote")

    store = QuestionStore(SQLITE_PATH)
    try:
        total = store.vote(question_id, user_id, -1 if down else 1)
    finally:
        store.close()
    click.echo(f"Votes: {total}")


@cli.command()
@click.argument("question_id")
@click.confirmation_option(prompt="Delete this question?")
def delete(question_id: str):
    """Delete a stored question and its embedding."""
    from .storage import QuestionStore
    from .vectorstore import QuestionVectorStore

    store = QuestionStore(SQLITE_PATH)
    deleted = store.delete_question(question_id)
    store.close()
    if not deleted:
        raise click.ClickException(f"Question not found: {question_id}")
    if CHROMA_PATH.exists():
        QuestionVectorStore(CHROMA_PATH).delete_question(question_id)
    click.echo(f"Deleted {question_id}")


@cli.command()
@click.option("--remote", is_flag=True, help="Embed questions stored on the hosted backend")
@click.option("--delay", default=EMBED_DELAY, show_default=True, help="Seconds to wait between questions")
@_reports_errors
def embed(remote: bool, delay: float):
    """Compute title embeddings for questions that do not have one yet."""
    from .embeddings import GeminiEmbedder, generate_missing_embeddings

    embedder = GeminiEmbedder()
    if remote:
        index = _remote_client()
        pending = index.questions_without_embeddings()
    else:
        from .storage import QuestionStore
        from .vectorstore import QuestionVectorStore

        store = QuestionStore(SQLITE_PATH)
        questions = []
        while True:
            batch = store.list_questions(limit=500, offset=len(questions))
            if not batch:
                break
            questions.extend(batch)
        store.close()
        index = QuestionVectorStore(CHROMA_PATH)
        pending = index.missing(questions)

    try:
        summary = generate_missing_embeddings(pending, embedder, index, delay=delay)
    finally:
        if remote:
            index.close()
    click.echo(f"Total: {summary.total}  Successful: {summary.successful}  Failed: {summary.failed}")
    for outcome in summary.results:
        if outcome.status == "failed":
            click.echo(f"  {outcome.id}: {outcome.error}", err=True)


@cli.command()
@click.argument("query")
@click.option("--remote", is_flag=True, help="Search the hosted backend")
@click.option("--threshold", default=MATCH_THRESHOLD, show_default=True)
@click.option("--limit", default=MATCH_COUNT, show_default=True)
@_reports_errors
def search(query: str, remote: bool, threshold: float, limit: int):
    """Find questions whose titles are similar in meaning to QUERY."""
    from .embeddings import GeminiEmbedder
    from .search import semantic_search

    if remote:
        index = _remote_client()
    else:
        from .vectorstore import QuestionVectorStore

        index = QuestionVectorStore(CHROMA_PATH)

    try:
        matches = semantic_search(query, GeminiEmbedder(), index, threshold=threshold, limit=limit)
    finally:
        if remote:
            index.close()
    if not matches:
        click.echo(f"No questions found matching '{query}'.")
        return
    for m in matches:
        score = f"{m.similarity:.2f}" if m.similarity is not None else "-"
        click.echo(f"{score}  {m.id}  {m.title}")


@cli.command()
def stats():
    """Show statistics about stored questions."""
    if not SQLITE_PATH.exists():
        click.echo("No data found. Import a conversation first:")
        click.echo("  questionhub import conversation.json --tag python")
        return

    from .storage import QuestionStore

    store = QuestionStore(SQLITE_PATH)
    s = store.get_stats()
    store.close()

    click.echo()
    click.echo(click.style("QuestionHub Statistics", bold=True))
    click.echo(f"  Questions:      {s['total_questions']:,}")
    click.echo(f"  Votes:          {s['total_votes']:,}")
    if s["date_range_start"]:
        click.echo(f"  Date range:     {s['date_range_start']} → {s['date_range_end']}")
    if s["top_tags"]:
        click.echo("  Top tags:")
        for t in s["top_tags"]:
            click.echo(f"    {t['tag']}: {t['count']:,}")
    click.echo(f"  Location:       {DATA_DIR}")
    click.echo()


@cli.command()
def serve():
    """Start the MCP server (stdio transport)."""
    if not SQLITE_PATH.exists():
        click.echo("Warning: No questions imported yet.", err=True)

    from .server import mcp

    mcp.run(transport="stdio")


@cli.command()
@click.confirmation_option(prompt="This will delete all local data. Are you sure?")
def reset():
    """Delete all local data and start fresh."""
    if DATA_DIR.exists():
        shutil.rmtree(DATA_DIR)
        click.echo(f"Deleted {DATA_DIR}")
    else:
        click.echo("No data to delete.")
