"""Render a validated transcript as a Markdown document."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from .config import USER_ROLE, UNTITLED_CHAT, VENDOR_NAME
from .errors import InvalidFormat
from .models import SearchResult, Transcript, TranscriptMessage

CITATION_RE = re.compile(r"\[citation:(\d+)\]")
MATH_BLOCK_RE = re.compile(r"\$\$(.*?)\$\$", re.DOTALL)
# Characters that cannot appear in a download filename
FILENAME_RESERVED_RE = re.compile(r'[/\\?%*:|"<>]')


def _iso(ts: float | None, now: datetime | None = None) -> str:
    """Format epoch seconds as a millisecond ISO-8601 instant, falling back to now."""
    if ts is None:
        moment = now or datetime.now(timezone.utc)
    else:
        try:
            moment = datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, ValueError, OSError) as exc:
            raise InvalidFormat(f"Invalid timestamp: {ts}") from exc
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _number(value: float | None) -> str:
    if value is None:
        return "None"
    return str(int(value)) if float(value).is_integer() else str(value)


def link_citations(content: str, search_results: list[SearchResult]) -> str:
    """Turn ``[citation:N]`` markers into Markdown links.

    Markers without a matching ``cite_index`` are left untouched.
    """
    citations = {
        result.cite_index: result.url
        for result in search_results
        if result.cite_index is not None
    }

    def _replace(match: re.Match) -> str:
        url = citations.get(int(match.group(1)))
        return f" [{match.group(1)}]({url})" if url else match.group(0)

    content = CITATION_RE.sub(_replace, content)
    content = re.sub(r"\s+,", ",", content)
    return re.sub(r"\s+\.", ".", content)


def reformat_math(content: str) -> str:
    """Put multi-line ``$$`` blocks on their own lines; single-line blocks stay inline."""
    # A multi-line block absorbs one newline on each side so re-running is a no-op
    parts: list[str] = []
    pos = 0
    for match in MATH_BLOCK_RE.finditer(content):
        before = content[pos:match.start()]
        formula = match.group(1)
        pos = match.end()
        if "\n" not in formula:
            parts.append(before + match.group(0))
            continue
        if before.endswith("\n"):
            before = before[:-1]
        body = formula.strip("\n")
        parts.append(f"{before}\n$$\n{body}\n$$\n")
        if content.startswith("\n", pos):
            pos += 1
    parts.append(content[pos:])
    return "".join(parts)


def _file_blocks(message: TranscriptMessage, now: datetime | None) -> list[str]:
    blocks: list[str] = []
    for file in message.files or []:
        blocks.append("### File Information")
        blocks.append(f"- Name: {file.file_name}")
        blocks.append(f"- Size: {_number(file.file_size)} bytes")
        blocks.append(f"- Token Usage: {_number(file.token_usage)}")
        blocks.append(f"- Upload Time: {_iso(file.inserted_at, now)}")
        blocks.append(f"- Last Update: {_iso(file.updated_at, now)}\n")
    return blocks


def render_message(message: TranscriptMessage, now: datetime | None = None) -> list[str]:
    """Render one message as header, timestamp, file info and processed content."""
    role = "Human" if message.role == USER_ROLE else "Assistant"
    blocks = [f"### {role}", f"*{_iso(message.inserted_at, now)}*\n"]
    blocks.extend(_file_blocks(message, now))

    content = message.content or ""

    if message.search_results:
        content = link_citations(content, message.search_results)

    if message.thinking_content:
        elapsed = message.thinking_elapsed_secs
        thinking_time = f"({_number(elapsed)}s)" if elapsed else ""
        content += f"\n\n**Thinking Process {thinking_time}:**\n{message.thinking_content}"

    content = reformat_math(content)
    blocks.append(content + "\n")
    return blocks


def render_markdown(
    transcript: Transcript,
    vendor: str = VENDOR_NAME,
    now: datetime | None = None,
) -> str:
    """Render the whole transcript, prefixed by a title line with the token total."""
    title = transcript.session.title or UNTITLED_CHAT
    total_tokens = sum(m.accumulated_token_usage or 0 for m in transcript.messages)

    blocks = [f"# {vendor} - {title} (Total Tokens: {_number(total_tokens)})\n"]
    for message in transcript.messages:
        blocks.extend(render_message(message, now))

    return "\n".join(blocks)


def download_filename(
    title: str | None,
    ext: str,
    vendor: str = VENDOR_NAME,
    now: datetime | None = None,
) -> str:
    """Build ``"<vendor> - <title>_<timestamp>.<ext>"`` with a colon-free timestamp."""
    moment = now or datetime.now(timezone.utc)
    timestamp = moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    chat_name = FILENAME_RESERVED_RE.sub("-", f"{vendor} - {title or UNTITLED_CHAT}")
    return f"{chat_name}_{timestamp}.{ext}"
