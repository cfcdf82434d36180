"""SQLite question store with FTS5 full-text search."""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from .errors import StorageFailure
from .models import NewQuestion, StoredQuestion

ORDER_BY = {
    "recent": "q.created_at DESC",
    "votes": "q.votes DESC, q.created_at DESC",
}
UPDATABLE_FIELDS = {"title", "content", "answer", "tags", "url"}
JSON_FIELDS = {"content", "answer", "tags"}


class QuestionStore:
    """SQLite-backed storage for submitted questions and their votes."""

    def __init__(self, db_path: Path):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._migrate()

    def _migrate(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS questions (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                answer TEXT NOT NULL,
                tags TEXT NOT NULL,
                author_id TEXT NOT NULL,
                url TEXT,
                votes INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS votes (
                question_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                value INTEGER NOT NULL,
                PRIMARY KEY (question_id, user_id),
                FOREIGN KEY (question_id) REFERENCES questions(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_questions_created
                ON questions(created_at);

            CREATE VIRTUAL TABLE IF NOT EXISTS questions_fts USING fts5(
                title,
                content,
                answer,
                content='questions',
                content_rowid='rowid',
                tokenize='porter unicode61'
            );

            CREATE TRIGGER IF NOT EXISTS questions_ai
                AFTER INSERT ON questions BEGIN
                    INSERT INTO questions_fts(rowid, title, content, answer)
                    VALUES (new.rowid, new.title, new.content, new.answer);
                END;

            CREATE TRIGGER IF NOT EXISTS questions_ad
                AFTER DELETE ON questions BEGIN
                    INSERT INTO questions_fts(questions_fts, rowid, title, content, answer)
                    VALUES ('delete', old.rowid, old.title, old.content, old.answer);
                END;

            CREATE TRIGGER IF NOT EXISTS questions_au
                AFTER UPDATE ON questions BEGIN
                    INSERT INTO questions_fts(questions_fts, rowid, title, content, answer)
                    VALUES ('delete', old.rowid, old.title, old.content, old.answer);
                    INSERT INTO questions_fts(rowid, title, content, answer)
                    VALUES (new.rowid, new.title, new.content, new.answer);
                END;
        """)
        self.conn.commit()

    def insert_question(self, question: NewQuestion) -> StoredQuestion:
        """Insert one question and return the stored row with its generated id."""
        question_id = str(uuid.uuid4())
        now = _now()
        try:
            with self.conn:
                self.conn.execute(
                    """INSERT INTO questions (id, title, content, answer, tags,
                       author_id, url, votes, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)""",
                    (question_id, question.title, json.dumps(question.content),
                     json.dumps(question.answer), json.dumps(question.tags),
                     question.author_id, question.url, now, now),
                )
        except sqlite3.Error as exc:
            raise StorageFailure(f"Error submitting question: {exc}") from exc
        return self.get_question(question_id)

    def get_question(self, question_id: str) -> StoredQuestion | None:
        row = self.conn.execute(
            "SELECT * FROM questions WHERE id = ?", (question_id,)
        ).fetchone()
        return _to_question(row) if row else None

    def list_questions(
        self,
        order: str = "recent",
        tag: str | None = None,
        author_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[StoredQuestion]:
        """List questions by recency or vote count, optionally filtered by tag or author."""
        if order not in ORDER_BY:
            raise ValueError(f"Unknown order: {order}")

        clauses: list[str] = []
        params: list = []
        if tag:
            clauses.append("EXISTS (SELECT 1 FROM json_each(q.tags) WHERE value = ?)")
            params.append(tag)
        if author_id:
            clauses.append("q.author_id = ?")
            params.append(author_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        rows = self.conn.execute(
            f"""SELECT q.* FROM questions q {where}
                ORDER BY {ORDER_BY[order]}
                LIMIT ? OFFSET ?""",
            (*params, limit, offset),
        ).fetchall()
        return [_to_question(r) for r in rows]

    def update_question(self, question_id: str, **fields) -> StoredQuestion | None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_question(question_id)

        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [json.dumps(v) if k in JSON_FIELDS else v for k, v in fields.items()]
        try:
            with self.conn:
                self.conn.execute(
                    f"UPDATE questions SET {assignments}, updated_at = ? WHERE id = ?",
                    (*values, _now(), question_id),
                )
        except sqlite3.Error as exc:
            raise StorageFailure(f"Error updating question: {exc}") from exc
        return self.get_question(question_id)

    def delete_question(self, question_id: str) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM questions WHERE id = ?", (question_id,))
        return cursor.rowcount > 0

    def vote(self, question_id: str, user_id: str, value: int = 1) -> int:
        """Record a user's up (+1) or down (-1) vote, replacing any earlier vote.

        Returns the question's new vote total.
        """
        if value not in (1, -1):
            raise ValueError("Vote value must be 1 or -1")
        if self.get_question(question_id) is None:
            raise StorageFailure(f"Question not found: {question_id}")

        with self.conn:
            self.conn.execute(
                """INSERT INTO votes (question_id, user_id, value) VALUES (?, ?, ?)
                   ON CONFLICT(question_id, user_id) DO UPDATE SET value = excluded.value""",
                (question_id, user_id, value),
            )
            self.conn.execute(
                """UPDATE questions SET votes =
                   (SELECT COALESCE(SUM(value), 0) FROM votes WHERE question_id = ?)
                   WHERE id = ?""",
                (question_id, question_id),
            )
        return self.conn.execute(
            "SELECT votes FROM questions WHERE id = ?", (question_id,)
        ).fetchone()[0]

    def search_keyword(self, query: str, limit: int = 20) -> list[dict]:
        """Full-text search using FTS5 MATCH."""
        rows = self.conn.execute(
            """SELECT q.id, q.title, q.created_at, q.votes,
                      snippet(questions_fts, 1, '>>>', '<<<', '...', 40) as snippet,
                      rank
               FROM questions_fts fts
               JOIN questions q ON q.rowid = fts.rowid
               WHERE questions_fts MATCH ?
               ORDER BY rank
               LIMIT ?""",
            (query, limit),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_stats(self) -> dict:
        """Get overall database statistics."""
        question_count = self.conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0]
        vote_count = self.conn.execute("SELECT COUNT(*) FROM votes").fetchone()[0]

        date_range = self.conn.execute(
            "SELECT MIN(created_at), MAX(created_at) FROM questions"
        ).fetchone()

        tags = self.conn.execute(
            """SELECT j.value AS tag, COUNT(*) AS cnt
               FROM questions q, json_each(q.tags) j
               GROUP BY j.value ORDER BY cnt DESC, tag LIMIT 10"""
        ).fetchall()

        return {
            "total_questions": question_count,
            "total_votes": vote_count,
            "date_range_start": date_range[0][:10] if date_range[0] else None,
            "date_range_end": date_range[1][:10] if date_range[1] else None,
            "top_tags": [{"tag": r[0], "count": r[1]} for r in tags],
        }

    def close(self):
        self.conn.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_question(row: sqlite3.Row) -> StoredQuestion:
    data = dict(row)
    for field in JSON_FIELDS:
        data[field] = json.loads(data[field])
    return StoredQuestion.model_validate(data)
