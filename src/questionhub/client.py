"""HTTP client for the hosted QuestionHub backend (Supabase auth, REST and RPC)."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from .config import HTTP_TIMEOUT, MATCH_RPC, QUESTIONS_TABLE
from .errors import AuthenticationRequired, ExternalServiceFailure, StorageFailure
from .models import AuthSession, NewQuestion, QuestionMatch, StoredQuestion

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or fallback
    if isinstance(body, dict):
        return body.get("error_description") or body.get("message") or body.get("msg") or fallback
    return fallback


def load_session(path: Path) -> AuthSession | None:
    """Read a saved sign-in session, or None when there is none."""
    if not path.exists():
        return None
    try:
        return AuthSession.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError:
        logger.warning("Ignoring unreadable session file %s", path)
        return None


def save_session(path: Path, session: AuthSession) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(session.model_dump_json(), encoding="utf-8")


class SupabaseClient:
    """Talks to the hosted auth, table and RPC endpoints.

    The same client serves file imports, captured-response uploads, the batch
    embedding job and semantic search. Writes to the questions table need a
    signed-in session; reads and RPC calls use the project key.
    """

    def __init__(
        self,
        url: str,
        key: str,
        session: AuthSession | None = None,
        http: httpx.Client | None = None,
    ):
        if not url or not key:
            raise ExternalServiceFailure(
                "Hosted backend is not configured (set SUPABASE_URL and SUPABASE_KEY)"
            )
        self.key = key
        self.session = session
        self.http = http or httpx.Client(timeout=httpx.Timeout(HTTP_TIMEOUT))
        self.base_url = url.rstrip("/")

    def _headers(self, bearer: str | None = None, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "apikey": self.key,
            "Authorization": f"Bearer {bearer or self.key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def sign_in(self, email: str, password: str) -> AuthSession:
        """Exchange email and password for a session and keep it on the client."""
        try:
            response = self.http.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": "password"},
                headers=self._headers(),
                json={"email": email, "password": password},
            )
        except httpx.HTTPError as exc:
            raise ExternalServiceFailure(f"Sign in failed: {exc}") from exc

        if response.is_error:
            raise AuthenticationRequired(_error_message(response, "Sign in failed"))

        data = response.json()
        user = data.get("user") or {}
        self.session = AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            user_id=user.get("id", ""),
            email=user.get("email", email),
        )
        logger.info("Signed in as %s", self.session.email)
        return self.session

    def insert_question(self, question: NewQuestion) -> StoredQuestion:
        if self.session is None:
            raise AuthenticationRequired("Authentication required")

        try:
            response = self.http.post(
                f"{self.base_url}/rest/v1/{QUESTIONS_TABLE}",
                headers=self._headers(self.session.access_token, prefer="return=representation"),
                json=question.model_dump(exclude_none=True),
            )
        except httpx.HTTPError as exc:
            raise StorageFailure(f"Error submitting question: {exc}") from exc

        if response.status_code == 401:
            raise AuthenticationRequired(_error_message(response, "Session expired, sign in again"))
        if response.is_error:
            raise StorageFailure(
                _error_message(response, f"Failed to insert into {QUESTIONS_TABLE}")
            )

        rows = response.json()
        if not rows:
            raise StorageFailure("Insert returned no row")
        return StoredQuestion.model_validate(rows[0])

    def questions_without_embeddings(self) -> list[QuestionMatch]:
        """Questions whose title embedding has not been computed yet."""
        response = self._request(
            "GET",
            f"/rest/v1/{QUESTIONS_TABLE}",
            params={"select": "id,title", "title_embedding": "is.null"},
        )
        return [QuestionMatch(id=str(r["id"]), title=r["title"]) for r in response.json()]

    def upsert_embedding(self, question_id: str, title: str, embedding: list[float]) -> None:
        self._request(
            "PATCH",
            f"/rest/v1/{QUESTIONS_TABLE}",
            params={"id": f"eq.{question_id}"},
            json={"title_embedding": embedding},
            prefer="return=minimal",
        )

    def match_questions(
        self,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
    ) -> list[QuestionMatch]:
        """Call the similarity-search RPC; rows come back best match first."""
        response = self._request(
            "POST",
            f"/rest/v1/rpc/{MATCH_RPC}",
            json={
                "query_embedding": query_embedding,
                "match_threshold": match_threshold,
                "match_count": match_count,
            },
            prefer="return=representation",
        )
        return [
            QuestionMatch(id=str(r["id"]), title=r.get("title", ""), similarity=r.get("similarity"))
            for r in response.json()
        ]

    def _request(self, method: str, path: str, prefer: str | None = None, **kwargs) -> httpx.Response:
        try:
            response = self.http.request(
                method, f"{self.base_url}{path}", headers=self._headers(prefer=prefer), **kwargs
            )
        except httpx.HTTPError as exc:
            raise ExternalServiceFailure(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            raise ExternalServiceFailure(
                _error_message(response, f"{method} {path} returned {response.status_code}")
            )
        return response

    def close(self):
        self.http.close()
