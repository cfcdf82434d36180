"""Central configuration for paths and constants."""

import os
from pathlib import Path

# Data directory, override with QUESTIONHUB_DATA_DIR env var
DATA_DIR = Path(
    os.environ.get("QUESTIONHUB_DATA_DIR", str(Path.home() / ".questionhub"))
)

# Local storage paths
SQLITE_PATH = DATA_DIR / "questions.db"
CHROMA_PATH = DATA_DIR / "chroma"
SESSION_PATH = DATA_DIR / "session.json"

# Hosted backend
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
HTTP_TIMEOUT = float(os.environ.get("QUESTIONHUB_HTTP_TIMEOUT", "30"))
QUESTIONS_TABLE = "questions"
MATCH_RPC = "match_questions"

# Embeddings and semantic search
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
EMBED_MODEL = os.environ.get("QUESTIONHUB_EMBED_MODEL", "gemini-embedding-exp-03-07")
EMBED_DELAY = float(os.environ.get("QUESTIONHUB_EMBED_DELAY", "0.5"))  # seconds between items
MATCH_THRESHOLD = float(os.environ.get("QUESTIONHUB_MATCH_THRESHOLD", "0.7"))
MATCH_COUNT = int(os.environ.get("QUESTIONHUB_MATCH_COUNT", "5"))

# ChromaDB
COLLECTION_NAME = "questions"

# Transcript format
VENDOR_NAME = "DeepSeek"
USER_ROLE = "USER"
ASSISTANT_ROLE = "ASSISTANT"
CAPTURE_URL_MARKER = "history_messages?chat_session_id"
CACHE_VERSION_PARAM = "&cache_version="

# Placeholders
UNTITLED_CONVERSATION = "Untitled Conversation"
UNTITLED_CHAT = "Untitled Chat"
MISSING_ANSWER = "No answer provided for this question."

# Tagging
MAX_TAGS = 5
DEFAULT_CAPTURE_TAGS = ["deepseek", "ai-conversation"]
