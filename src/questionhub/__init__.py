"""QuestionHub: share, tag and search AI chatbot conversations."""

__version__ = "0.1.0"
