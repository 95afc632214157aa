"""FastAPI dependencies for DI (settings, statement agent, session store).

This module provides dependency injection helpers so the API endpoints can be tested
with a fake agent and a fresh session store.
"""

from groq import AsyncGroq

from app.agents.statement_agent import StatementAgent
from app.core.settings import get_settings
from app.workers.session_store import SessionStore, get_session_store


_llm_client: AsyncGroq | None = None


def get_llm_client() -> AsyncGroq:
    """Provide one Groq client for the whole process; its connection pool is shared by all sessions."""
    global _llm_client  # noqa: PLW0603
    if _llm_client is None:
        _llm_client = AsyncGroq(api_key=get_settings().groq_api_key)
    return _llm_client


def get_agent() -> StatementAgent:
    """Provide a StatementAgent instance for dependency injection."""
    return StatementAgent(get_llm_client(), get_settings())


def get_store() -> SessionStore:
    """Provide the session store for dependency injection."""
    return get_session_store()
