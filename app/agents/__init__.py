"""Agents package: provides the base class and the LLM agent that parses bank statements."""

from .base import BaseAgent  # noqa: F401
from .statement_agent import StatementAgent, StatementServiceError  # noqa: F401
