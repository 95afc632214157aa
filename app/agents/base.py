"""Base agent abstraction for statement parsing agents.

This module defines the abstract base class for agents that turn extracted statement
text into transaction records.
"""

from abc import ABC, abstractmethod

from app.core.models import Transaction


class BaseAgent(ABC):
    """Abstract base class for all agents."""

    @abstractmethod
    async def parse_statement(self, text: str) -> list[Transaction]:
        """Extract transactions from statement text; an unusable answer yields an empty list."""
