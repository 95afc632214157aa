"""Shared fixtures and fakes for the statement converter tests."""

import os

import pymupdf
import pytest

os.environ.setdefault("GROQ_API_KEY", "test-key")

from app.agents.base import BaseAgent  # noqa: E402
from app.core.models import Transaction  # noqa: E402


def make_pdf(pages: list[str]) -> bytes:
    """Build an in-memory PDF with one text line per page."""
    doc = pymupdf.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class FakeAgent(BaseAgent):
    """Agent returning canned transactions, or raising a canned error."""

    def __init__(self, transactions: list[Transaction] | None = None, error: Exception | None = None) -> None:
        """Store the canned answer."""
        self.transactions = transactions or []
        self.error = error
        self.texts: list[str] = []

    async def parse_statement(self, text: str) -> list[Transaction]:
        """Record the text and return the canned answer."""
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return list(self.transactions)


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """Two records: a debit and a credit."""
    return [
        Transaction(date="01/03/2025", amount=-1500.5, description="Pix enviado Maria"),
        Transaction(date="02/03/2025", amount=200.0, description="Depósito em dinheiro"),
    ]
