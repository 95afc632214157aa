"""Pydantic models for the statement converter.

This module defines the transaction record produced by the statement parser, the
uploaded-file reference held by a pipeline session, and the API response models
used to render a session and its transaction table.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.core.utils import format_amount


class Transaction(BaseModel):
    """One line item of a bank statement. Positive amounts are credits, negative are debits."""

    model_config = ConfigDict(frozen=True, strict=True, populate_by_name=True)

    date: str = Field(alias="data", description="Transaction date, DD/MM/YYYY")
    amount: float = Field(alias="valor", allow_inf_nan=False, description="Signed amount in BRL")
    description: str = Field(alias="historico", description="Free-text description")


class PipelineStatus(str, Enum):
    """Status of a conversion pipeline session."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    PARSING = "parsing"
    DONE = "done"
    ERROR = "error"


class SelectedFile(BaseModel):
    """A file chosen for conversion, held in memory for the session only."""

    filename: str
    content_type: str | None = None
    content: bytes = Field(repr=False, exclude=True)

    @property
    def size(self) -> int:
        """Size of the file content in bytes."""
        return len(self.content)


class FileInfo(BaseModel):
    """Public description of the selected file."""

    filename: str
    size: int


class TransactionRow(BaseModel):
    """A transaction as shown in the on-screen table."""

    data: str
    historico: str
    valor: str
    valor_numerico: float
    negativo: bool

    @classmethod
    def from_transaction(cls, txn: Transaction) -> "TransactionRow":
        """Build a display row: upper-cased description, pt-BR amount, debit flag."""
        return cls(
            data=txn.date,
            historico=txn.description.upper(),
            valor=format_amount(txn.amount),
            valor_numerico=txn.amount,
            negativo=txn.amount < 0,
        )


class SessionView(BaseModel):
    """Pydantic model representing the state of a conversion session."""

    session_id: str
    status: PipelineStatus
    created_at: str
    file: FileInfo | None = None
    transactions: list[TransactionRow] = Field(default_factory=list)
    error_message: str | None = None
