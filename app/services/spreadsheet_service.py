"""Spreadsheet export of parsed transactions.

Builds a single-sheet ``.xlsx`` workbook with the column layout expected by the
accounting import (``data, debito, credito, valor, cod.historico, historico``) and
hands it to a :class:`FileSink`, which decides what "downloading" means for the
caller.
"""

import io
from abc import ABC, abstractmethod
from collections.abc import Iterable

import pandas as pd
from pydantic import BaseModel, Field

from app.core.models import Transaction
from app.core.utils import format_amount, get_logger, unique_epoch_millis

logger = get_logger("statement-converter.spreadsheet")

SHEET_NAME = "Extrato"
COLUMNS = ["data", "debito", "credito", "valor", "cod.historico", "historico"]
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
FILENAME_PREFIX = "extrato_convertido_"


class SpreadsheetDocument(BaseModel):
    """A generated workbook ready to be delivered."""

    filename: str
    media_type: str = XLSX_MEDIA_TYPE
    content: bytes = Field(repr=False)


class FileSink(ABC):
    """Destination for exported documents."""

    @abstractmethod
    def deliver(self, document: SpreadsheetDocument) -> None:
        """Deliver a generated document."""


class DownloadSink(FileSink):
    """Keeps the delivered document so an HTTP response can stream it as an attachment."""

    def __init__(self) -> None:
        """Initialize an empty sink."""
        self.document: SpreadsheetDocument | None = None

    def deliver(self, document: SpreadsheetDocument) -> None:
        """Hold the document for the response."""
        self.document = document


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Lay transactions out in the export column order, one row per record."""
    rows = [
        {
            "data": txn.date,
            "debito": "",
            "credito": "",
            "valor": format_amount(txn.amount),
            "cod.historico": "",
            "historico": txn.description.upper(),
        }
        for txn in transactions
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def build_workbook(transactions: Iterable[Transaction]) -> bytes:
    """Render transactions as xlsx bytes with a single ``Extrato`` sheet."""
    frame = transactions_to_frame(transactions)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=SHEET_NAME, index=False)
    return buffer.getvalue()


def export_filename() -> str:
    """Return a download name unique to this invocation."""
    return f"{FILENAME_PREFIX}{unique_epoch_millis()}.xlsx"


def export_transactions(transactions: list[Transaction], sink: FileSink) -> SpreadsheetDocument:
    """Build the workbook for ``transactions`` and deliver it to ``sink``.

    An empty list produces a header-only sheet.
    """
    document = SpreadsheetDocument(filename=export_filename(), content=build_workbook(transactions))
    logger.info(f"Exporting {len(transactions)} transaction(s) as {document.filename}")
    sink.deliver(document)
    return document
