"""PDF text extraction for uploaded bank statements.

Text is read with PyMuPDF page by page, in page order. Within a page, the text runs
(spans) are joined by a single space; every page is terminated by a newline.
"""

import asyncio

import pymupdf

from app.core.utils import get_logger

logger = get_logger("statement-converter.pdf")


class DocumentParseError(Exception):
    """Raised when the uploaded content is not a readable PDF."""


def _page_runs(page: pymupdf.Page) -> list[str]:
    """Return the text runs of a page in content order."""
    runs = []
    for block in page.get_text("dict")["blocks"]:
        # image blocks have no lines
        for line in block.get("lines", []):
            runs.extend(span["text"] for span in line["spans"])
    return runs


def _open_document(content: bytes) -> pymupdf.Document:
    try:
        doc = pymupdf.open(stream=content, filetype="pdf")
    except Exception as exc:
        msg = f"Não foi possível ler o PDF: {exc}"
        raise DocumentParseError(msg) from exc
    if doc.needs_pass:
        doc.close()
        msg = "Não foi possível ler o PDF: o documento está protegido por senha."
        raise DocumentParseError(msg)
    if doc.page_count == 0:
        doc.close()
        msg = "Não foi possível ler o PDF: o documento não possui páginas."
        raise DocumentParseError(msg)
    return doc


def extract_text_sync(content: bytes) -> str:
    """Extract the text of every page of a PDF, in page order."""
    doc = _open_document(content)
    with doc:
        logger.info(f"Extracting text from {doc.page_count} page(s)")
        pages = []
        for number, page in enumerate(doc, start=1):
            try:
                runs = _page_runs(page)
            except Exception as exc:
                msg = f"Não foi possível ler a página {number} do PDF: {exc}"
                raise DocumentParseError(msg) from exc
            pages.append(" ".join(runs) + "\n")
    text = "".join(pages)
    logger.info(f"Extracted {len(text)} characters")
    return text


async def extract_text(content: bytes) -> str:
    """Extract the text of a PDF without blocking the event loop.

    Raises:
        DocumentParseError: the content is corrupt, empty, encrypted, or not a PDF.
    """
    return await asyncio.to_thread(extract_text_sync, content)
