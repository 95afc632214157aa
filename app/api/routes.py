"""FastAPI endpoints for the statement converter API.

This module defines the routes for creating a conversion session, uploading a PDF
statement, running the extract/parse pipeline, reading the transaction table, and
downloading the converted spreadsheet. It wires together the session store, the
pipeline controller, and the spreadsheet exporter.
"""

import io

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, UploadFile
from fastapi.responses import StreamingResponse

from app.api.dependencies import get_agent, get_store
from app.core.models import SelectedFile, SessionView
from app.core.utils import get_logger
from app.services.spreadsheet_service import DownloadSink, export_transactions
from app.workers.pipeline import PipelineBusyError, PipelineController
from app.workers.session_store import SessionNotFoundError, SessionStore

router = APIRouter()
logger = get_logger("statement-converter.api")

PDF_MEDIA_TYPE = "application/pdf"
NOTHING_TO_EXPORT = "Nenhuma transação para exportar"

NOT_FOUND_RESPONSE = {
    "description": "Session not found.",
    "content": {"application/json": {"example": {"detail": "Session not found"}}},
}
BUSY_RESPONSE = {
    "description": "A run is in progress for this session.",
    "content": {"application/json": {"example": {"detail": "Já existe um processamento em andamento para esta sessão."}}},
}


def _controller(store: SessionStore, session_id: str) -> PipelineController:
    try:
        return store.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc


@router.post(
    "/sessions",
    status_code=201,
    response_model=SessionView,
    summary="Create a conversion session",
    description=(
        "Create an empty conversion session. The returned `session_id` is used to upload a PDF, "
        "process it, read the transaction table, and download the spreadsheet. "
        "Sessions are kept in memory only."
    ),
    response_description="The new idle session.",
)
async def create_session(
    agent: object = Depends(get_agent),
    store: SessionStore = Depends(get_store),
) -> SessionView:
    """Create a new idle session."""
    controller = store.create(agent)
    logger.info(f"Created session {controller.session_id}")
    return controller.view()


@router.get(
    "/sessions/{session_id}",
    response_model=SessionView,
    summary="Get session status and transactions",
    description=(
        "Return the session status (`idle`, `extracting`, `parsing`, `done`, `error`), the selected file, "
        "the error message of a failed run, and the transaction table. Each row carries the date, the "
        "upper-cased description, the pt-BR formatted amount, and a `negativo` flag for debits."
    ),
    responses={404: NOT_FOUND_RESPONSE},
)
async def get_session(session_id: str, store: SessionStore = Depends(get_store)) -> SessionView:
    """Get the state of a session."""
    return _controller(store, session_id).view()


@router.post(
    "/sessions/{session_id}/file",
    response_model=SessionView,
    summary="Select the PDF statement to convert",
    description=(
        "Upload one PDF bank statement (multipart form field `file`). Replaces any previously selected "
        "file and clears the previous transactions.\n\n"
        "- 400 Bad Request: the file is not a PDF.\n"
        "- 409 Conflict: a run is in progress."
    ),
    responses={
        400: {
            "description": "Only PDF files accepted.",
            "content": {"application/json": {"example": {"detail": "Only PDF files accepted"}}},
        },
        404: NOT_FOUND_RESPONSE,
        409: BUSY_RESPONSE,
    },
)
async def select_file(session_id: str, file: UploadFile, store: SessionStore = Depends(get_store)) -> SessionView:
    """Select the file for the next run."""
    controller = _controller(store, session_id)
    filename = file.filename or ""
    logger.info(f"Received upload for session {session_id}: filename={filename}")
    if not (filename.lower().endswith(".pdf") or file.content_type == PDF_MEDIA_TYPE):
        logger.warning(f"Rejected file (not PDF): {filename}")
        raise HTTPException(400, "Only PDF files accepted")
    content = await file.read()
    try:
        controller.select_file(SelectedFile(filename=filename, content_type=file.content_type, content=content))
    except PipelineBusyError as exc:
        raise HTTPException(409, str(exc)) from exc
    return controller.view()


@router.post(
    "/sessions/{session_id}/process",
    status_code=202,
    response_model=SessionView,
    summary="Extract and parse the selected statement",
    description=(
        "Start the conversion of the selected file: text extraction, then LLM parsing. The run happens in "
        "the background; poll `GET /sessions/{session_id}` until the status is `done` or `error`.\n\n"
        "- 202 Accepted: the run started.\n"
        "- 200 OK: no file selected, nothing happened.\n"
        "- 409 Conflict: a run is already in progress."
    ),
    responses={200: {"description": "No file selected; state unchanged."}, 404: NOT_FOUND_RESPONSE, 409: BUSY_RESPONSE},
)
async def process(
    session_id: str,
    background_tasks: BackgroundTasks,
    response: Response,
    store: SessionStore = Depends(get_store),
) -> SessionView:
    """Start a run for the selected file."""
    controller = _controller(store, session_id)
    try:
        started = controller.begin()
    except PipelineBusyError as exc:
        raise HTTPException(409, str(exc)) from exc
    if started:
        background_tasks.add_task(controller.run)
        logger.info(f"Background run started: session_id={session_id}")
    else:
        response.status_code = 200
    return controller.view()


@router.get(
    "/sessions/{session_id}/export",
    response_class=StreamingResponse,
    summary="Download the transactions as a spreadsheet",
    description=(
        "Download the transactions of a finished run as an `.xlsx` workbook with a single `Extrato` sheet "
        "and the columns `data, debito, credito, valor, cod.historico, historico`. The file is named "
        "`extrato_convertido_<epoch-millis>.xlsx`.\n\n"
        "- 409 Conflict: the session has no transactions."
    ),
    responses={
        200: {"description": "Spreadsheet download."},
        404: NOT_FOUND_RESPONSE,
        409: {
            "description": "Nothing to export.",
            "content": {"application/json": {"example": {"detail": NOTHING_TO_EXPORT}}},
        },
    },
)
async def export(session_id: str, store: SessionStore = Depends(get_store)) -> StreamingResponse:
    """Download the spreadsheet for the session's transactions."""
    controller = _controller(store, session_id)
    transactions = controller.state.transactions
    if not transactions:
        raise HTTPException(409, NOTHING_TO_EXPORT)
    sink = DownloadSink()
    document = export_transactions(transactions, sink)
    return StreamingResponse(
        io.BytesIO(document.content),
        media_type=document.media_type,
        headers={"Content-Disposition": f"attachment; filename={document.filename}"},
    )


@router.delete(
    "/sessions/{session_id}",
    status_code=204,
    summary="Discard a session",
    description="Reset the session and drop it from memory. Refused with 409 while a run is in progress.",
    responses={404: NOT_FOUND_RESPONSE, 409: BUSY_RESPONSE},
)
async def delete_session(session_id: str, store: SessionStore = Depends(get_store)) -> Response:
    """Discard a session."""
    try:
        store.discard(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    except PipelineBusyError as exc:
        raise HTTPException(409, str(exc)) from exc
    return Response(status_code=204)


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
