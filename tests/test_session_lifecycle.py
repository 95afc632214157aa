"""Integration tests for the session lifecycle: create, upload, process, read, export."""

import io
import re
from collections.abc import Iterator

import openpyxl
import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_agent, get_store
from app.core.models import Transaction
from app.services.spreadsheet_service import SHEET_NAME, XLSX_MEDIA_TYPE
from app.workers.pipeline import NO_TRANSACTIONS_MESSAGE
from app.workers.session_store import SessionStore
from main import app
from tests.conftest import FakeAgent, make_pdf

HTTP_200_OK = 200
HTTP_201_CREATED = 201
HTTP_202_ACCEPTED = 202
HTTP_204_NO_CONTENT = 204
HTTP_400_BAD_REQUEST = 400
HTTP_404_NOT_FOUND = 404
HTTP_409_CONFLICT = 409

STATEMENT_PDF = make_pdf(["01/03/2025 PIX ENVIADO MARIA -1500,50", "02/03/2025 DEPOSITO EM DINHEIRO 200,00"])


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self) -> None:
        """Start at zero."""
        self.now = 0.0

    def __call__(self) -> float:
        """Return the current time."""
        return self.now


@pytest.fixture
def agent(sample_transactions: list[Transaction]) -> FakeAgent:
    """Agent answering with the sample transactions."""
    return FakeAgent(sample_transactions)


@pytest.fixture
def clock() -> ManualClock:
    """Controllable time source for session expiry."""
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> SessionStore:
    """Fresh session store with a one-minute expiry."""
    return SessionStore(ttl_seconds=60, clock=clock)


@pytest.fixture
def client(agent: FakeAgent, store: SessionStore) -> Iterator[TestClient]:
    """Client with a fake agent and a fresh session store."""
    app.dependency_overrides[get_agent] = lambda: agent
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_session(client: TestClient) -> str:
    """Create a session and return its id."""
    response = client.post("/sessions")
    if response.status_code != HTTP_201_CREATED:
        msg = f"Expected status {HTTP_201_CREATED}, got {response.status_code}"
        raise AssertionError(msg)
    body = response.json()
    if body["status"] != "idle" or body["transactions"]:
        msg = f"Expected an empty idle session, got {body}"
        raise AssertionError(msg)
    return body["session_id"]


def upload(client: TestClient, session_id: str, content: bytes, filename: str = "extrato.pdf") -> dict:
    """Upload a file to a session."""
    files = {"file": (filename, content, "application/pdf")}
    response = client.post(f"/sessions/{session_id}/file", files=files)
    if response.status_code != HTTP_200_OK:
        msg = f"Expected status {HTTP_200_OK}, got {response.status_code}: {response.text}"
        raise AssertionError(msg)
    return response.json()


def process(client: TestClient, session_id: str) -> dict:
    """Run the pipeline and return the session state after the background run."""
    response = client.post(f"/sessions/{session_id}/process")
    if response.status_code != HTTP_202_ACCEPTED:
        msg = f"Expected status {HTTP_202_ACCEPTED}, got {response.status_code}"
        raise AssertionError(msg)
    if response.json()["status"] != "extracting":
        msg = f"Expected the run to start in 'extracting', got {response.json()['status']}"
        raise AssertionError(msg)
    return client.get(f"/sessions/{session_id}").json()


def test_full_conversion(client: TestClient, agent: FakeAgent) -> None:
    """Upload a statement, process it, read the table, and download the spreadsheet."""
    session_id = create_session(client)
    body = upload(client, session_id, STATEMENT_PDF)
    if body["status"] != "idle" or body["file"]["filename"] != "extrato.pdf":
        msg = f"Expected an idle session with the file selected, got {body}"
        raise AssertionError(msg)

    state = process(client, session_id)
    if state["status"] != "done":
        msg = f"Expected status 'done', got {state['status']}: {state['error_message']}"
        raise AssertionError(msg)
    if "PIX ENVIADO MARIA" not in agent.texts[0] or "DEPOSITO EM DINHEIRO" not in agent.texts[0]:
        msg = f"Expected the PDF text to reach the agent, got {agent.texts}"
        raise AssertionError(msg)
    rows = state["transactions"]
    if [(row["data"], row["historico"], row["valor"], row["negativo"]) for row in rows] != [
        ("01/03/2025", "PIX ENVIADO MARIA", "-1500,50", True),
        ("02/03/2025", "DEPÓSITO EM DINHEIRO", "200,00", False),
    ]:
        msg = f"Unexpected table rows: {rows}"
        raise AssertionError(msg)

    download = client.get(f"/sessions/{session_id}/export")
    if download.status_code != HTTP_200_OK:
        msg = f"Expected status {HTTP_200_OK}, got {download.status_code}"
        raise AssertionError(msg)
    if download.headers["content-type"] != XLSX_MEDIA_TYPE:
        msg = f"Unexpected content type: {download.headers['content-type']}"
        raise AssertionError(msg)
    if not re.search(r"filename=extrato_convertido_\d+\.xlsx$", download.headers["content-disposition"]):
        msg = f"Unexpected content disposition: {download.headers['content-disposition']}"
        raise AssertionError(msg)
    sheet = openpyxl.load_workbook(io.BytesIO(download.content))[SHEET_NAME]
    if sheet.max_row != len(rows) + 1:
        msg = f"Expected {len(rows) + 1} rows in the sheet, got {sheet.max_row}"
        raise AssertionError(msg)


def test_statement_without_transactions(client: TestClient, agent: FakeAgent) -> None:
    """A PDF with no statement content ends in error with the fixed message."""
    agent.transactions = []
    session_id = create_session(client)
    upload(client, session_id, make_pdf(["Lorem ipsum dolor sit amet"]))
    state = process(client, session_id)
    if state["status"] != "error" or state["error_message"] != NO_TRANSACTIONS_MESSAGE:
        msg = f"Expected the no-transactions error, got {state}"
        raise AssertionError(msg)
    response = client.get(f"/sessions/{session_id}/export")
    if response.status_code != HTTP_409_CONFLICT:
        msg = f"Expected status {HTTP_409_CONFLICT} when exporting nothing, got {response.status_code}"
        raise AssertionError(msg)


def test_corrupted_pdf(client: TestClient, agent: FakeAgent) -> None:
    """A corrupted file renamed to .pdf ends in error with an extraction message."""
    session_id = create_session(client)
    upload(client, session_id, b"this is a spreadsheet, not a pdf", filename="planilha.pdf")
    state = process(client, session_id)
    if state["status"] != "error" or "PDF" not in state["error_message"]:
        msg = f"Expected an extraction error, got {state}"
        raise AssertionError(msg)
    if agent.texts:
        msg = "The agent must not be called for an unreadable file"
        raise AssertionError(msg)


def test_non_pdf_upload_is_rejected(client: TestClient) -> None:
    """Only PDF uploads are accepted."""
    session_id = create_session(client)
    files = {"file": ("extrato.csv", b"data,valor\n", "text/csv")}
    response = client.post(f"/sessions/{session_id}/file", files=files)
    if response.status_code != HTTP_400_BAD_REQUEST:
        msg = f"Expected status {HTTP_400_BAD_REQUEST}, got {response.status_code}"
        raise AssertionError(msg)


def test_process_without_file_is_a_noop(client: TestClient) -> None:
    """Processing an empty session changes nothing."""
    session_id = create_session(client)
    response = client.post(f"/sessions/{session_id}/process")
    if response.status_code != HTTP_200_OK or response.json()["status"] != "idle":
        msg = f"Expected an unchanged idle session, got {response.status_code}: {response.json()}"
        raise AssertionError(msg)


def test_delete_session(client: TestClient) -> None:
    """A discarded session is gone."""
    session_id = create_session(client)
    response = client.delete(f"/sessions/{session_id}")
    if response.status_code != HTTP_204_NO_CONTENT:
        msg = f"Expected status {HTTP_204_NO_CONTENT}, got {response.status_code}"
        raise AssertionError(msg)
    if client.get(f"/sessions/{session_id}").status_code != HTTP_404_NOT_FOUND:
        msg = "Expected the discarded session to be gone"
        raise AssertionError(msg)


def test_second_process_during_a_run_is_409(client: TestClient, store: SessionStore) -> None:
    """A run already claimed for the session refuses another process request."""
    session_id = create_session(client)
    upload(client, session_id, STATEMENT_PDF)
    store.get(session_id).begin()
    response = client.post(f"/sessions/{session_id}/process")
    if response.status_code != HTTP_409_CONFLICT:
        msg = f"Expected status {HTTP_409_CONFLICT}, got {response.status_code}"
        raise AssertionError(msg)
    if client.get(f"/sessions/{session_id}").json()["status"] != "extracting":
        msg = "Expected the claimed run to be left untouched"
        raise AssertionError(msg)


def test_idle_session_expires(client: TestClient, store: SessionStore, clock: ManualClock) -> None:
    """A session untouched for longer than the expiry is released and reported as not found."""
    session_id = create_session(client)
    upload(client, session_id, STATEMENT_PDF)
    clock.now = 30
    if client.get(f"/sessions/{session_id}").status_code != HTTP_200_OK:
        msg = "Expected the session to be alive before the expiry"
        raise AssertionError(msg)
    clock.now = 30 + 61
    if client.get(f"/sessions/{session_id}").status_code != HTTP_404_NOT_FOUND:
        msg = "Expected the expired session to be gone"
        raise AssertionError(msg)
    if session_id in store:
        msg = "Expected the expired session to be released from the store"
        raise AssertionError(msg)


def test_busy_session_does_not_expire(client: TestClient, store: SessionStore, clock: ManualClock) -> None:
    """A session with a run in flight survives the expiry."""
    session_id = create_session(client)
    upload(client, session_id, STATEMENT_PDF)
    store.get(session_id).begin()
    clock.now = 1000
    create_session(client)
    if session_id not in store:
        msg = "Expected the busy session to be kept"
        raise AssertionError(msg)


def test_very_large_amount_renders_and_exports(client: TestClient, agent: FakeAgent) -> None:
    """A record beyond the default decimal precision does not break the table or the download."""
    agent.transactions = [Transaction(date="31/12/2025", amount=1e30, description="Aporte")]
    session_id = create_session(client)
    upload(client, session_id, STATEMENT_PDF)
    state = process(client, session_id)
    if state["status"] != "done" or state["transactions"][0]["valor"] != "1" + "0" * 30 + ",00":
        msg = f"Unexpected session state: {state}"
        raise AssertionError(msg)
    if client.get(f"/sessions/{session_id}/export").status_code != HTTP_200_OK:
        msg = "Expected the export to succeed"
        raise AssertionError(msg)
