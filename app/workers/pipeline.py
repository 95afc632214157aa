"""Conversion pipeline: extract text, parse transactions, hold the result for rendering.

PipelineState is the session's state machine; its methods are the only way to change
status. PipelineController runs the stages in order and is the single place where
stage failures are caught and turned into a user-facing error message.
"""

from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from app.agents.base import BaseAgent
from app.core.models import FileInfo, PipelineStatus, SelectedFile, SessionView, Transaction, TransactionRow
from app.core.utils import get_logger, utcnow_iso
from app.services.pdf_service import extract_text

logger = get_logger("statement-converter.worker")

NO_TRANSACTIONS_MESSAGE = (
    "Não foi possível encontrar transações no arquivo. Verifique se o PDF é um extrato bancário válido."
)
GENERIC_ERROR_MESSAGE = "Ocorreu um erro ao processar o arquivo."
BUSY_MESSAGE = "Já existe um processamento em andamento para esta sessão."

TextExtractor = Callable[[bytes], Awaitable[str]]

ALLOWED_TRANSITIONS = {
    PipelineStatus.IDLE: {PipelineStatus.EXTRACTING},
    PipelineStatus.DONE: {PipelineStatus.EXTRACTING},
    PipelineStatus.ERROR: {PipelineStatus.EXTRACTING},
    PipelineStatus.EXTRACTING: {PipelineStatus.PARSING, PipelineStatus.ERROR},
    PipelineStatus.PARSING: {PipelineStatus.DONE, PipelineStatus.ERROR},
}


class InvalidTransitionError(Exception):
    """Raised when a status change is not allowed from the current status."""


class PipelineBusyError(Exception):
    """Raised when a session is asked to change while a run is in flight."""


class NoTransactionsFoundError(Exception):
    """Raised when parsing produced no transactions."""


class PipelineState(BaseModel):
    """Mutable state of one conversion session."""

    status: PipelineStatus = PipelineStatus.IDLE
    selected_file: SelectedFile | None = None
    transactions: list[Transaction] = Field(default_factory=list)
    error_message: str = ""

    @property
    def busy(self) -> bool:
        """Whether a run is in progress."""
        return self.status in (PipelineStatus.EXTRACTING, PipelineStatus.PARSING)

    def _move(self, target: PipelineStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            msg = f"Cannot move from '{self.status.value}' to '{target.value}'"
            raise InvalidTransitionError(msg)
        self.status = target

    def select_file(self, selected: SelectedFile) -> None:
        """Replace the selected file and clear the previous results."""
        if self.busy:
            raise PipelineBusyError(BUSY_MESSAGE)
        self.selected_file = selected
        self.transactions = []
        self.status = PipelineStatus.IDLE

    def reset(self) -> None:
        """Drop the file, results, and error."""
        if self.busy:
            raise PipelineBusyError(BUSY_MESSAGE)
        self.selected_file = None
        self.transactions = []
        self.error_message = ""
        self.status = PipelineStatus.IDLE

    def start_extracting(self) -> None:
        """Begin a run; the previous error is cleared."""
        self._move(PipelineStatus.EXTRACTING)
        self.error_message = ""

    def start_parsing(self) -> None:
        """Text extraction finished."""
        self._move(PipelineStatus.PARSING)

    def complete(self, transactions: list[Transaction]) -> None:
        """Parsing produced a non-empty list of transactions."""
        if not transactions:
            msg = "A completed run needs at least one transaction"
            raise InvalidTransitionError(msg)
        self._move(PipelineStatus.DONE)
        self.transactions = list(transactions)

    def fail(self, message: str) -> None:
        """A stage failed."""
        self._move(PipelineStatus.ERROR)
        self.error_message = message


class PipelineController:
    """Runs the extract -> parse pipeline for one session and tracks its state."""

    def __init__(
        self,
        agent: BaseAgent,
        extractor: TextExtractor = extract_text,
        session_id: str = "",
    ) -> None:
        """Initialize the controller with a statement agent and a text extractor."""
        self.agent = agent
        self.extractor = extractor
        self.session_id = session_id
        self.created_at = utcnow_iso()
        self.state = PipelineState()

    @property
    def status(self) -> PipelineStatus:
        """Current pipeline status."""
        return self.state.status

    def select_file(self, selected: SelectedFile) -> None:
        """Use ``selected`` for the next run."""
        self.state.select_file(selected)
        logger.info(f"[{self.session_id}] Selected file {selected.filename} ({selected.size} bytes)")

    def reset(self) -> None:
        """Return to an empty idle session."""
        self.state.reset()

    def begin(self) -> bool:
        """Claim the session for a run and enter ``extracting``.

        Returns False without any change when no file is selected.

        Raises:
            PipelineBusyError: a run is already in flight.
        """
        if self.state.busy:
            raise PipelineBusyError(BUSY_MESSAGE)
        if self.state.selected_file is None:
            logger.info(f"[{self.session_id}] Process requested without a file; nothing to do")
            return False
        self.state.start_extracting()
        return True

    async def run(self) -> None:
        """Execute the stages of a run claimed with :meth:`begin`."""
        selected = self.state.selected_file
        try:
            logger.info(f"[{self.session_id}] Extracting text from {selected.filename}")
            text = await self.extractor(selected.content)
            self.state.start_parsing()
            logger.info(f"[{self.session_id}] Parsing {len(text)} characters of text")
            transactions = await self.agent.parse_statement(text)
            if not transactions:
                raise NoTransactionsFoundError(NO_TRANSACTIONS_MESSAGE)
            self.state.complete(transactions)
            logger.info(f"[{self.session_id}] Done: {len(transactions)} transaction(s)")
        except Exception as exc:
            logger.exception(f"[{self.session_id}] Error processing {selected.filename}")
            self.state.fail(str(exc) or GENERIC_ERROR_MESSAGE)

    async def process(self) -> None:
        """Run the whole pipeline for the selected file; a no-op without one."""
        if self.begin():
            await self.run()

    def view(self) -> SessionView:
        """Snapshot of the session for rendering."""
        selected = self.state.selected_file
        return SessionView(
            session_id=self.session_id,
            status=self.state.status,
            created_at=self.created_at,
            file=FileInfo(filename=selected.filename, size=selected.size) if selected else None,
            transactions=[TransactionRow.from_transaction(txn) for txn in self.state.transactions],
            error_message=self.state.error_message or None,
        )
