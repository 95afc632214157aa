"""StatementAgent: LLM-based extraction of transactions from bank statement text.

The agent sends the extracted PDF text to Groq with a strict JSON-schema response
format and decodes the answer into Transaction records. Failures come in two tiers:

- the request itself fails (network, auth, rate limit, API error): raised as
  StatementServiceError so the caller can surface it;
- the request succeeds but the payload is unusable (invalid JSON, wrong shape, or
  an incomplete record): logged and reported as an empty list of transactions.
"""

import json
from enum import Enum
from typing import Any

from colorlog.escape_codes import escape_codes
from pydantic import BaseModel, Field, ValidationError

from app.agents.base import BaseAgent
from app.agents.prompts import (
    RESPONSE_FORMAT,
    SYSTEM_PROMPT,
    TRANSACTIONS_KEY,
    USER_PROMPT_LOG_LABEL,
    USER_PROMPT_TEMPLATE,
)
from app.core.models import Transaction
from app.core.settings import Settings
from app.core.utils import get_logger

MAX_OUTPUT_LOG_LEN = 300

logger = get_logger("statement-converter.agent")


class StatementServiceError(Exception):
    """Raised when the LLM service cannot complete the request."""


class OutcomeKind(str, Enum):
    """Whether the LLM answer could be decoded."""

    OK = "ok"
    MALFORMED = "malformed"


class ParseOutcome(BaseModel):
    """Result of decoding an LLM answer into transactions."""

    kind: OutcomeKind
    transactions: list[Transaction] = Field(default_factory=list)
    reason: str | None = None

    @classmethod
    def malformed(cls, reason: str) -> "ParseOutcome":
        """Build an outcome for an unusable payload."""
        return cls(kind=OutcomeKind.MALFORMED, reason=reason)


def _items_from_payload(payload: Any) -> list | None:  # noqa: ANN401
    """Return the transaction list from a bare array or the ``transacoes`` wrapper object."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(TRANSACTIONS_KEY), list):
        return payload[TRANSACTIONS_KEY]
    return None


def decode_transactions(raw_output: str | None) -> ParseOutcome:
    """Decode the LLM answer into transactions, all or nothing.

    An empty answer is an empty list. Anything that is not a JSON array of complete
    records (directly or under ``transacoes``) is a malformed outcome.
    """
    try:
        payload = json.loads(raw_output or "[]")
    except json.JSONDecodeError as exc:
        return ParseOutcome.malformed(f"invalid JSON: {exc}")
    items = _items_from_payload(payload)
    if items is None:
        return ParseOutcome.malformed(f"unexpected JSON shape: {type(payload).__name__}")
    try:
        transactions = [Transaction.model_validate(item) for item in items]
    except ValidationError as exc:
        return ParseOutcome.malformed(f"invalid transaction record: {exc.error_count()} error(s)")
    return ParseOutcome(kind=OutcomeKind.OK, transactions=transactions)


class StatementAgent(BaseAgent):
    """Agent responsible for turning statement text into transactions through the LLM."""

    def __init__(self, llm_client: object, settings: Settings) -> None:
        """Initialize the StatementAgent with an async Groq client and settings."""
        self.llm_client = llm_client
        self.settings = settings

    async def parse_statement(self, text: str) -> list[Transaction]:
        """Extract transactions from ``text``; an unusable answer yields an empty list."""
        outcome = await self.parse_outcome(text)
        return outcome.transactions

    async def parse_outcome(self, text: str) -> ParseOutcome:
        """Run one LLM request and decode its answer.

        A completion that arrives but carries no readable message (missing choices,
        ``message`` or ``content`` of the wrong type) is a malformed outcome, not a
        service failure.

        Raises:
            StatementServiceError: the request could not be completed.
        """
        cyan = escape_codes["cyan"]
        green = escape_codes["green"]
        yellow = escape_codes["yellow"]
        reset = escape_codes["reset"]
        logger.info(f"{cyan}INPUT: {len(text)} characters of statement text{reset}")
        logger.info(f"{yellow}PROMPT: {USER_PROMPT_LOG_LABEL}{reset}")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": USER_PROMPT_TEMPLATE.format(text=text)},
        ]
        try:
            logger.info(f"{yellow}AGENT: Calling LLM ({self.settings.llm_model})...{reset}")
            completion = await self.llm_client.chat.completions.create(
                model=self.settings.llm_model,
                messages=messages,
                temperature=self.settings.llm_temperature,
                max_completion_tokens=self.settings.llm_max_completion_tokens,
                top_p=self.settings.llm_top_p,
                response_format=RESPONSE_FORMAT,
            )
        except Exception as exc:
            msg = f"Falha ao consultar o serviço de IA: {exc}"
            logger.exception(msg)
            raise StatementServiceError(msg) from exc

        try:
            raw_output = self._completion_text(completion)
        except (AttributeError, IndexError, TypeError) as exc:
            outcome = ParseOutcome.malformed(f"unexpected completion shape: {exc}")
            logger.error(f"AGENT: Unusable LLM payload, returning no transactions: {outcome.reason}")
            return outcome
        preview = raw_output or ""
        if len(preview) > MAX_OUTPUT_LOG_LEN:
            preview = preview[: MAX_OUTPUT_LOG_LEN - 3] + "..."
        logger.info(f"{green}OUTPUT: {preview}{reset}")

        outcome = decode_transactions(raw_output)
        if outcome.kind is OutcomeKind.MALFORMED:
            logger.error(f"AGENT: Unusable LLM payload, returning no transactions: {outcome.reason}")
        else:
            logger.info(f"{green}AGENT: Decoded {len(outcome.transactions)} transaction(s){reset}")
        return outcome

    @staticmethod
    def _completion_text(completion: object) -> str | None:
        """Return the message content of the first choice, if any."""
        choices = getattr(completion, "choices", None) or []
        if not choices:
            return None
        content = choices[0].message.content
        if content is not None and not isinstance(content, str):
            msg = f"message content is {type(content).__name__}"
            raise TypeError(msg)
        return content
