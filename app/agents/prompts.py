"""Prompts and response schema for the StatementAgent LLM."""

SYSTEM_PROMPT = (
    "Você é um assistente que extrai transações de extratos bancários brasileiros. "
    "Responda somente com JSON válido no formato solicitado, sem comentários."
)

USER_PROMPT_TEMPLATE = """Extraia as transações do seguinte texto de extrato bancário.
Retorne uma lista de objetos com: data (no formato DD/MM/AAAA), valor (número positivo para crédito, negativo para débito) e historico (descrição da transação).

Texto do extrato:
{text}"""

USER_PROMPT_LOG_LABEL = "Extract bank statement transactions (data, valor, historico)"

TRANSACTIONS_KEY = "transacoes"

TRANSACTION_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "data": {"type": "string", "description": "Data da transação (DD/MM/AAAA)"},
        "valor": {
            "type": "number",
            "description": "Valor da transação (negativo para saídas/débitos, positivo para entradas/créditos)",
        },
        "historico": {"type": "string", "description": "Descrição ou histórico da transação"},
    },
    "required": ["data", "valor", "historico"],
    "additionalProperties": False,
}

RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "extrato",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {TRANSACTIONS_KEY: {"type": "array", "items": TRANSACTION_ITEM_SCHEMA}},
            "required": [TRANSACTIONS_KEY],
            "additionalProperties": False,
        },
    },
}
