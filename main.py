"""Main entrypoint and application factory for the statement converter API.

This module initializes the FastAPI application, configures logging, and exposes the
Scalar API reference endpoint for interactive OpenAPI documentation. It also includes
the main entrypoint for running the app with Uvicorn.
"""

import logging

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from scalar_fastapi import get_scalar_api_reference

from app.api.routes import router
from app.core.settings import get_settings
from app.core.utils import LOGGER_ROOT, ensure_dir, get_logger

LOG_DIR = "logs"
LOG_FILE = "conversion.log"


# --- Logging Setup ---
def setup_logging(log_dir: str = LOG_DIR) -> None:
    """Configure logging to file and console, and ensure the log directory exists."""
    ensure_dir(log_dir)
    logger = get_logger(LOGGER_ROOT)
    logger.setLevel(logging.INFO)
    # Add file handler for persistent logs (not colorized)
    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(f"{log_dir}/{LOG_FILE}")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(file_handler)
    logger.propagate = False


setup_logging()


app = FastAPI(
    docs_url="/docs",
    redoc_url="/redoc",
    title="Conversor de Extrato API",
    description="""
    The statement converter API turns a bank-statement PDF into a spreadsheet using LLM-powered extraction.

    **Endpoints:**
    - `POST /sessions`: Create a conversion session. Returns a `session_id`.
    - `POST /sessions/{{session_id}}/file`: Upload the PDF statement.
    - `POST /sessions/{{session_id}}/process`: Extract and parse the statement in the background.
    - `GET /sessions/{{session_id}}`: Status, error message, and transaction table.
    - `GET /sessions/{{session_id}}/export`: Download `extrato_convertido_<ms>.xlsx`.
    - `DELETE /sessions/{{session_id}}`: Discard the session.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
    version="1.0.0",
)
app.include_router(router)


@app.get("/scalar", include_in_schema=False)
async def scalar_docs() -> HTMLResponse:
    """Return Scalar API reference."""
    return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)
