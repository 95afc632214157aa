"""Core package: provides models, settings, and shared utilities."""

from .models import PipelineStatus, Transaction  # noqa: F401
from .settings import Settings  # noqa: F401
from .utils import get_logger  # noqa: F401
