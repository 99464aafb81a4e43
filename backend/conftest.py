"""Root conftest: optional test env file and a caplog-friendly structlog setup."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import _serialize_enums

# BINGO_* overrides for local test runs; absent in CI.
load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Route through stdlib logging so caplog sees every event.
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _serialize_enums,
        structlog.processors.StackInfoRenderer(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep room/connection bindings from leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
