import os
import sys
import tempfile
from pathlib import Path

import pytest

# keep test runs from writing into the package log directory
os.environ.setdefault("APP_LOG_DIR", tempfile.mkdtemp(prefix="review-agent-logs-"))

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def log_records():
    """Loguru records emitted while the test runs, at DEBUG and above."""
    from review_agent.logger import get_logger

    logger = get_logger()
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG", format="{message}")
    yield records
    logger.remove(handler_id)
