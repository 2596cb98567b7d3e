from __future__ import annotations

import contextlib

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _reset_loguru():
    yield
    # cli.main() installs its own stderr sink; drop it so later tests start clean
    logger.remove()


@pytest.fixture
def caplog(caplog: pytest.LogCaptureFixture):
    """Forward loguru records into pytest's caplog."""
    handler_id = logger.add(caplog.handler, format="{message}", level=0)
    yield caplog
    with contextlib.suppress(ValueError):
        logger.remove(handler_id)
