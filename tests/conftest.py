"""Pytest fixtures for notesync tests."""

from __future__ import annotations

import logging
import random
from collections.abc import Generator

import pytest
import structlog

from notesync.cache import QueryCache
from notesync.core.config import RetryConfig
from notesync.execution import RequestPipeline, RetryPolicy
from notesync.notifications import NotificationManager

from helpers import RecordingNotifier, RecordingSleep


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root handlers around each test."""
    import notesync.cli as cli_module

    original_state = cli_module._state
    cli_module._state = cli_module.CliState()

    structlog.reset_defaults()
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_module._state = original_state
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def pipeline(rng: random.Random, sleep: RecordingSleep, notifier: RecordingNotifier) -> RequestPipeline:
    """Pipeline with default retry config, no real sleeping, recorded notifications."""
    return RequestPipeline(
        RetryPolicy(RetryConfig(), rng=rng),
        notifications=NotificationManager([notifier]),
        sleep=sleep,
    )


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache()
