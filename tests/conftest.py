"""Shared pytest fixtures."""

import logging

import pytest

from pageprobe.core.config import Settings


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with short delays so retry and cancellation tests run quickly."""
    return Settings(
        timeout=2.0,
        max_retries=3,
        retry_delay=0.01,
        link_check_timeout=2.0,
        link_check_delay=0.0,
        link_check_retry_delay=0.01,
        _env_file=None,
    )


@pytest.fixture(autouse=True)
def _quiet_pageprobe_logs(caplog: pytest.LogCaptureFixture) -> None:
    """Capture pageprobe logs at DEBUG so tests can assert on them."""
    caplog.set_level(logging.DEBUG, logger="pageprobe")
