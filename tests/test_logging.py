"""Tests for logging configuration."""

import logging

import structlog

from hotel_ledger.config import bind_log_context, configure_logging


def test_configure_quiets_http_client_loggers():
    """Test that per-request httpx logs stay off below WARNING."""
    configure_logging(level="DEBUG", format="json")

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_bound_context_is_merged():
    """Test that bound values reach every subsequent log line."""
    structlog.contextvars.clear_contextvars()
    bind_log_context(command="report")

    assert structlog.contextvars.get_contextvars() == {"command": "report"}
    structlog.contextvars.clear_contextvars()
