"""Settings and logging for the hotel ledger."""

from hotel_ledger.config.logging import bind_log_context, configure_logging
from hotel_ledger.config.settings import LedgerSettings, get_settings

__all__ = ["LedgerSettings", "get_settings", "configure_logging", "bind_log_context"]
