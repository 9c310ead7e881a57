"""
Service-level exceptions
"""
from typing import Optional


class TicketAssistantError(Exception):
    """Base exception for the ticket assistant."""


class StoreUnavailable(TicketAssistantError):
    """Helpdesk backend could not complete a fetch or mutation."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CompletionError(TicketAssistantError):
    """Language model completion failed or returned unusable output."""


class ConfigurationError(TicketAssistantError):
    """Required backend credentials are missing."""
