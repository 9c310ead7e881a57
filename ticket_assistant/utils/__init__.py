"""
Utility functions
"""
from ticket_assistant.utils.logger import setup_logger, get_logger
from ticket_assistant.utils.validators import (
    find_emails,
    sanitize_input
)

__all__ = [
    "setup_logger",
    "get_logger",
    "find_emails",
    "sanitize_input",
]
