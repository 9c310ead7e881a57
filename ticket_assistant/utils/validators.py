"""
Input validation utilities
"""
import re
from typing import List

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


def find_emails(text: str) -> List[str]:
    """Return every email address found in free text, in order"""
    return EMAIL_PATTERN.findall(text)


def sanitize_input(text: str, max_length: int = 2000) -> str:
    """
    Sanitize user input

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    # Remove null bytes
    text = text.replace('\x00', '')

    # Truncate to max length
    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()
