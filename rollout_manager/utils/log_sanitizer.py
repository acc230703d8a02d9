"""
Log sanitization utilities.

Probe responses and backend error messages come from systems outside our
control and are cleaned before they reach the logs.
"""

import re
from typing import Any


def sanitize_for_log(value: Any, max_length: int = 100) -> str:
    """
    Sanitize a value for safe logging.

    Removes control characters and newlines that could be used to forge
    log lines, and truncates long values.

    Args:
        value: The value to sanitize
        max_length: Maximum length of the output (default 100)

    Returns:
        Sanitized string safe for logging
    """
    str_value = str(value)

    sanitized = re.sub(r"[\x00-\x1f\x7f-\x9f\r\n\t]", "", str_value)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."

    return sanitized


def sanitize_unit_name(name: str) -> str:
    """
    Sanitize a unit name for logging and file names.

    Unit names only contain alphanumerics, dots, hyphens and underscores.
    """
    sanitized = re.sub(r"[^a-zA-Z0-9_.-]", "", name)
    return sanitized[:64]
