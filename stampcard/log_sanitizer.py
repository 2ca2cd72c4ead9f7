# stampcard/log_sanitizer.py

"""
Log Sanitization Utility.

Masks customer identifiers and credentials before they reach a log line.
"""

import re
from typing import Any, Dict, Optional, Set

SENSITIVE_KEYS: Set[str] = {
    'password',
    'passphrase',
    'p12_password',
    'secret',
    'token',
    'authentication_token',
    'authenticationtoken',
    'private_key',
}


def mask_email(email: Optional[str]) -> str:
    """
    Mask an email address, showing only first char and domain.

    Example:
        >>> mask_email('jane.doe@example.com')
        'j***@example.com'
    """
    if not email or '@' not in email:
        return '***@***'

    local, domain = email.rsplit('@', 1)
    if local:
        return f"{local[0]}***@{domain}"
    return f"***@{domain}"


def mask_identifier(value: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask an identifier (customer id, serial number, token), keeping a short prefix.

    Args:
        value: identifier to mask
        visible_chars: number of leading characters to keep

    Returns:
        Masked identifier (e.g., 'cust...')
    """
    if not value:
        return '***'

    value = str(value)
    if len(value) <= visible_chars:
        return '***'
    return f"{value[:visible_chars]}..."


def safe_log_dict(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Sanitize a dictionary for safe logging.

    Redacts sensitive keys, masks anything that looks like an email and
    truncates long strings.
    """
    if not data:
        return {}

    safe = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            safe[key] = '<redacted>'
        elif isinstance(value, dict):
            safe[key] = safe_log_dict(value)
        elif isinstance(value, str):
            if re.fullmatch(r'[^@\s]+@[^@\s]+', value):
                safe[key] = mask_email(value)
            elif len(value) > 40:
                safe[key] = f"{value[:40]}..."
            else:
                safe[key] = value
        else:
            safe[key] = value
    return safe
