"""
Log sanitization helpers.

Values handed to us by Instagram on the redirect (error codes, descriptions,
state tokens) are attacker-controllable. Pass them through these helpers
before they reach a log line so CR/LF cannot forge entries.

Usage:
    from app.utils.log_sanitizer import sanitize_for_log

    logger.error("[INSTAGRAM] OAuth error: %s", sanitize_for_log(error))
"""

import re
import base64
from typing import Any, Optional


# Alphanumerics plus the punctuation seen in provider error codes and descriptions
SAFE_CHAR_PATTERN = re.compile(r"^[a-zA-Z0-9.,:'()\-_@\s]+$")

CRLF_PATTERN = re.compile(r'[\r\n]')

DEFAULT_SENSITIVE_KEYS = frozenset({
    'access_token', 'client_secret', 'code', 'secret', 'token', 'authorization',
})


def sanitize_for_log(value: Any, max_length: int = 200) -> str:
    """
    Make a value safe to interpolate into a log message.

    Safe values are returned truncated to ``max_length``. Anything containing
    CR/LF or characters outside the allowlist is base64 encoded and prefixed
    with ``[BASE64]``.

    Examples:
        >>> sanitize_for_log("access_denied")
        'access_denied'

        >>> sanitize_for_log(None)
        '[NULL]'
    """
    if value is None:
        return "[NULL]"

    str_value = str(value)[:max_length * 2]

    if SAFE_CHAR_PATTERN.match(str_value) and not CRLF_PATTERN.search(str_value):
        return str_value[:max_length]

    encoded = base64.b64encode(str_value.encode('utf-8', errors='replace')).decode('ascii')
    return f"[BASE64]{encoded}"[:max_length]


def sanitize_dict_for_log(data: dict, sensitive_keys: Optional[set] = None) -> dict:
    """
    Sanitize a provider payload for logging, redacting credential-like keys.

    Examples:
        >>> sanitize_dict_for_log({"error_type": "OAuthException", "access_token": "IGQ..."})
        {'error_type': 'OAuthException', 'access_token': '[REDACTED]'}
    """
    keys = DEFAULT_SENSITIVE_KEYS if sensitive_keys is None else sensitive_keys

    result = {}
    for key, value in data.items():
        if str(key).lower() in keys:
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_dict_for_log(value, sensitive_keys)
        else:
            result[key] = sanitize_for_log(value)
    return result
