from __future__ import annotations

import logging
import re

MASK_TOKEN = "<redacted>"
_KEY_VALUE_PATTERN = re.compile(
    r"(?i)([\w.-]*(?:apikey|api_key|secret|key|nonce|sign)[\w.-]*)(\s*[:=]\s*)([^\s,;]+)"
)
_JSON_QUOTED_PATTERN = re.compile(
    r"(?i)(\"|')([\w.-]*(?:apikey|api_key|secret|key|nonce|sign)[\w.-]*)(\"|')\s*:\s*(\"|')([^\"']*)(\"|')"
)
# Cryptopia signs private requests with an "amx" authorization header.
_AMX_PATTERN = re.compile(r"(?i)amx\s+[A-Za-z0-9+/=:._\-]+")

__all__ = ["RedactingFilter", "redact_text", "MASK_TOKEN"]


def _mask_value(match: re.Match[str]) -> str:
    return f"{match.group(1)}{match.group(2)}{MASK_TOKEN}"


def _mask_json_value(match: re.Match[str]) -> str:
    quote_l, key, quote_r, value_quote_l = match.group(1, 2, 3, 4)
    value_quote_r = match.group(6)
    return f"{quote_l}{key}{quote_r}: {value_quote_l}{MASK_TOKEN}{value_quote_r}"


def redact_text(message: str) -> str:
    """Return *message* with credential-looking key/value pairs replaced."""

    redacted = _KEY_VALUE_PATTERN.sub(_mask_value, message)
    redacted = _JSON_QUOTED_PATTERN.sub(_mask_json_value, redacted)
    return _AMX_PATTERN.sub("amx " + MASK_TOKEN, redacted)


class RedactingFilter(logging.Filter):
    """Logging filter that redacts secret-looking keys before emission."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True
