"""
Scalar sanitizers and anti-forgery tokens.

Sanitizers strip characters that are illegal for the target type; they
never reject. Tokens are created once per session context and compared
in constant time.
"""

import hmac
import html
import re
import secrets
from typing import Any, MutableMapping, Optional

TOKEN_KEY = "csrf_token"
TOKEN_BYTES = 32

_EMAIL_DISALLOWED = re.compile(r"[^A-Za-z0-9!#$%&'*+\-=?^_`{|}~@.\[\]]")
_INT_DISALLOWED = re.compile(r"[^0-9+\-]")
_FLOAT_DISALLOWED = re.compile(r"[^0-9+\-.]")
_URL_DISALLOWED = re.compile(r"[^A-Za-z0-9$\-_.+!*'(),{}|\\^~\[\]`<>#%\";/?:@&=]")


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def sanitize_string(value: Any) -> str:
    """Trim, then escape ``& < > " '`` for embedding in markup."""
    return html.escape(_text(value).strip(), quote=True)


def sanitize_email(value: Any) -> str:
    return _EMAIL_DISALLOWED.sub("", _text(value).strip())


def sanitize_int(value: Any) -> str:
    return _INT_DISALLOWED.sub("", _text(value))


def sanitize_float(value: Any) -> str:
    return _FLOAT_DISALLOWED.sub("", _text(value))


def sanitize_url(value: Any) -> str:
    return _URL_DISALLOWED.sub("", _text(value))


def generate_token(context: MutableMapping[str, Any]) -> str:
    """Return the context's token, creating it on first use."""
    token = context.get(TOKEN_KEY)
    if not token:
        token = secrets.token_hex(TOKEN_BYTES)
        context[TOKEN_KEY] = token
    return token


def validate_token(context: MutableMapping[str, Any], candidate: Optional[str]) -> bool:
    """Constant-time comparison against the context's token."""
    expected = context.get(TOKEN_KEY)
    if not expected or not isinstance(candidate, str):
        return False
    return hmac.compare_digest(expected.encode(), candidate.encode())
