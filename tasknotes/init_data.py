"""
Telegram Mini App initData handling.

initData is a URL-query-encoded string. Its ``user`` field holds a JSON
object ``{id, first_name, last_name?, username?}``; ``auth_date`` and
``hash`` are added by Telegram. The hash is an HMAC-SHA256 over the other
fields, keyed with ``HMAC_SHA256("WebAppData", bot_token)``.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from .errors import AuthError

logger = logging.getLogger(__name__)

PLACEHOLDER_USER = "test"
WEB_APP_KEY = b"WebAppData"


@dataclass(frozen=True)
class TelegramUser:
    id: int
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


# ---------------------------
# Parsing
# ---------------------------

def decode_fields(token: str) -> Dict[str, str]:
    """Decode a query string into a dict, keeping the first value of repeated keys."""
    fields: Dict[str, str] = {}
    for key, value in parse_qsl(token or "", keep_blank_values=True):
        fields.setdefault(key, value)
    return fields


def parse_init_data(token: Optional[str]) -> Optional[TelegramUser]:
    """
    Extract the Telegram user from an initData token.

    Returns None when the token or its ``user`` field is absent, empty,
    unparsable, not an object with an ``id``, or the literal placeholder
    ``"test"``.
    """
    if not token or not isinstance(token, str):
        return None

    raw_user = decode_fields(token).get("user")
    if not raw_user or raw_user == PLACEHOLDER_USER:
        return None

    try:
        data = json.loads(raw_user)
    except ValueError:
        logger.warning("initData user field is not valid JSON")
        return None

    if not isinstance(data, dict) or data.get("id") in (None, ""):
        return None

    raw_id = data["id"]
    # booleans are ints in Python; fractional ids would truncate onto another user
    if isinstance(raw_id, bool) or (isinstance(raw_id, float) and not raw_id.is_integer()):
        return None
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        return None

    return TelegramUser(
        id=user_id,
        first_name=str(data.get("first_name") or ""),
        last_name=data.get("last_name"),
        username=data.get("username"),
    )


# ---------------------------
# Signature helpers
# ---------------------------

def _hmac_sha256(key: bytes, message: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(message)
    return h.finalize()


def data_check_string(fields: Dict[str, str]) -> bytes:
    """Sorted ``key=value`` lines of every field except ``hash``."""
    pairs = sorted((k, v) for k, v in fields.items() if k != "hash")
    return "\n".join(f"{k}={v}" for k, v in pairs).encode("utf-8")


def _secret_key(bot_token: str) -> bytes:
    return _hmac_sha256(WEB_APP_KEY, bot_token.encode("utf-8"))


def sign_init_data(fields: Dict[str, Any], bot_token: str) -> str:
    """Return a signed initData token for ``fields``. Dict/list values are JSON-encoded."""
    encoded = {
        k: json.dumps(v, ensure_ascii=False, separators=(",", ":")) if isinstance(v, (dict, list)) else str(v)
        for k, v in fields.items()
        if k != "hash"
    }
    encoded.setdefault("auth_date", str(int(time.time())))
    encoded["hash"] = _hmac_sha256(_secret_key(bot_token), data_check_string(encoded)).hex()
    return urlencode(encoded)


def verify_init_data(token: str, bot_token: str, max_age: int = 0, now: Optional[float] = None) -> bool:
    """
    Check the Telegram signature of ``token``.

    Raises:
        AuthError("missing_hash" | "invalid_signature" | "init_data_expired")
    """
    fields = decode_fields(token)
    received = fields.get("hash")
    if not received:
        raise AuthError("missing_hash")

    try:
        expected = bytes.fromhex(received)
    except ValueError:
        raise AuthError("invalid_signature")

    h = hmac.HMAC(_secret_key(bot_token), hashes.SHA256())
    h.update(data_check_string(fields))
    try:
        h.verify(expected)
    except InvalidSignature:
        raise AuthError("invalid_signature")

    if max_age:
        try:
            auth_date = int(fields.get("auth_date", ""))
        except ValueError:
            raise AuthError("init_data_expired")
        current = time.time() if now is None else now
        if current - auth_date > max_age:
            raise AuthError("init_data_expired")

    return True


def authenticate(token: Optional[str], bot_token: Optional[str] = None, max_age: int = 0) -> TelegramUser:
    """
    Resolve the user behind ``token``, verifying it when a bot token is set.

    Raises:
        AuthError if no usable identity can be extracted.
    """
    if not token or not isinstance(token, str):
        raise AuthError("missing_init_data")
    if bot_token:
        verify_init_data(token, bot_token, max_age)
    user = parse_init_data(token)
    if user is None:
        raise AuthError("User data not found in initData")
    return user
