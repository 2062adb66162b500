"""Verification of Telegram Mini App ``initData``.

The client attaches a query-string shaped payload whose ``hash`` field is
an HMAC over every other field. Verification is a pure function of the
payload, the bot token and the clock:

1. parse the payload (duplicate keys keep the last value)
2. build the data-check string: ``key=value`` lines sorted lexicographically
3. derive the secret key as HMAC-SHA256(key=bot_token, msg="WebAppData")
4. expect ``hash == hex(HMAC-SHA256(key=secret_key, msg=data_check_string))``
   compared in constant time
5. only for a genuine signature, reject payloads whose ``auth_date`` is
   older than ``max_age`` seconds
"""

import hashlib
import hmac
import time
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlencode

NO_INIT_DATA = 'NO_INIT_DATA'
NO_BOT_TOKEN = 'NO_BOT_TOKEN'
PARSE_ERROR = 'PARSE_ERROR'
HASH_MISMATCH = 'HASH_MISMATCH'
EXPIRED = 'EXPIRED'

WEB_APP_DATA = b'WebAppData'
DEFAULT_MAX_AGE_SEC = 86400


@dataclass
class InitDataValidation:
    ok: bool
    reason: Optional[str] = None
    data: Dict[str, str] = field(default_factory=dict)

    @property
    def auth_date(self) -> Optional[int]:
        return _positive_int(self.data.get('auth_date'))


class InitDataParseError(ValueError):
    pass


def parse_init_data(raw: str) -> Dict[str, str]:
    """Lenient parse: blank or malformed segments are skipped."""
    result: Dict[str, str] = {}
    for key, value in parse_qsl(raw or '', keep_blank_values=True):
        result[key] = value
    return result


def _parse_strict(raw: str) -> Dict[str, str]:
    try:
        pairs = parse_qsl(raw, keep_blank_values=True, strict_parsing=True, errors='strict')
    except ValueError as exc:  # includes UnicodeDecodeError
        raise InitDataParseError(str(exc)) from exc
    result: Dict[str, str] = {}
    for key, value in pairs:
        result[key] = value
    return result


def _positive_int(value) -> Optional[int]:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def build_data_check_string(fields: Dict[str, str]) -> str:
    pairs = sorted(f"{key}={value}" for key, value in fields.items() if key != 'hash')
    return '\n'.join(pairs)


def derive_secret_key(bot_token: str) -> bytes:
    return hmac.new(bot_token.encode('utf-8'), WEB_APP_DATA, hashlib.sha256).digest()


def compute_hash(fields: Dict[str, str], bot_token: str) -> str:
    data_check_string = build_data_check_string(fields)
    return hmac.new(derive_secret_key(bot_token), data_check_string.encode('utf-8'), hashlib.sha256).hexdigest()


def sign_init_data(fields: Dict[str, str], bot_token: str) -> str:
    """Build a signed initData string (used by tests and local tooling)."""
    signed = dict(fields)
    signed.pop('hash', None)
    signed['hash'] = compute_hash(signed, bot_token)
    return urlencode(signed)


def _hashes_match(expected_hex: str, received_hex: str) -> bool:
    try:
        expected = bytes.fromhex(expected_hex)
        received = bytes.fromhex(received_hex)
    except ValueError:
        return False
    return hmac.compare_digest(expected, received)


def validate_init_data(
    raw: str,
    bot_token: Optional[str],
    now: Optional[float] = None,
    max_age: int = DEFAULT_MAX_AGE_SEC,
) -> InitDataValidation:
    if not raw:
        return InitDataValidation(ok=False, reason=NO_INIT_DATA)
    if not bot_token:
        return InitDataValidation(ok=False, reason=NO_BOT_TOKEN)

    try:
        data = _parse_strict(raw)
    except InitDataParseError:
        return InitDataValidation(ok=False, reason=PARSE_ERROR)

    received = data.pop('hash', None)
    if not received:
        return InitDataValidation(ok=False, reason=HASH_MISMATCH)

    if not _hashes_match(compute_hash(data, bot_token), received):
        return InitDataValidation(ok=False, reason=HASH_MISMATCH)

    # Expiry is only revealed for genuinely signed payloads
    auth_date = _positive_int(data.get('auth_date'))
    if auth_date is not None:
        current = time.time() if now is None else now
        if current - auth_date > max_age:
            return InitDataValidation(ok=False, reason=EXPIRED, data=data)

    return InitDataValidation(ok=True, data=data)
