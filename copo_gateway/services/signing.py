"""
Copo request signing and callback verification

Signature algorithm (Copo merchant API):
1. Drop empty values ("" or None) and the 'sign' entry itself
2. Stringify the remaining values
3. Sort keys by ASCII (case-sensitive)
4. Build query string: key1=value1&key2=value2
5. Append: &Key=<signKey>
6. MD5 hash -> lowercase hex

This is the provider's wire format and must stay bit-compatible with it.
"""

import hashlib
import hmac
import logging
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

SIGN_FIELD = "sign"


def _stringify(value: Any) -> str:
    """Render a value the way Copo's reference client does"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _utf8(text: str) -> bytes:
    """UTF-8 bytes with lone surrogates replaced by U+FFFD, as the provider's JavaScript client hashes them"""
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace").encode("utf-8")


def build_sign_string(params: Mapping[str, Any], secret_key: str) -> str:
    """Canonical string that gets hashed: sorted key=value pairs plus &Key=<secret>"""
    filtered = {
        key: _stringify(value)
        for key, value in params.items()
        if key != SIGN_FIELD and value is not None and value != ""
    }
    query_string = "&".join(f"{key}={filtered[key]}" for key in sorted(filtered))
    return f"{query_string}&Key={secret_key}"


def sign(params: Mapping[str, Any], secret_key: str) -> str:
    """
    Generate MD5 signature for Copo API requests

    Args:
        params: Request parameters (a 'sign' entry, if present, is ignored)
        secret_key: Merchant sign key

    Returns:
        MD5 signature in lowercase hex
    """
    sign_string = build_sign_string(params, secret_key)
    return hashlib.md5(_utf8(sign_string)).hexdigest()


def verify(callback_params: Mapping[str, Any], claimed_signature: Optional[str], secret_key: str) -> bool:
    """
    Verify a callback signature from Copo.

    The comparison is case-sensitive: an uppercase rendering of a valid
    signature does not verify. Never raises; any unusable input is simply
    not verified.
    """
    if claimed_signature is None or claimed_signature == "":
        logger.warning("Callback signature missing")
        return False
    if not isinstance(claimed_signature, str):
        logger.warning(f"Callback signature malformed: expected a string, got {type(claimed_signature).__name__}")
        return False

    try:
        params = {key: value for key, value in callback_params.items() if key != SIGN_FIELD}
        expected = sign(params, secret_key or "")
        is_valid = hmac.compare_digest(expected.encode("utf-8"), _utf8(claimed_signature))
    except Exception as e:  # noqa: BLE001 - verification never raises
        logger.warning(f"Callback signature could not be computed: {type(e).__name__}")
        return False

    if not is_valid:
        logger.warning(
            "Signature verification failed",
            extra={
                "expected_preview": expected[:8] + "...",
                "received_preview": claimed_signature[:8] + "...",
            },
        )

    return is_valid
