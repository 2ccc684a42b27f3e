"""
HMAC-SHA256 helpers shared by the inbound and outbound halves of the handshake.
"""

import binascii
import hashlib
import hmac


def compute_hmac(message: bytes, key: bytes) -> str:
    """
    Compute the hex encoded HMAC-SHA256 of a message.
    """
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def validate_hmac(message: bytes, key: bytes, hex_sig: str) -> bool:
    """
    Validate a message against a hex encoded HMAC-SHA256, in constant time.
    Signatures that aren't valid hex simply fail validation.
    """
    try:
        signature = binascii.unhexlify(hex_sig)
    except (TypeError, ValueError):
        return False
    expected = hmac.new(key, message, hashlib.sha256).digest()
    return hmac.compare_digest(signature, expected)
