from __future__ import annotations

import hashlib
import hmac
from typing import Optional


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of a hex HMAC-SHA256 over the raw request body."""
    if not signature:
        return False
    return hmac.compare_digest(sign(secret, body), signature.strip().lower())
