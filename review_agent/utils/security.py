"""Webhook signature helpers."""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def build_github_signature(secret: str, payload: bytes) -> str:
    """Return the ``X-Hub-Signature-256`` value GitHub sends for this payload."""

    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_github_signature(secret: str, payload: bytes, raw_signature: str | None) -> bool:
    if not raw_signature or not raw_signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(build_github_signature(secret, payload), raw_signature.strip())
