"""
Authenticité des webhooks: HMAC-SHA256 calculé sur le corps brut tel que reçu.
Le JSON n'est jamais re-sérialisé avant hachage.
"""
import base64
import hashlib
import hmac
from typing import Mapping, Optional


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Accepte la convention Shopify (base64) ou une signature hexadécimale.
    Comparaison à temps constant.
    """
    if not signature or not secret:
        return False
    provided = signature.strip()
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    if hmac.compare_digest(provided.encode("utf-8"), base64.b64encode(digest)):
        return True
    return hmac.compare_digest(provided.lower().encode("utf-8"), digest.hex().encode("ascii"))


def verify_operator_secret(headers: Mapping[str, str], secret: str) -> bool:
    """Secret opérateur (revalidation manuelle): Authorization: Bearer ou X-Revalidation-Secret."""
    if not secret:
        return False
    auth = headers.get("authorization") or ""
    token = auth[7:] if auth.startswith("Bearer ") else ""
    provided = token or headers.get("x-revalidation-secret") or ""
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8"))
