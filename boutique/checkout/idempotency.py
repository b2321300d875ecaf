"""
Garde d'idempotence de la création de checkout (en-tête Idempotency-Key).

SET NX sur Redis: le premier appel réserve la clé, un rejeu pendant la création
reçoit DuplicateCheckout (409), un rejeu après succès reçoit la session d'origine.
En cas d'échec la clé est libérée pour permettre une nouvelle tentative.
"""
import hashlib
import json
import logging
from typing import Any, Dict, Optional

import redis

from boutique.errors import DuplicateCheckout

logger = logging.getLogger(__name__)

PENDING = "pending"


class CheckoutIdempotency:
    def __init__(self, client: "redis.Redis", ttl_seconds: int = 900, prefix: str = "checkout:idem:"):
        self._redis = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, idempotency_key: str) -> str:
        digest = hashlib.sha256(idempotency_key.encode("utf-8")).hexdigest()
        return f"{self.prefix}{digest}"

    def claim(self, idempotency_key: str) -> Optional[Dict[str, Any]]:
        """
        Retourne None si la clé vient d'être réservée (création à faire),
        sinon la session déjà créée pour cette clé.
        """
        key = self._key(idempotency_key)
        if self._redis.set(key, PENDING, nx=True, ex=self.ttl_seconds):
            return None
        stored = self._redis.get(key)
        if isinstance(stored, bytes):
            stored = stored.decode("utf-8")
        if not stored or stored == PENDING:
            raise DuplicateCheckout()
        logger.info("checkout.idempotency replay key=%s", key[-12:])
        return json.loads(stored)

    def store(self, idempotency_key: str, payload: Dict[str, Any]) -> None:
        self._redis.set(self._key(idempotency_key), json.dumps(payload), ex=self.ttl_seconds)

    def release(self, idempotency_key: str) -> None:
        self._redis.delete(self._key(idempotency_key))
