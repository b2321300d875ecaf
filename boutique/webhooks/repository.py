# module boutique.webhooks.repository
"""
Journal des livraisons webhook (dédoublonnage + audit).

Clé d'unicité (topic, source_id) portée par le stockage: l'insertion détecte le
conflit (code 23505) au lieu d'un lire-puis-écrire. Reprendre une entrée FAILED
(ou PROCESSING abandonnée) est une mise à jour conditionnelle sur le statut lu:
une seule livraison concurrente gagne.
"""
import abc
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from boutique.errors import LedgerUnavailable

logger = logging.getLogger(__name__)

RECEIVED = "RECEIVED"
PROCESSING = "PROCESSING"
PROCESSED = "PROCESSED"
FAILED = "FAILED"
STATUSES = (RECEIVED, PROCESSING, PROCESSED, FAILED)

CLAIMED = "claimed"
DUPLICATE = "duplicate"
IN_PROGRESS = "in_progress"

STALE_PROCESSING_SECONDS = 300
MEMORY_LEDGER_MAX_ROWS = 10_000
LIST_COLUMNS = "topic, source_id, status, attempts, error, received_at, updated_at, processed_at"


@dataclass(frozen=True)
class LedgerClaim:
    outcome: str
    attempts: int = 1

    @property
    def claimed(self) -> bool:
        return self.outcome == CLAIMED


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _short_error(error: Optional[str]) -> Optional[str]:
    return error[:500] if error else None


class WebhookLedger(abc.ABC):
    """Contrat commun aux journaux Supabase et mémoire."""

    stale_after_seconds: int = STALE_PROCESSING_SECONDS
    backend: str = "unknown"

    @abc.abstractmethod
    def claim(self, topic: str, source_id: str, payload: Any = None) -> LedgerClaim:
        ...

    @abc.abstractmethod
    def mark(self, topic: str, source_id: str, status: str, error: Optional[str] = None) -> None:
        ...

    @abc.abstractmethod
    def list_recent(self, limit: int = 50, offset: int = 0, status: Optional[str] = None) -> List[Dict[str, Any]]:
        ...

    def ping(self) -> bool:
        return True

    def _is_reclaimable(self, row: Dict[str, Any]) -> bool:
        status = row.get("status")
        if status == FAILED:
            return True
        if status in (RECEIVED, PROCESSING):
            updated = _parse_ts(row.get("updated_at"))
            return updated is None or _now() - updated >= timedelta(seconds=self.stale_after_seconds)
        return False


class InMemoryWebhookLedger(WebhookLedger):
    """
    Journal en mémoire (développement, tests, Supabase non configuré).
    Borné à `max_rows` entrées: au-delà, les plus anciennes entrées terminées
    (PROCESSED ou FAILED) sont oubliées, et une livraison très ancienne rejouée
    après éviction serait retraitée. Non partagé entre process: en production,
    utiliser le journal Supabase.
    """

    backend = "memory"

    def __init__(self, stale_after_seconds: int = STALE_PROCESSING_SECONDS, max_rows: int = MEMORY_LEDGER_MAX_ROWS):
        self.stale_after_seconds = stale_after_seconds
        self.max_rows = max_rows
        self._rows: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def claim(self, topic: str, source_id: str, payload: Any = None) -> LedgerClaim:
        key = (topic, source_id)
        with self._lock:
            row = self._rows.get(key)
            now = _now()
            if row is None:
                self._rows[key] = {
                    "topic": topic,
                    "source_id": source_id,
                    "status": PROCESSING,
                    "payload": payload,
                    "attempts": 1,
                    "error": None,
                    "received_at": now,
                    "updated_at": now,
                    "processed_at": None,
                }
                self._evict()
                return LedgerClaim(CLAIMED, 1)
            if row["status"] == PROCESSED:
                logger.info("webhooks.ledger duplicate topic=%s source_id=%s", topic, source_id)
                return LedgerClaim(DUPLICATE, row["attempts"])
            if not self._is_reclaimable(row):
                return LedgerClaim(IN_PROGRESS, row["attempts"])
            row.update(status=PROCESSING, attempts=row["attempts"] + 1, error=None, updated_at=now)
            logger.info("webhooks.ledger reclaimed topic=%s source_id=%s attempts=%s", topic, source_id, row["attempts"])
            return LedgerClaim(CLAIMED, row["attempts"])

    def _evict(self) -> None:
        # Ordre d'insertion du dict = ordre de réception
        excess = len(self._rows) - self.max_rows
        if excess <= 0:
            return
        finished = [k for k, r in self._rows.items() if r["status"] in (PROCESSED, FAILED)][:excess]
        for key in finished:
            del self._rows[key]
        logger.info("webhooks.ledger evicted count=%s size=%s", len(finished), len(self._rows))

    def mark(self, topic: str, source_id: str, status: str, error: Optional[str] = None) -> None:
        with self._lock:
            row = self._rows.get((topic, source_id))
            if row is None:
                return
            now = _now()
            row.update(status=status, error=_short_error(error), updated_at=now)
            if status == PROCESSED:
                row["processed_at"] = now

    def get(self, topic: str, source_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows.get((topic, source_id))
            return dict(row) if row else None

    def list_recent(self, limit: int = 50, offset: int = 0, status: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(r) for r in self._rows.values() if status is None or r["status"] == status]
        rows.sort(key=lambda r: r["received_at"], reverse=True)
        out = []
        for row in rows[offset:offset + limit]:
            row.pop("payload", None)
            for col in ("received_at", "updated_at", "processed_at"):
                if row[col] is not None:
                    row[col] = row[col].isoformat()
            out.append(row)
        return out

    def __len__(self) -> int:
        return len(self._rows)


def _error_code(exc: APIError) -> Optional[str]:
    code = getattr(exc, "code", None)
    if code:
        return str(code)
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0].get("code")
    return None


class SupabaseWebhookLedger(WebhookLedger):
    """Journal Supabase (PostgREST), table avec contrainte unique (topic, source_id)."""

    backend = "supabase"

    def __init__(self, client: Client, table: str = "webhook_events", stale_after_seconds: int = STALE_PROCESSING_SECONDS):
        self._client = client
        self._table = table
        self.stale_after_seconds = stale_after_seconds

    def _q(self):
        return self._client.table(self._table)

    def claim(self, topic: str, source_id: str, payload: Any = None) -> LedgerClaim:
        now = _now().isoformat()
        row = {
            "topic": topic,
            "source_id": source_id,
            "status": RECEIVED,
            "payload": payload,
            "attempts": 1,
            "received_at": now,
            "updated_at": now,
        }
        try:
            self._q().insert(row).execute()
        except APIError as e:
            if _error_code(e) != "23505":
                logger.error("webhooks.ledger insert_failed topic=%s code=%s", topic, _error_code(e))
                raise LedgerUnavailable(details={"code": _error_code(e)}) from e
            return self._claim_existing(topic, source_id)
        except httpx.HTTPError as e:
            logger.error("webhooks.ledger unreachable topic=%s err=%s", topic, e)
            raise LedgerUnavailable() from e

        self._transition(topic, source_id, RECEIVED, now, {"status": PROCESSING, "updated_at": _now().isoformat()})
        return LedgerClaim(CLAIMED, 1)

    def _claim_existing(self, topic: str, source_id: str) -> LedgerClaim:
        existing = self._fetch(topic, source_id)
        if existing is None:
            # Conflit puis ligne introuvable: une autre livraison la manipule
            return LedgerClaim(IN_PROGRESS)
        attempts = int(existing.get("attempts") or 1)
        if existing.get("status") == PROCESSED:
            logger.info("webhooks.ledger duplicate topic=%s source_id=%s", topic, source_id)
            return LedgerClaim(DUPLICATE, attempts)
        if not self._is_reclaimable(existing):
            return LedgerClaim(IN_PROGRESS, attempts)

        won = self._transition(
            topic,
            source_id,
            existing.get("status"),
            existing.get("updated_at"),
            {"status": PROCESSING, "attempts": attempts + 1, "error": None, "updated_at": _now().isoformat()},
        )
        if not won:
            return LedgerClaim(IN_PROGRESS, attempts)
        logger.info("webhooks.ledger reclaimed topic=%s source_id=%s attempts=%s", topic, source_id, attempts + 1)
        return LedgerClaim(CLAIMED, attempts + 1)

    def _fetch(self, topic: str, source_id: str) -> Optional[Dict[str, Any]]:
        try:
            res = (
                self._q()
                .select("status, attempts, updated_at")
                .eq("topic", topic)
                .eq("source_id", source_id)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as e:
            raise LedgerUnavailable() from e
        data = res.data or []
        return data[0] if data else None

    def _transition(self, topic: str, source_id: str, from_status: Any, updated_at: Any, values: Dict[str, Any]) -> bool:
        """Mise à jour conditionnelle (statut + horodatage lus): True si la ligne a été prise."""
        query = self._q().update(values).eq("topic", topic).eq("source_id", source_id).eq("status", from_status)
        if updated_at:
            query = query.eq("updated_at", updated_at)
        try:
            res = query.execute()
        except (APIError, httpx.HTTPError) as e:
            raise LedgerUnavailable() from e
        return bool(res.data)

    def mark(self, topic: str, source_id: str, status: str, error: Optional[str] = None) -> None:
        now = _now().isoformat()
        values: Dict[str, Any] = {"status": status, "error": _short_error(error), "updated_at": now}
        if status == PROCESSED:
            values["processed_at"] = now
        try:
            self._q().update(values).eq("topic", topic).eq("source_id", source_id).execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error("webhooks.ledger mark_failed topic=%s source_id=%s status=%s", topic, source_id, status)
            raise LedgerUnavailable() from e

    def list_recent(self, limit: int = 50, offset: int = 0, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self._q().select(LIST_COLUMNS)
        if status:
            query = query.eq("status", status)
        try:
            res = query.order("received_at", desc=True).range(offset, offset + limit - 1).execute()
        except (APIError, httpx.HTTPError) as e:
            raise LedgerUnavailable() from e
        return res.data or []

    def ping(self) -> bool:
        try:
            self._q().select("source_id").limit(1).execute()
            return True
        except (APIError, httpx.HTTPError) as e:
            logger.warning("webhooks.ledger ping_failed err=%s", e)
            return False
