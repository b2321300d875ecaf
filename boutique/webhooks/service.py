# module boutique.webhooks.service
"""
Ingestion d'une livraison webhook déjà authentifiée:
  1) typer le payload selon le topic (topics inconnus: acquittés, pas d'entrée au journal)
  2) réserver (topic, source_id) dans le journal -> duplicate / in_progress court-circuitent
  3) dispatcher: promotion du draft order (topics paiement) ou revalidation (catalogue)
  4) marquer PROCESSED ou FAILED

Les erreurs transitoires (plateforme ou journal indisponible) remontent pour que
l'appelant renvoie un code réessayable; toutes les autres, typées ou non, sont
absorbées en FAILED et acquittées.
"""
import logging
from typing import Any, Dict, Iterable

from boutique.errors import CheckoutError
from boutique.payments.promotion import CLAIMED_STATUSES, PromotionService
from . import repository
from .models import CatalogChanged, OrderCreated, PaymentSucceeded, UnknownTopic, WebhookEvent, parse_event
from .repository import WebhookLedger
from .revalidation import RevalidationDispatcher

logger = logging.getLogger(__name__)

DEFAULT_MANUAL_TAGS = ("products", "collections")
WEBHOOK_GATEWAY = "shopify_webhook"


class WebhookService:
    def __init__(self, *, ledger: WebhookLedger, promoter: PromotionService, revalidator: RevalidationDispatcher):
        self.ledger = ledger
        self.promoter = promoter
        self.revalidator = revalidator

    def ingest(self, topic: str, source_id: str, payload: Any) -> Dict[str, Any]:
        event = parse_event(topic, payload)
        if isinstance(event, UnknownTopic):
            logger.info("webhooks.ignored topic=%s source_id=%s", topic, source_id)
            return {"status": "ignored", "topic": topic}

        claim = self.ledger.claim(topic, source_id, payload)
        if claim.outcome == repository.DUPLICATE:
            return {"status": "duplicate", "topic": topic}
        if claim.outcome == repository.IN_PROGRESS:
            logger.info("webhooks.ledger in_progress topic=%s source_id=%s", topic, source_id)
            return {"status": "in_progress", "topic": topic}

        try:
            result = self._dispatch(event)
        except CheckoutError as exc:
            self.ledger.mark(topic, source_id, repository.FAILED, error=f"{exc.code}: {exc.message}")
            if exc.transient:
                logger.warning("webhooks.transient topic=%s source_id=%s code=%s", topic, source_id, exc.code)
                raise
            logger.warning(
                "webhooks.failed topic=%s source_id=%s code=%s details=%s",
                topic, source_id, exc.code, exc.details,
            )
            return {"status": "failed", "topic": topic, "code": exc.code}
        except Exception as exc:
            # Erreur non typée: rejouer la livraison ne la corrigerait pas
            logger.exception("webhooks.unexpected_error topic=%s source_id=%s", topic, source_id)
            self.ledger.mark(topic, source_id, repository.FAILED, error=type(exc).__name__)
            return {"status": "failed", "topic": topic, "code": "internal_error"}

        self.ledger.mark(topic, source_id, repository.PROCESSED)
        logger.info("webhooks.processed topic=%s source_id=%s attempts=%s", topic, source_id, claim.attempts)
        return {"status": "processed", "topic": topic, **result}

    def _dispatch(self, event: WebhookEvent) -> Dict[str, Any]:
        if isinstance(event, PaymentSucceeded):
            return self._promote(event)
        if isinstance(event, OrderCreated):
            return self._revalidate(["orders"])
        if isinstance(event, CatalogChanged):
            return self._revalidate(event.tags())
        return {}

    def _promote(self, event: PaymentSucceeded) -> Dict[str, Any]:
        if not event.draft_order_id:
            logger.info("webhooks.payment ignored reason=no_draft topic=%s", event.topic)
            return {"action": "ignored", "reason": "draft_order_id manquant"}
        if event.status not in CLAIMED_STATUSES:
            logger.info("webhooks.payment ignored reason=status status=%s", event.status)
            return {"action": "ignored", "reason": f"statut {event.status}"}

        # Montant de la plateforme fait foi: pas de rapprochement client ici
        ref = self.promoter.promote(
            event.draft_order_id,
            gateway=event.gateway or WEBHOOK_GATEWAY,
            transaction_id=event.transaction_id,
            claimed_status=event.status,
        )
        order = ref.to_payload()
        return {
            "action": "promoted",
            "alreadyCompleted": ref.already_completed,
            "orderId": order["orderId"],
            "orderNumber": order["orderNumber"],
            "orderStatus": order["status"],
        }

    def _revalidate(self, tags: Iterable[str]) -> Dict[str, Any]:
        out = self.revalidator.revalidate(tags=tags)
        return {"revalidated": True, "tags": out["tags"], "tag": out["tags"][0] if out["tags"] else None}

    def manual_revalidate(self, tags: Iterable[str] = (), paths: Iterable[str] = ()) -> Dict[str, Any]:
        tags, paths = list(tags), list(paths)
        if not tags and not paths:
            tags = list(DEFAULT_MANUAL_TAGS)
        out = self.revalidator.revalidate(tags=tags, paths=paths)
        return {"revalidated": True, **out}
