"""
Promotion d'un draft order en commande finale.

Étapes:
  1) relire le draft order (jamais de copie en cache) -> OrderNotFound si absent
  2) rapprocher le montant revendiqué par le client, s'il y en a un
  3) appeler la finalisation côté plateforme (une seule tentative)
  4) enrichir avec la commande finale (best-effort)

Idempotence: aucun état local. Un draft déjà complété renvoie la même référence,
et une réponse "already completed" de la plateforme (course avec un webhook) est
traitée comme un succès.
"""
import logging
import re
from typing import Any, Dict, Optional

from boutique.errors import AmountMismatch, CheckoutError, GatewayRejection, OrderNotFound, ValidationError
from boutique.infra.shopify_client import ShopifyClient
from boutique.money import format_amount, resolve_currency, to_decimal
from .models import FinalOrderRef
from .reconciliation import ensure_reconciled

logger = logging.getLogger(__name__)

CLAIMED_STATUSES = ("paid", "pending")
_ALREADY_COMPLETED = re.compile(r"already\s+(been\s+)?(completed|paid)|has been completed|déjà", re.IGNORECASE)


def is_completed(draft: Dict[str, Any]) -> bool:
    return (draft.get("status") or "").lower() == "completed" and bool(draft.get("order_id"))


class PromotionService:
    def __init__(self, shopify: ShopifyClient, *, store_currency: str = "EUR", tolerance_minor_units: int = 1):
        self.shopify = shopify
        self.store_currency = store_currency
        self.tolerance_minor_units = tolerance_minor_units

    def fetch_draft(self, draft_order_id: str) -> Dict[str, Any]:
        draft = self.shopify.get_draft_order(str(draft_order_id))
        if not draft:
            raise OrderNotFound()
        return draft

    def draft_currency(self, draft: Dict[str, Any]) -> str:
        return resolve_currency(draft.get("currency"), self.store_currency)

    def promote(
        self,
        draft_order_id: str,
        *,
        gateway: str,
        transaction_id: Optional[str],
        claimed_status: str = "paid",
        claimed_amount: Any = None,
        claimed_currency: Optional[str] = None,
        mismatch_message: Optional[str] = None,
    ) -> FinalOrderRef:
        status = (claimed_status or "paid").lower()
        if status not in CLAIMED_STATUSES:
            raise ValidationError("paymentStatus", "Statut de paiement invalide")

        draft = self.fetch_draft(draft_order_id)
        if is_completed(draft):
            logger.info(
                "payments.promote already_completed draft_id=%s order_id=%s gateway=%s",
                draft_order_id, draft.get("order_id"), gateway,
            )
            return self._final_ref(draft, already_completed=True)

        if claimed_currency and claimed_currency.upper() != self.draft_currency(draft):
            raise AmountMismatch(draft.get("total_price"), claimed_amount, mismatch_message)
        if claimed_amount is not None:
            ensure_reconciled(
                to_decimal(draft.get("total_price"), "total_price"),
                to_decimal(claimed_amount),
                currency=self.draft_currency(draft),
                tolerance_minor_units=self.tolerance_minor_units,
                message=mismatch_message,
            )

        try:
            completed = self.shopify.complete_draft_order(str(draft_order_id), payment_pending=status == "pending")
        except GatewayRejection as exc:
            if exc.transient or not _ALREADY_COMPLETED.search(exc.reason or ""):
                raise
            # Un autre appel (webhook ou double clic) a complété le draft entre-temps
            logger.info("payments.promote race_already_completed draft_id=%s", draft_order_id)
            completed = self.fetch_draft(draft_order_id)
            if not is_completed(completed):
                raise
            return self._final_ref(completed, already_completed=True)

        if not completed.get("order_id"):
            raise GatewayRejection(
                "Erreur lors de la finalisation de la commande",
                status_code=500,
                reason="draft order complété sans order_id",
            )
        logger.info(
            "payments.promote completed draft_id=%s order_id=%s gateway=%s transaction_id=%s status=%s",
            draft_order_id, completed.get("order_id"), gateway, transaction_id, status,
        )
        return self._final_ref(completed)

    def _final_ref(self, draft: Dict[str, Any], *, already_completed: bool = False) -> FinalOrderRef:
        order_id = str(draft.get("order_id"))
        order: Optional[Dict[str, Any]] = None
        try:
            order = self.shopify.get_order(order_id)
        except CheckoutError as exc:
            logger.warning("payments.promote enrichment_failed order_id=%s code=%s", order_id, exc.code)

        source = order or draft
        currency = self.draft_currency(source)
        total = to_decimal(source.get("total_price") or draft.get("total_price") or "0", "total_price")
        order_number = (order or {}).get("order_number")
        return FinalOrderRef(
            order_id=str((order or {}).get("id") or order_id),
            draft_order_id=str(draft.get("id") or ""),
            order_number=str(order_number) if order_number is not None else None,
            name=(order or {}).get("name") or draft.get("name"),
            status=(order or {}).get("financial_status") or draft.get("status") or "completed",
            total=format_amount(total, currency),
            currency=currency,
            already_completed=already_completed,
        )
