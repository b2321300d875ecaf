"""
Orchestrateur du checkout: panier -> frais de port -> client -> draft order.

Chaque étape échoue de façon indépendante et visible; il n'y a pas de
transaction implicite ni de retour arrière. Seul l'upsert client est
best-effort.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from boutique.errors import GatewayRejection, OrderNotFound, ValidationError
from boutique.infra.shopify_client import ShopifyClient, extract_numeric_id
from boutique.money import resolve_currency, to_decimal, to_minor_units
from .customers import upsert_customer
from .idempotency import CheckoutIdempotency
from .messages import translate_gateway_error, translate_gateway_errors
from .models import (
    CartItemIn,
    CheckoutSession,
    CustomerInfo,
    LineItem,
    ShippingInfoIn,
    ShippingMethodIn,
)
from .shipping import ShippingConfig, compute_shipping, shipping_line
from .validation import aggregate_items, validate_customer, validate_shipping_method

logger = logging.getLogger(__name__)

VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"


def _as_variant_gid(merchandise_id: str) -> str:
    if merchandise_id.startswith("gid://"):
        return merchandise_id
    return f"{VARIANT_GID_PREFIX}{merchandise_id}"


class CheckoutService:
    def __init__(
        self,
        shopify: ShopifyClient,
        *,
        shipping: Optional[ShippingConfig] = None,
        store_currency: str = "EUR",
        idempotency: Optional[CheckoutIdempotency] = None,
    ):
        self.shopify = shopify
        self.shipping = shipping or ShippingConfig()
        self.store_currency = store_currency
        self.idempotency = idempotency

    def begin_checkout(
        self,
        items: Optional[List[CartItemIn]],
        customer_info: Optional[ShippingInfoIn],
        shipping_method: Optional[ShippingMethodIn],
        *,
        currency: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CheckoutSession:
        # 1) validation complète avant tout appel distant
        lines = aggregate_items(items)
        customer = validate_customer(customer_info)
        method = validate_shipping_method(shipping_method.type if shipping_method else None)
        if currency is not None:
            currency = resolve_currency(currency, self.store_currency)

        key = (idempotency_key or "").strip() or None
        if key and self.idempotency is not None:
            replay = self.idempotency.claim(key)
            if replay is not None:
                return CheckoutSession.from_payload(replay)

        try:
            session = self._create_session(lines, customer, method, currency, key)
        except Exception:
            if key and self.idempotency is not None:
                self.idempotency.release(key)
            raise

        if key and self.idempotency is not None:
            self.idempotency.store(key, session.to_payload())
        return session

    def _create_session(
        self,
        lines: List[LineItem],
        customer: CustomerInfo,
        method: str,
        currency_override: Optional[str],
        idempotency_key: Optional[str],
    ) -> CheckoutSession:
        # 2) panier
        cart = self._create_cart(lines)
        subtotal_info = (cart.get("cost") or {}).get("subtotalAmount") or {}
        cart_currency = resolve_currency(subtotal_info.get("currencyCode"), self.store_currency)
        if currency_override and currency_override != cart_currency:
            raise ValidationError("currency", "Devise non disponible pour ce panier")
        currency = cart_currency
        subtotal = to_decimal(subtotal_info.get("amount"), "subtotal")

        # 3) frais de port (configuration locale)
        shipping_cost = compute_shipping(subtotal, method, self.shipping)
        total = subtotal + shipping_cost

        # 4) client (best-effort)
        customer_id = upsert_customer(self.shopify, customer)

        # 5) draft order
        variant_ids = [extract_numeric_id(line.merchandise_id) for line in lines]
        draft_payload = self._draft_payload(lines, customer, customer_id, method, shipping_cost, currency, idempotency_key)
        try:
            draft = self.shopify.create_draft_order(draft_payload)
        except GatewayRejection as exc:
            if exc.transient:
                raise
            raise GatewayRejection(
                translate_gateway_error(exc.reason, "draftOrderCreate"),
                remote_status=exc.remote_status,
                reason=exc.reason,
                status_code=500,
            ) from exc
        if not draft.get("id"):
            raise GatewayRejection("Erreur lors de la création de la commande", status_code=500, reason="draft sans id")

        remote_total = draft.get("total_price")
        if remote_total is not None and to_minor_units(to_decimal(remote_total, "total_price"), currency) != to_minor_units(total, currency):
            # Taxes ou remises appliquées côté plateforme: le rapprochement du paiement se fera sur le total distant
            logger.warning(
                "checkout.create total_drift draft_id=%s computed=%s remote=%s",
                draft.get("id"), total, remote_total,
            )

        session = CheckoutSession(
            checkout_id=str(draft["id"]),
            cart_id=str(cart["id"]),
            customer_id=customer_id,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            total=total,
            currency=currency,
            shipping_method=method,
            invoice_url=draft.get("invoice_url"),
            variant_ids=variant_ids,
        )
        logger.info(
            "checkout.create draft_id=%s cart_id=%s customer=%s subtotal=%s shipping=%s total=%s %s",
            session.checkout_id, session.cart_id, "stored" if customer_id else "inline",
            subtotal, shipping_cost, total, currency,
        )
        return session

    def _create_cart(self, lines: List[LineItem]) -> Dict[str, Any]:
        cart_lines = [{"merchandiseId": _as_variant_gid(l.merchandise_id), "quantity": l.quantity} for l in lines]
        try:
            return self.shopify.create_cart(cart_lines)
        except GatewayRejection as exc:
            if exc.transient:
                raise
            user_errors = exc.details.get("user_errors") or []
            if user_errors:
                message = translate_gateway_errors(
                    [str(e.get("message") or "") for e in user_errors if isinstance(e, dict)], "cartCreate"
                )
            else:
                message = translate_gateway_error(exc.reason, "cartCreate")
            raise GatewayRejection(
                message,
                remote_status=exc.remote_status,
                reason=exc.reason,
                details=exc.details,
            ) from exc

    def _draft_payload(
        self,
        lines: List[LineItem],
        customer: CustomerInfo,
        customer_id: Optional[str],
        method: str,
        shipping_cost: Decimal,
        currency: str,
        idempotency_key: Optional[str],
    ) -> Dict[str, Any]:
        if customer_id:
            customer_ref: Dict[str, Any] = {"id": int(customer_id) if customer_id.isdigit() else customer_id}
        else:
            customer_ref = {
                "email": customer.email,
                "first_name": customer.first_name,
                "last_name": customer.last_name,
            }
        payload: Dict[str, Any] = {
            "line_items": [
                {"variant_id": int(extract_numeric_id(line.merchandise_id)), "quantity": line.quantity}
                for line in lines
            ],
            "customer": customer_ref,
            "email": customer.email,
            "shipping_address": customer.address_payload(),
            "shipping_line": shipping_line(method, shipping_cost, currency),
            "note": f"Checkout personnalise - {'Express' if method == 'express' else 'Standard'}",
            "use_customer_default_address": False,
        }
        if idempotency_key:
            payload["note_attributes"] = [{"name": "idempotency_key", "value": idempotency_key}]
        return payload

    def invoice_url(self, checkout_id: str) -> Dict[str, Any]:
        draft = self.shopify.get_draft_order(str(checkout_id))
        if not draft:
            raise OrderNotFound()
        return {
            "checkoutId": str(draft.get("id") or checkout_id),
            "invoiceUrl": draft.get("invoice_url"),
            "status": draft.get("status"),
        }
