"""
Adaptateurs de passerelles de paiement.

Chaque adaptateur produit une PaymentAuthorization puis délègue à la promotion,
qui rapproche le montant revendiqué avant toute finalisation.
"""
import logging
from typing import Any, Dict, Optional

from boutique.errors import AmountMismatch, CredentialsMissing, GatewayRejection, ValidationError
from boutique.infra.paypal_client import PayPalClient
from boutique.money import format_amount, resolve_currency, to_decimal
from .models import FinalOrderRef, PaymentAuthorization, PaymentGateway
from .promotion import PromotionService
from .reconciliation import ensure_reconciled

logger = logging.getLogger(__name__)

PAYPAL_MISMATCH_MESSAGE = "Le montant du paiement PayPal ne correspond pas"


class ManualPaymentAdapter:
    """
    Passerelle générique: l'autorisation a lieu côté client (bouton wallet,
    redirection) et le serveur reçoit un identifiant de transaction déjà obtenu.
    Sert aussi au wallet de la plateforme (gateway=SHOP_PAY).
    """

    def __init__(self, promoter: PromotionService, gateway: PaymentGateway = PaymentGateway.MANUAL):
        self.promoter = promoter
        self.gateway = gateway

    def authorize(
        self,
        *,
        transaction_id: Optional[str],
        claimed_status: Optional[str] = None,
        amount: Any = None,
        currency: Optional[str] = None,
        label: Optional[str] = None,
    ) -> PaymentAuthorization:
        return PaymentAuthorization(
            gateway=self.gateway,
            transaction_id=(transaction_id or "").strip(),
            amount=to_decimal(amount) if amount not in (None, "") else None,
            currency=currency.upper() if currency else None,
            status=(claimed_status or "paid").lower(),
            label=label,
        )

    def complete(self, draft_order_id: str, authorization: PaymentAuthorization) -> FinalOrderRef:
        return self.promoter.promote(
            draft_order_id,
            gateway=authorization.label or authorization.gateway.value,
            transaction_id=authorization.transaction_id or None,
            claimed_status=authorization.status,
            claimed_amount=authorization.amount,
            claimed_currency=authorization.currency,
        )


class PayPalAdapter:
    def __init__(
        self,
        paypal: PayPalClient,
        promoter: PromotionService,
        *,
        brand_name: str,
        domain_url: str,
    ):
        self.paypal = paypal
        self.promoter = promoter
        self.brand_name = brand_name
        self.domain_url = domain_url.rstrip("/")

    def create_remote_order(self, *, checkout_id: str, amount: Any, currency: Optional[str] = None) -> Dict[str, Any]:
        """
        Crée l'ordre PayPal après avoir rapproché `amount` du total du draft order.
        Aucun ordre PayPal n'est créé si le montant ne correspond pas.
        """
        if not self.paypal.is_configured:
            raise CredentialsMissing("PAYPAL_CLIENT_ID", "Configuration PayPal manquante")
        value = to_decimal(amount, "amount")
        draft = self.promoter.fetch_draft(checkout_id)
        resolved = self.promoter.draft_currency(draft)
        if currency and resolve_currency(currency, resolved) != resolved:
            # La devise de l'ordre PayPal est toujours celle du draft order
            raise AmountMismatch(draft.get("total_price"), f"{amount} {currency}", "Le montant ne correspond pas à la commande")
        ensure_reconciled(
            to_decimal(draft.get("total_price"), "total_price"),
            value,
            currency=resolved,
            tolerance_minor_units=self.promoter.tolerance_minor_units,
            message="Le montant ne correspond pas à la commande",
        )
        formatted = format_amount(value, resolved)
        order = self.paypal.create_order(
            amount=formatted,
            currency=resolved,
            reference_id=str(checkout_id),
            description=f"Commande {self.brand_name} - {checkout_id}",
            brand_name=self.brand_name,
            return_url=f"{self.domain_url}/checkout/success",
            cancel_url=f"{self.domain_url}/checkout?cancelled=true",
        )
        order_id = order.get("id")
        if not order_id:
            raise GatewayRejection("Erreur lors de la création de la commande PayPal", reason="réponse sans id")
        logger.info("paypal.create_order order_id=%s checkout_id=%s amount=%s %s", order_id, checkout_id, formatted, resolved)
        return {"orderID": order_id, "checkoutId": str(checkout_id), "amount": formatted, "currency": resolved}

    def authorize(
        self,
        *,
        paypal_order_id: Optional[str],
        amount: Any,
        currency: Optional[str] = None,
        payer_id: Optional[str] = None,
        claimed_status: Optional[str] = None,
    ) -> PaymentAuthorization:
        if not paypal_order_id:
            raise ValidationError("transactionId", "transactionId ou paypalOrderID requis pour PayPal")
        if amount in (None, ""):
            raise ValidationError("paypalAmount", "Le montant PayPal est requis")
        return PaymentAuthorization(
            gateway=PaymentGateway.PAYPAL,
            transaction_id=paypal_order_id,
            amount=to_decimal(amount, "paypalAmount"),
            currency=currency.upper() if currency else None,
            status=(claimed_status or "paid").lower(),
            payer_id=payer_id,
        )

    def validate_and_complete(self, draft_order_id: str, authorization: PaymentAuthorization) -> FinalOrderRef:
        if authorization.amount is None:
            raise ValidationError("paypalAmount", "Le montant PayPal est requis")
        return self.promoter.promote(
            draft_order_id,
            gateway=PaymentGateway.PAYPAL.value,
            transaction_id=authorization.transaction_id,
            claimed_status=authorization.status,
            claimed_amount=authorization.amount,
            claimed_currency=authorization.currency,
            mismatch_message=PAYPAL_MISMATCH_MESSAGE,
        )
