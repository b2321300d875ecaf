"""
Cas d'usage 'payments': valide les corps de requête, choisit l'adaptateur et
met en forme les réponses JSON. Les erreurs typées remontent telles quelles
jusqu'au gestionnaire d'exceptions de l'application.
"""
import logging
from typing import Any, Dict

from boutique.errors import ValidationError
from .adapters import ManualPaymentAdapter, PayPalAdapter
from .models import (
    PaymentCompleteRequest,
    PaymentGateway,
    PayPalCallbackRequest,
    PayPalCreateOrderRequest,
    ShopPayCompleteRequest,
)

logger = logging.getLogger(__name__)


def _required_id(value: Any, field: str, message: str) -> str:
    cleaned = str(value).strip() if value is not None else ""
    if not cleaned:
        raise ValidationError(field, message)
    return cleaned


def complete_payment(
    req: PaymentCompleteRequest,
    *,
    manual: ManualPaymentAdapter,
    paypal: PayPalAdapter,
) -> Dict[str, Any]:
    """
    Finalise un draft order après paiement côté client.
    - paymentGateway=paypal: transactionId ou paypalOrderID + paypalAmount obligatoires
    - autre passerelle: identifiant de transaction libre, montant optionnel
    """
    draft_order_id = _required_id(req.draft_order_id, "draftOrderId", "draftOrderId est requis")
    gateway = (req.payment_gateway or PaymentGateway.MANUAL.value).strip().lower()
    transaction_id = req.transaction_id or req.paypal_order_id

    if gateway == PaymentGateway.PAYPAL.value:
        amount = req.paypal_amount
        authorization = paypal.authorize(
            paypal_order_id=transaction_id,
            amount=amount.value if amount else None,
            currency=amount.currency_code if amount else None,
            payer_id=req.payer_id,
            claimed_status=req.payment_status,
        )
        final = paypal.validate_and_complete(draft_order_id, authorization)
    else:
        authorization = manual.authorize(
            transaction_id=transaction_id,
            claimed_status=req.payment_status,
            amount=req.paypal_amount.value if req.paypal_amount else None,
            currency=req.paypal_amount.currency_code if req.paypal_amount else None,
            label=gateway,
        )
        final = manual.complete(draft_order_id, authorization)

    logger.info(
        "payments.complete draft_id=%s order_id=%s gateway=%s already_completed=%s",
        draft_order_id, final.order_id, gateway, final.already_completed,
    )
    return {
        "success": True,
        **final.to_payload(),
        "paymentGateway": gateway,
        "transactionId": authorization.transaction_id or None,
    }


def create_paypal_order(req: PayPalCreateOrderRequest, *, paypal: PayPalAdapter) -> Dict[str, Any]:
    checkout_id = _required_id(req.checkout_id, "checkoutId", "checkoutId est requis")
    if req.amount in (None, ""):
        raise ValidationError("amount", "amount est requis")
    return paypal.create_remote_order(checkout_id=checkout_id, amount=req.amount, currency=req.currency)


def handle_paypal_callback(req: PayPalCallbackRequest, *, paypal: PayPalAdapter) -> Dict[str, Any]:
    """
    Retour client après approbation PayPal.
    Un statut autre que COMPLETED n'entraîne aucune finalisation.
    """
    paypal_order_id = _required_id(req.order_id, "orderID", "orderID est requis")
    draft_order_id = _required_id(req.draft_order_id, "draftOrderId", "draftOrderId est requis")
    status = (req.status or "COMPLETED").upper()
    if status != "COMPLETED":
        logger.info("paypal.callback not_completed order_id=%s status=%s", paypal_order_id, status)
        return {"success": False, "status": status, "message": "Paiement PayPal non finalisé"}

    authorization = paypal.authorize(
        paypal_order_id=req.transaction_id or paypal_order_id,
        amount=req.amount,
        currency=req.currency,
        payer_id=req.payer_id,
    )
    final = paypal.validate_and_complete(draft_order_id, authorization)
    return {
        "success": True,
        **final.to_payload(),
        "paymentGateway": PaymentGateway.PAYPAL.value,
        "transactionId": authorization.transaction_id,
    }


def complete_shop_pay(req: ShopPayCompleteRequest, *, wallet: ManualPaymentAdapter) -> Dict[str, Any]:
    checkout_id = _required_id(req.checkout_id, "checkoutId", "checkoutId et paymentToken sont requis")
    payment_token = _required_id(req.payment_token, "paymentToken", "checkoutId et paymentToken sont requis")
    authorization = wallet.authorize(transaction_id=payment_token, amount=req.amount, currency=req.currency)
    final = wallet.complete(checkout_id, authorization)
    return {
        "success": True,
        "orderId": final.order_id,
        "orderName": final.name,
        "transactionId": payment_token,
        "orderUrl": f"/orders/{final.order_id}",
    }
