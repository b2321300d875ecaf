import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from boutique.app_setup.dependencies import get_manual_adapter, get_paypal_adapter, get_wallet_adapter
from boutique.utils.rate_limit import optional_rate_limit
from . import service as payments_service
from .adapters import ManualPaymentAdapter, PayPalAdapter
from .models import (
    PaymentCompleteRequest,
    PayPalCallbackRequest,
    PayPalCreateOrderRequest,
    ShopPayCompleteRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/checkout/payment", tags=["Payments API"])

# module boutique.payments.views
@router.post("/complete")
def complete_payment(
    body: PaymentCompleteRequest,
    manual: ManualPaymentAdapter = Depends(get_manual_adapter),
    paypal: PayPalAdapter = Depends(get_paypal_adapter),
) -> Dict[str, Any]:
    """
    Finalise un draft order après paiement (passerelle générique ou PayPal).
    - draftOrderId obligatoire; PayPal: transactionId/paypalOrderID + paypalAmount
    - Erreurs: 400 montant/validation, 404 draft introuvable, 500 finalisation
    """
    return payments_service.complete_payment(body, manual=manual, paypal=paypal)


@router.post("/paypal/create-order", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_paypal_order(
    body: PayPalCreateOrderRequest,
    paypal: PayPalAdapter = Depends(get_paypal_adapter),
) -> Dict[str, Any]:
    """Crée l'ordre PayPal (intent CAPTURE) après rapprochement avec le draft order."""
    return payments_service.create_paypal_order(body, paypal=paypal)


@router.post("/paypal/callback")
def paypal_callback(
    body: PayPalCallbackRequest,
    paypal: PayPalAdapter = Depends(get_paypal_adapter),
) -> Dict[str, Any]:
    return payments_service.handle_paypal_callback(body, paypal=paypal)


@router.post("/shop-pay/complete")
def shop_pay_complete(
    body: ShopPayCompleteRequest,
    wallet: ManualPaymentAdapter = Depends(get_wallet_adapter),
) -> Dict[str, Any]:
    return payments_service.complete_shop_pay(body, wallet=wallet)
