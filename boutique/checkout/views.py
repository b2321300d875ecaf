import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header

from boutique.app_setup.dependencies import get_checkout_service, get_shipping_config
from boutique.utils.rate_limit import optional_rate_limit
from .models import CheckoutCreateRequest
from .service import CheckoutService
from .shipping import ShippingConfig

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/checkout", tags=["Checkout API"])

# module boutique.checkout.views
@router.post("/create", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout(
    body: CheckoutCreateRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    service: CheckoutService = Depends(get_checkout_service),
) -> Dict[str, Any]:
    """
    Crée le panier, le client (best-effort) et le draft order.
    - Entrée JSON: { items: [{merchandiseId, quantity}], shippingInfo: {...}, shippingMethod: {type} }
    - En-tête optionnel Idempotency-Key: un double envoi renvoie la même session
    - Erreurs: 400 validation / rejet panier, 409 création en cours, 500 plateforme
    """
    session = service.begin_checkout(
        body.items,
        body.shipping_info,
        body.shipping_method,
        currency=body.currency,
        idempotency_key=idempotency_key,
    )
    return session.to_payload()


@router.get("/shipping")
def get_shipping_info(shipping: ShippingConfig = Depends(get_shipping_config)) -> Dict[str, Any]:
    return shipping.to_payload()


@router.get("/{checkout_id}/invoice-url")
def get_invoice_url(checkout_id: str, service: CheckoutService = Depends(get_checkout_service)) -> Dict[str, Any]:
    """URL de facture Shopify d'un draft order existant (404 si introuvable)."""
    return service.invoice_url(checkout_id)
