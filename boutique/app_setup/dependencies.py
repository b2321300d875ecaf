"""
Dépendances FastAPI: accès aux clients construits par le lifespan (app.state)
et assemblage des services par requête. Les tests remplacent get_shopify,
get_paypal, get_ledger, get_revalidator et get_idempotency via
app.dependency_overrides.
"""
from typing import Optional

from fastapi import Depends, Request

from boutique import config
from boutique.checkout.idempotency import CheckoutIdempotency
from boutique.checkout.service import CheckoutService
from boutique.checkout.shipping import ShippingConfig
from boutique.infra.paypal_client import PayPalClient
from boutique.infra.shopify_client import ShopifyClient
from boutique.payments.adapters import ManualPaymentAdapter, PayPalAdapter
from boutique.payments.models import PaymentGateway
from boutique.payments.promotion import PromotionService
from boutique.webhooks.repository import WebhookLedger
from boutique.webhooks.revalidation import RevalidationDispatcher
from boutique.webhooks.service import WebhookService


def get_shopify(request: Request) -> ShopifyClient:
    return request.app.state.shopify


def get_paypal(request: Request) -> PayPalClient:
    return request.app.state.paypal


def get_ledger(request: Request) -> WebhookLedger:
    return request.app.state.ledger


def get_revalidator(request: Request) -> RevalidationDispatcher:
    return request.app.state.revalidator


def get_idempotency(request: Request) -> Optional[CheckoutIdempotency]:
    return getattr(request.app.state, "idempotency", None)


def get_shipping_config() -> ShippingConfig:
    return ShippingConfig.from_settings()


def get_promotion_service(shopify: ShopifyClient = Depends(get_shopify)) -> PromotionService:
    return PromotionService(
        shopify,
        store_currency=config.STORE_CURRENCY,
        tolerance_minor_units=config.RECONCILIATION_TOLERANCE_MINOR_UNITS,
    )


def get_checkout_service(
    shopify: ShopifyClient = Depends(get_shopify),
    shipping: ShippingConfig = Depends(get_shipping_config),
    idempotency: Optional[CheckoutIdempotency] = Depends(get_idempotency),
) -> CheckoutService:
    return CheckoutService(
        shopify,
        shipping=shipping,
        store_currency=config.STORE_CURRENCY,
        idempotency=idempotency,
    )


def get_manual_adapter(promoter: PromotionService = Depends(get_promotion_service)) -> ManualPaymentAdapter:
    return ManualPaymentAdapter(promoter, PaymentGateway.MANUAL)


def get_wallet_adapter(promoter: PromotionService = Depends(get_promotion_service)) -> ManualPaymentAdapter:
    return ManualPaymentAdapter(promoter, PaymentGateway.SHOP_PAY)


def get_paypal_adapter(
    paypal: PayPalClient = Depends(get_paypal),
    promoter: PromotionService = Depends(get_promotion_service),
) -> PayPalAdapter:
    return PayPalAdapter(paypal, promoter, brand_name=config.BRAND_NAME, domain_url=config.DOMAIN_URL)


def get_webhook_service(
    ledger: WebhookLedger = Depends(get_ledger),
    promoter: PromotionService = Depends(get_promotion_service),
    revalidator: RevalidationDispatcher = Depends(get_revalidator),
) -> WebhookService:
    return WebhookService(ledger=ledger, promoter=promoter, revalidator=revalidator)
