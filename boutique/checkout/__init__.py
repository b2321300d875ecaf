"""
Module 'checkout' (feature-first): validation, frais de port, upsert client,
idempotence et orchestrateur panier -> draft order.
"""

from .models import CheckoutCreateRequest, CheckoutSession, CustomerInfo, LineItem
from .validation import aggregate_items, validate_customer, validate_shipping_method
from .shipping import ShippingConfig, compute_shipping, shipping_line
from .messages import translate_gateway_error, translate_gateway_errors
from .customers import upsert_customer
from .idempotency import CheckoutIdempotency
from .service import CheckoutService

__all__ = [
    # models
    "CheckoutCreateRequest",
    "CheckoutSession",
    "CustomerInfo",
    "LineItem",
    # validation
    "aggregate_items",
    "validate_customer",
    "validate_shipping_method",
    # shipping
    "ShippingConfig",
    "compute_shipping",
    "shipping_line",
    # messages
    "translate_gateway_error",
    "translate_gateway_errors",
    # services
    "upsert_customer",
    "CheckoutIdempotency",
    "CheckoutService",
]
