"""
Module 'webhooks' (feature-first): authenticité HMAC, événements typés,
journal de dédoublonnage, revalidation et ingestion.
"""

from .signature import compute_signature, verify_operator_secret, verify_signature
from .models import (
    CatalogChanged,
    OrderCreated,
    PayloadInvalid,
    PaymentSucceeded,
    UnknownTopic,
    normalize_topic,
    parse_event,
    resolve_source_id,
)
from .repository import InMemoryWebhookLedger, LedgerClaim, SupabaseWebhookLedger, WebhookLedger
from .revalidation import RevalidationDispatcher
from .service import WebhookService

__all__ = [
    # signature
    "compute_signature",
    "verify_operator_secret",
    "verify_signature",
    # events
    "CatalogChanged",
    "OrderCreated",
    "PayloadInvalid",
    "PaymentSucceeded",
    "UnknownTopic",
    "normalize_topic",
    "parse_event",
    "resolve_source_id",
    # ledger
    "InMemoryWebhookLedger",
    "LedgerClaim",
    "SupabaseWebhookLedger",
    "WebhookLedger",
    # services
    "RevalidationDispatcher",
    "WebhookService",
]
