# module boutique.webhooks.models
"""
Événements webhook typés: union discriminée par topic.
Seuls les champs utiles sont extraits; les formes inconnues sont ignorées.
"""
import hashlib
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

PAYMENT_TOPICS = ("payments/success", "orders/paid")
ORDER_TOPICS = ("orders/create",)
PRODUCT_TOPICS = ("products/create", "products/update", "products/delete", "inventory_levels/update")
COLLECTION_TOPICS = ("collections/create", "collections/update", "collections/delete")
CATALOG_TOPICS = PRODUCT_TOPICS + COLLECTION_TOPICS


class PayloadInvalid(ValueError):
    pass


class PaymentSucceeded(BaseModel):
    kind: Literal["payment"] = "payment"
    topic: str
    draft_order_id: Optional[str] = None
    status: str = "paid"
    gateway: Optional[str] = None
    transaction_id: Optional[str] = None


class OrderCreated(BaseModel):
    kind: Literal["order"] = "order"
    topic: str
    order_id: Optional[str] = None
    name: Optional[str] = None


class CatalogChanged(BaseModel):
    kind: Literal["catalog"] = "catalog"
    topic: str
    resource: Literal["products", "collections"]
    resource_id: Optional[str] = None
    handle: Optional[str] = None

    def tags(self) -> List[str]:
        singular = "product" if self.resource == "products" else "collection"
        tags = [self.resource]
        if self.handle:
            tags.append(f"{singular}-{self.handle}")
        if self.resource_id:
            tags.append(f"{singular}-{self.resource_id}")
        return tags


class UnknownTopic(BaseModel):
    kind: Literal["unknown"] = "unknown"
    topic: str


WebhookEvent = Union[PaymentSucceeded, OrderCreated, CatalogChanged, UnknownTopic]


def normalize_topic(raw: Optional[str]) -> str:
    """'Inventory-Levels/Update' -> 'inventory_levels/update'."""
    return (raw or "").strip().lower().replace("-", "_")


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_event(topic: str, payload: Any) -> WebhookEvent:
    if not isinstance(payload, dict):
        raise PayloadInvalid("payload JSON objet attendu")
    try:
        if topic in PAYMENT_TOPICS:
            draft = payload.get("draft_order")
            draft_id = payload.get("draft_order_id") or (draft.get("id") if isinstance(draft, dict) else None)
            status = payload.get("status") or payload.get("financial_status") or "paid"
            return PaymentSucceeded(
                topic=topic,
                draft_order_id=_opt_str(draft_id),
                status=str(status).lower(),
                gateway=_opt_str(payload.get("gateway")),
                transaction_id=_opt_str(payload.get("transaction_id") or payload.get("id")),
            )
        if topic in ORDER_TOPICS:
            return OrderCreated(topic=topic, order_id=_opt_str(payload.get("id")), name=_opt_str(payload.get("name")))
        if topic in CATALOG_TOPICS:
            resource = "collections" if topic in COLLECTION_TOPICS else "products"
            resource_id = payload.get("product_id") if topic == "inventory_levels/update" else payload.get("id")
            return CatalogChanged(
                topic=topic,
                resource=resource,
                resource_id=_opt_str(resource_id),
                handle=_opt_str(payload.get("handle")),
            )
    except PydanticValidationError as exc:
        raise PayloadInvalid(str(exc)) from exc
    return UnknownTopic(topic=topic)


def resolve_source_id(headers: Mapping[str, str], payload: Any, raw_body: bytes) -> str:
    """
    Identifiant de livraison stable d'un rejeu à l'autre:
    X-Shopify-Event-Id, X-Shopify-Webhook-Id, id du payload, fin de
    admin_graphql_api_id, sinon empreinte SHA-256 du corps brut.
    """
    for header in ("x-shopify-event-id", "x-shopify-webhook-id"):
        value = (headers.get(header) or "").strip()
        if value:
            return value
    if isinstance(payload, dict):
        if payload.get("id") not in (None, ""):
            return str(payload["id"])
        gid = str(payload.get("admin_graphql_api_id") or "")
        if gid:
            return gid.rstrip("/").rsplit("/", 1)[-1]
    return hashlib.sha256(raw_body).hexdigest()
