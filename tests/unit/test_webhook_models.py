import hashlib

import pytest

from boutique.webhooks.models import (
    CatalogChanged,
    OrderCreated,
    PayloadInvalid,
    PaymentSucceeded,
    UnknownTopic,
    normalize_topic,
    parse_event,
    resolve_source_id,
)


def test_normalize_topic():
    assert normalize_topic(" Inventory-Levels/Update ") == "inventory_levels/update"
    assert normalize_topic(None) == ""


def test_payment_event_reads_draft_id_and_status():
    event = parse_event("payments/success", {"draft_order": {"id": 1001}, "financial_status": "PAID", "gateway": "paypal"})
    assert isinstance(event, PaymentSucceeded)
    assert event.draft_order_id == "1001"
    assert event.status == "paid"
    assert event.gateway == "paypal"

    event = parse_event("orders/paid", {"draft_order_id": 7, "id": 99})
    assert event.draft_order_id == "7"
    assert event.transaction_id == "99"
    assert event.status == "paid"


def test_catalog_events_build_tags():
    event = parse_event("products/update", {"id": 12, "handle": "ananas-bio"})
    assert isinstance(event, CatalogChanged)
    assert event.tags() == ["products", "product-ananas-bio", "product-12"]

    collection = parse_event("collections/update", {"handle": "ete"})
    assert collection.tags() == ["collections", "collection-ete"]

    inventory = parse_event("inventory_levels/update", {"inventory_item_id": 5, "available": 0})
    assert inventory.tags() == ["products"]


def test_order_and_unknown_topics():
    assert isinstance(parse_event("orders/create", {"id": 3, "name": "#1003"}), OrderCreated)
    assert isinstance(parse_event("customers/create", {"id": 1}), UnknownTopic)


def test_non_object_payload_is_invalid():
    with pytest.raises(PayloadInvalid):
        parse_event("products/update", ["not", "an", "object"])


def test_source_id_precedence():
    raw = b'{"id": 5}'
    assert resolve_source_id({"x-shopify-event-id": "evt-1", "x-shopify-webhook-id": "wh-1"}, {"id": 5}, raw) == "evt-1"
    assert resolve_source_id({"x-shopify-webhook-id": "wh-1"}, {"id": 5}, raw) == "wh-1"
    assert resolve_source_id({}, {"id": 5}, raw) == "5"
    assert resolve_source_id({}, {"admin_graphql_api_id": "gid://shopify/Product/77"}, raw) == "77"
    assert resolve_source_id({}, {}, raw) == hashlib.sha256(raw).hexdigest()
