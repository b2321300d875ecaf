import os

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import copy
import json
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from boutique import config
from boutique.app_setup.dependencies import (
    get_idempotency,
    get_ledger,
    get_paypal,
    get_revalidator,
    get_shopify,
)
from boutique.errors import GatewayRejection
from boutique.payments.promotion import PromotionService
from boutique.webhooks.repository import InMemoryWebhookLedger
from boutique.webhooks.revalidation import RevalidationDispatcher
from boutique.webhooks.signature import compute_signature

WEBHOOK_SECRET = "whsec-test"
OPERATOR_SECRET = "operator-test"


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class FakeShopify:
    """Plateforme commerce en mémoire: panier, clients, draft orders, commandes."""

    is_configured = True

    def __init__(self):
        self.calls: List[tuple] = []
        self.cart_subtotal = "45.00"
        self.currency = "EUR"
        self.cart_error: Optional[Exception] = None
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.drafts: Dict[str, Dict[str, Any]] = {}
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.draft_payloads: List[Dict[str, Any]] = []
        self.complete_calls = 0
        self.complete_args: List[Dict[str, Any]] = []
        self.race_on_complete = False
        self.get_draft_error: Optional[Exception] = None
        self.get_order_error: Optional[Exception] = None
        self.customer_error: Optional[Exception] = None
        self._next_id = 1000

    def _id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def add_draft(self, draft_id: str = "1001", total: str = "50.99", currency: str = "EUR", status: str = "open"):
        self.drafts[str(draft_id)] = {
            "id": int(draft_id),
            "name": f"#D{draft_id}",
            "status": status,
            "total_price": total,
            "currency": currency,
            "invoice_url": f"https://shop.example.com/invoices/{draft_id}",
            "order_id": None,
        }
        return self.drafts[str(draft_id)]

    # --- Storefront ---

    def create_cart(self, lines):
        self.calls.append(("create_cart", lines))
        if self.cart_error:
            raise self.cart_error
        return {
            "id": "gid://shopify/Cart/c1",
            "checkoutUrl": "https://shop.example.com/cart/c1",
            "cost": {"subtotalAmount": {"amount": self.cart_subtotal, "currencyCode": self.currency}},
        }

    # --- Clients ---

    def find_customer_by_email(self, email):
        self.calls.append(("find_customer_by_email", email))
        if self.customer_error:
            raise self.customer_error
        return self.customers.get(email.lower())

    def create_customer(self, customer):
        self.calls.append(("create_customer", customer))
        created = dict(customer, id=int(self._id()))
        self.customers[customer["email"].lower()] = created
        return created

    def update_customer(self, customer_id, customer):
        self.calls.append(("update_customer", customer_id, customer))
        return dict(customer, id=int(customer_id))

    # --- Draft orders / commandes ---

    def create_draft_order(self, draft_order):
        self.calls.append(("create_draft_order", draft_order))
        self.draft_payloads.append(draft_order)
        draft_id = self._id()
        shipping = Decimal(draft_order["shipping_line"]["price"])
        draft = self.add_draft(draft_id, total=str(Decimal(self.cart_subtotal) + shipping), currency=self.currency)
        return copy.deepcopy(draft)

    def get_draft_order(self, draft_order_id):
        self.calls.append(("get_draft_order", draft_order_id))
        if self.get_draft_error:
            raise self.get_draft_error
        draft = self.drafts.get(str(draft_order_id))
        return copy.deepcopy(draft) if draft else None

    def _complete(self, draft, payment_pending):
        order_id = str(5000 + len(self.orders) + 1)
        draft.update(status="completed", order_id=int(order_id))
        self.orders[order_id] = {
            "id": int(order_id),
            "order_number": 1000 + len(self.orders) + 1,
            "name": f"#{1000 + len(self.orders) + 1}",
            "financial_status": "pending" if payment_pending else "paid",
            "total_price": draft["total_price"],
            "currency": draft["currency"],
        }

    def complete_draft_order(self, draft_order_id, *, payment_pending=False):
        self.complete_calls += 1
        self.complete_args.append({"id": str(draft_order_id), "payment_pending": payment_pending})
        draft = self.drafts[str(draft_order_id)]
        if self.race_on_complete and draft["status"] != "completed":
            # Un webhook a complété le draft juste avant cet appel
            self._complete(draft, payment_pending)
        if draft["status"] == "completed":
            raise GatewayRejection(remote_status=422, reason="This order has already been paid")
        self._complete(draft, payment_pending)
        return copy.deepcopy(draft)

    def get_order(self, order_id):
        if self.get_order_error:
            raise self.get_order_error
        order = self.orders.get(str(order_id))
        return copy.deepcopy(order) if order else None

    def close(self):
        pass


class FakePayPal:
    is_configured = True

    def __init__(self):
        self.created: List[Dict[str, Any]] = []

    def create_order(self, **kwargs):
        self.created.append(kwargs)
        return {"id": f"PAYPAL-{len(self.created)}", "status": "CREATED"}

    def close(self):
        pass


class RecordingRevalidator(RevalidationDispatcher):
    def __init__(self):
        super().__init__(None)
        self.calls: List[Dict[str, Any]] = []

    def revalidate(self, tags=(), paths=()):
        out = super().revalidate(tags=tags, paths=paths)
        self.calls.append(out)
        return out


def sign(body: bytes) -> str:
    return compute_signature(body, WEBHOOK_SECRET)


@pytest.fixture()
def shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture()
def paypal() -> FakePayPal:
    return FakePayPal()


@pytest.fixture()
def ledger() -> InMemoryWebhookLedger:
    return InMemoryWebhookLedger()


@pytest.fixture()
def revalidator() -> RecordingRevalidator:
    return RecordingRevalidator()


@pytest.fixture()
def promoter(shopify) -> PromotionService:
    return PromotionService(shopify, store_currency="EUR", tolerance_minor_units=1)


@pytest.fixture(autouse=True)
def _secrets(monkeypatch):
    monkeypatch.setattr(config, "SHOPIFY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(config, "SHOPIFY_REVALIDATION_SECRET", OPERATOR_SECRET)


@pytest.fixture(scope="session")
def app():
    from boutique.app import app as fastapi_app
    return fastapi_app


@pytest.fixture()
def client(app, shopify, paypal, ledger, revalidator) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_shopify] = lambda: shopify
    app.dependency_overrides[get_paypal] = lambda: paypal
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_revalidator] = lambda: revalidator
    app.dependency_overrides[get_idempotency] = lambda: None
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def signed():
    """Construit (corps brut, en-têtes signés) pour un webhook Shopify."""
    def _signed(payload: Any, topic: Optional[str] = None, event_id: Optional[str] = None, raw: Optional[bytes] = None):
        body = raw if raw is not None else json.dumps(payload).encode("utf-8")
        headers = {"X-Shopify-Hmac-Sha256": sign(body), "Content-Type": "application/json"}
        if topic:
            headers["X-Shopify-Topic"] = topic
        if event_id:
            headers["X-Shopify-Event-Id"] = event_id
        return body, headers
    return _signed


@pytest.fixture()
def operator_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {OPERATOR_SECRET}"}
