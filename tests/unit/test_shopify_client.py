import json

import httpx
import pytest

from boutique.errors import CredentialsMissing, GatewayRejection, GatewayUnavailable, RemoteAuthFailure
from boutique.infra.shopify_client import ShopifyClient, extract_numeric_id


def _client(handler, **overrides):
    params = dict(
        store_domain="shop.example.com",
        admin_token="admin-token",
        storefront_token="storefront-token",
        api_version="2024-10",
        transport=httpx.MockTransport(handler),
    )
    params.update(overrides)
    return ShopifyClient(**params)


def test_extract_numeric_id():
    assert extract_numeric_id("gid://shopify/ProductVariant/123") == "123"
    assert extract_numeric_id(" 456 ") == "456"


def test_get_draft_order_returns_none_on_404():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(404, json={"errors": "Not Found"})

    assert _client(handler).get_draft_order("1001") is None
    assert seen[0].url.path == "/admin/api/2024-10/draft_orders/1001.json"
    assert seen[0].headers["X-Shopify-Access-Token"] == "admin-token"


def test_complete_draft_order_sends_payment_pending():
    def handler(request):
        assert request.method == "PUT"
        assert request.url.params["payment_pending"] == "true"
        return httpx.Response(200, json={"draft_order": {"id": 1001, "status": "completed", "order_id": 5001}})

    draft = _client(handler).complete_draft_order("1001", payment_pending=True)
    assert draft["order_id"] == 5001


def test_422_is_a_rejection_with_remote_reason():
    def handler(request):
        return httpx.Response(422, json={"errors": {"base": ["This order has already been paid"]}})

    with pytest.raises(GatewayRejection) as exc:
        _client(handler).complete_draft_order("1001")
    assert exc.value.transient is False
    assert exc.value.remote_status == 422
    assert "already been paid" in exc.value.reason


@pytest.mark.parametrize("status, error", [(503, GatewayUnavailable), (429, GatewayUnavailable), (401, RemoteAuthFailure)])
def test_status_mapping(status, error):
    with pytest.raises(error):
        _client(lambda request: httpx.Response(status, json={})).create_draft_order({})


def test_reads_are_retried_once_on_transport_error():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connexion refusée", request=request)
        return httpx.Response(200, json={"order": {"id": 5001}})

    assert _client(handler).get_order("5001") == {"id": 5001}
    assert len(attempts) == 2


def test_writes_are_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ReadTimeout("timeout", request=request)

    with pytest.raises(GatewayUnavailable):
        _client(handler).create_draft_order({"line_items": []})
    assert len(attempts) == 1


def test_create_cart_user_errors():
    def handler(request):
        body = json.loads(request.content)
        assert body["variables"]["lines"][0]["quantity"] == 2
        assert request.headers["X-Shopify-Storefront-Access-Token"] == "storefront-token"
        return httpx.Response(200, json={"data": {"cartCreate": {"cart": None, "userErrors": [{"field": ["lines"], "message": "Variant out of stock"}]}}})

    with pytest.raises(GatewayRejection) as exc:
        _client(handler).create_cart([{"merchandiseId": "gid://shopify/ProductVariant/1", "quantity": 2}])
    assert exc.value.reason == "Variant out of stock"
    assert exc.value.details["user_errors"][0]["field"] == ["lines"]


def test_find_customer_by_email_is_case_insensitive():
    def handler(request):
        assert request.url.params["query"] == "email:jean@example.com"
        return httpx.Response(200, json={"customers": [{"id": 1, "email": "other@example.com"}, {"id": 2, "email": "Jean@Example.com"}]})

    assert _client(handler).find_customer_by_email("JEAN@example.com")["id"] == 2


def test_missing_credentials_fail_before_any_request():
    def handler(request):
        raise AssertionError("aucun appel attendu")

    with pytest.raises(CredentialsMissing) as exc:
        _client(handler, admin_token="").get_order("1")
    assert exc.value.setting == "SHOPIFY_ADMIN_TOKEN"
    assert _client(handler, storefront_token="").is_configured is False


def test_non_json_success_body_is_a_rejection():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(GatewayRejection) as exc:
        _client(handler).get_draft_order("1001")
    assert exc.value.status_code == 502
    assert exc.value.transient is False

    with pytest.raises(GatewayRejection):
        _client(handler).create_cart([{"merchandiseId": "gid://shopify/ProductVariant/1", "quantity": 1}])
