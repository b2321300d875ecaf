"""
Client de la plateforme commerce (Shopify).

- API Admin REST: clients, draft orders, commandes (X-Shopify-Access-Token)
- API Storefront GraphQL: création du panier (X-Shopify-Storefront-Access-Token)

Le client est construit par le lifespan de l'application puis injecté dans les
services; il n'existe pas d'instance globale. Chaque appel est borné par le
timeout httpx. Seules les lectures idempotentes sont rejouées (une fois).
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from boutique.errors import CredentialsMissing, GatewayRejection, GatewayUnavailable, RemoteAuthFailure

logger = logging.getLogger(__name__)

READ_RETRIES = 1

CART_CREATE_MUTATION = """
mutation cartCreate($lines: [CartLineInput!]!) {
  cartCreate(input: { lines: $lines }) {
    cart {
      id
      checkoutUrl
      cost {
        subtotalAmount { amount currencyCode }
        totalAmount { amount currencyCode }
      }
      lines(first: 100) {
        edges {
          node {
            id
            quantity
            merchandise {
              ... on ProductVariant { id title price { amount currencyCode } }
            }
          }
        }
      }
    }
    userErrors { field message }
  }
}
"""


def extract_numeric_id(gid: Any) -> str:
    """'gid://shopify/ProductVariant/123' -> '123'; un identifiant brut est renvoyé tel quel."""
    raw = str(gid or "").strip()
    if raw.startswith("gid://"):
        return raw.rstrip("/").rsplit("/", 1)[-1]
    return raw


def _error_text(response: httpx.Response) -> str:
    # Shopify renvoie {"errors": "..."} ou {"errors": {"champ": ["msg", ...]}}
    try:
        body = response.json()
    except ValueError:
        return (response.text or "")[:500]
    errors = body.get("errors") if isinstance(body, dict) else body
    if isinstance(errors, dict):
        parts = []
        for field, messages in errors.items():
            if isinstance(messages, list):
                parts.extend(f"{field} {m}" for m in messages)
            else:
                parts.append(f"{field} {messages}")
        return "; ".join(parts)
    if isinstance(errors, list):
        return "; ".join(str(e.get("message") if isinstance(e, dict) else e) for e in errors)
    return str(errors or "")[:500]


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        logger.warning("shopify.response invalid_json status=%s size=%s", response.status_code, len(response.content))
        raise GatewayRejection(remote_status=response.status_code, reason="réponse non JSON", status_code=502)


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    reason = _error_text(response)
    if status in (401, 403):
        raise RemoteAuthFailure(details={"status": status, "reason": reason})
    if status == 429 or status >= 500:
        raise GatewayUnavailable(remote_status=status, reason=reason)
    raise GatewayRejection(remote_status=status, reason=reason)


class ShopifyClient:
    def __init__(
        self,
        *,
        store_domain: str,
        admin_token: str,
        storefront_token: str,
        api_version: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.store_domain = store_domain
        self.admin_token = admin_token
        self.storefront_token = storefront_token
        self.api_version = api_version
        self._http = httpx.Client(timeout=timeout, transport=transport)

    @property
    def admin_base_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}"

    @property
    def storefront_url(self) -> str:
        return f"https://{self.store_domain}/api/{self.api_version}/graphql.json"

    @property
    def is_configured(self) -> bool:
        return bool(self.store_domain and self.admin_token and self.storefront_token)

    def close(self) -> None:
        self._http.close()

    def _require(self, value: str, setting: str) -> None:
        if not self.store_domain:
            raise CredentialsMissing("SHOPIFY_STORE_DOMAIN")
        if not value:
            raise CredentialsMissing(setting, f"{setting} n'est pas configuré. Vérifiez les variables d'environnement.")

    def _send(self, method: str, url: str, *, idempotent: bool = False, **kwargs) -> httpx.Response:
        attempts = 1 + (READ_RETRIES if idempotent else 0)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return self._http.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning("shopify.request timeout method=%s url=%s attempt=%s", method, url, attempt)
            except httpx.TransportError as e:
                last_error = e
                logger.warning("shopify.request transport_error method=%s url=%s attempt=%s err=%s", method, url, attempt, e)
        raise GatewayUnavailable(reason=str(last_error))

    def _admin(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        idempotent: bool = False,
        allow_missing: bool = False,
    ) -> Optional[Dict[str, Any]]:
        self._require(self.admin_token, "SHOPIFY_ADMIN_TOKEN")
        headers = {
            "X-Shopify-Access-Token": self.admin_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        response = self._send(
            method,
            f"{self.admin_base_url}{path}",
            headers=headers,
            json=json,
            params=params,
            idempotent=idempotent,
        )
        if response.status_code == 404 and allow_missing:
            return None
        _raise_for_status(response)
        if not response.content:
            return {}
        return _json_body(response)

    # --- Storefront ---

    def create_cart(self, lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Crée un panier Storefront.
        lines: [{"merchandiseId": "gid://shopify/ProductVariant/...", "quantity": 2}, ...]
        Les userErrors (rupture, identifiant invalide, ...) lèvent GatewayRejection
        avec le texte technique dans `reason` (traduit par l'appelant).
        """
        self._require(self.storefront_token, "SHOPIFY_STOREFRONT_TOKEN")
        headers = {
            "X-Shopify-Storefront-Access-Token": self.storefront_token,
            "Content-Type": "application/json",
        }
        response = self._send(
            "POST",
            self.storefront_url,
            headers=headers,
            json={"query": CART_CREATE_MUTATION, "variables": {"lines": lines}},
        )
        _raise_for_status(response)
        body = _json_body(response)
        if body.get("errors"):
            reason = "; ".join(str(e.get("message") or "") for e in body["errors"] if isinstance(e, dict))
            raise GatewayRejection(reason=reason)
        result = (body.get("data") or {}).get("cartCreate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            reason = "; ".join(str(e.get("message") or "") for e in user_errors)
            raise GatewayRejection(reason=reason, details={"user_errors": user_errors})
        cart = result.get("cart")
        if not cart or not cart.get("id"):
            raise GatewayRejection(reason="cartCreate: aucun panier retourné")
        return cart

    # --- Admin: clients ---

    def find_customer_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = (email or "").strip().lower()
        body = self._admin(
            "GET",
            "/customers/search.json",
            params={"query": f"email:{wanted}", "limit": 10},
            idempotent=True,
        ) or {}
        for customer in body.get("customers") or []:
            if (customer.get("email") or "").strip().lower() == wanted:
                return customer
        return None

    def create_customer(self, customer: Dict[str, Any]) -> Dict[str, Any]:
        body = self._admin("POST", "/customers.json", json={"customer": customer}) or {}
        return body.get("customer") or {}

    def update_customer(self, customer_id: str, customer: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(customer, id=int(customer_id) if str(customer_id).isdigit() else customer_id)
        body = self._admin("PUT", f"/customers/{customer_id}.json", json={"customer": payload}) or {}
        return body.get("customer") or {}

    # --- Admin: draft orders / commandes ---

    def create_draft_order(self, draft_order: Dict[str, Any]) -> Dict[str, Any]:
        body = self._admin("POST", "/draft_orders.json", json={"draft_order": draft_order}) or {}
        return body.get("draft_order") or {}

    def get_draft_order(self, draft_order_id: str) -> Optional[Dict[str, Any]]:
        body = self._admin("GET", f"/draft_orders/{draft_order_id}.json", idempotent=True, allow_missing=True)
        if body is None:
            return None
        return body.get("draft_order") or None

    def complete_draft_order(self, draft_order_id: str, *, payment_pending: bool = False) -> Dict[str, Any]:
        body = self._admin(
            "PUT",
            f"/draft_orders/{draft_order_id}/complete.json",
            params={"payment_pending": "true" if payment_pending else "false"},
        ) or {}
        return body.get("draft_order") or {}

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        body = self._admin("GET", f"/orders/{order_id}.json", idempotent=True, allow_missing=True)
        if body is None:
            return None
        return body.get("order") or None
