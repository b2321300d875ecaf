"""
Adaptateur HTTP PayPal (API REST v2 Orders).

- Jeton OAuth2 client-credentials obtenu à chaque opération (durée de vie courte,
  jamais persisté entre requêtes)
- Création d'ordre intent=CAPTURE, une seule tentative par requête logique
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from boutique.errors import CredentialsMissing, GatewayRejection, GatewayUnavailable, RemoteAuthFailure

logger = logging.getLogger(__name__)


class PayPalClient:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(timeout=timeout, transport=transport)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def close(self) -> None:
        self._http.close()

    def get_access_token(self) -> str:
        if not self.is_configured:
            raise CredentialsMissing("PAYPAL_CLIENT_ID", "Configuration PayPal manquante")
        try:
            response = self._http.post(
                f"{self.base_url}/v1/oauth2/token",
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            # Échec fermé: sans jeton, aucune opération PayPal n'est tentée
            logger.warning("paypal.token transport_error err=%s", e)
            raise RemoteAuthFailure(details={"reason": str(e)})
        if response.status_code >= 400:
            logger.warning("paypal.token rejected status=%s", response.status_code)
            raise RemoteAuthFailure(details={"status": response.status_code})
        token = (response.json() or {}).get("access_token")
        if not token:
            raise RemoteAuthFailure(details={"reason": "access_token absent"})
        return token

    def create_order(
        self,
        *,
        amount: str,
        currency: str,
        reference_id: str,
        description: str,
        brand_name: str,
        return_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """
        Crée un ordre PayPal et retourne le JSON PayPal ({"id": ..., "status": "CREATED", ...}).
        reference_id / custom_id portent l'identifiant du draft order pour la traçabilité.
        """
        token = self.get_access_token()
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference_id,
                    "custom_id": reference_id,
                    "description": description,
                    "amount": {"currency_code": currency, "value": amount},
                }
            ],
            "application_context": {
                "brand_name": brand_name,
                "landing_page": "BILLING",
                "user_action": "PAY_NOW",
                "return_url": return_url,
                "cancel_url": cancel_url,
            },
        }
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "PayPal-Request-Id": f"{reference_id}-{int(time.time() * 1000)}",
        }
        try:
            response = self._http.post(f"{self.base_url}/v2/checkout/orders", json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("paypal.create_order transport_error reference_id=%s err=%s", reference_id, e)
            raise GatewayUnavailable(reason=str(e))

        status = response.status_code
        if status in (401, 403):
            raise RemoteAuthFailure(details={"status": status})
        if status == 429 or status >= 500:
            raise GatewayUnavailable(remote_status=status, reason=response.text[:500])
        if status >= 400:
            raise GatewayRejection(
                "Erreur lors de la création de la commande PayPal",
                remote_status=status,
                reason=response.text[:500],
            )
        try:
            return response.json() or {}
        except ValueError:
            logger.warning("paypal.create_order invalid_json reference_id=%s status=%s", reference_id, status)
            raise GatewayRejection(
                "Erreur lors de la création de la commande PayPal",
                remote_status=status,
                reason="réponse non JSON",
                status_code=502,
            )
