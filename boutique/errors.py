"""
Taxonomie d'erreurs du tunnel de commande et des webhooks.

Chaque erreur porte un `code` stable, un `status_code` HTTP et un message
utilisateur (français). `details` reste privé: il est journalisé par la
couche HTTP (app_setup.exceptions) mais jamais renvoyé au client.
"""
from typing import Any, Dict, Optional


class CheckoutError(Exception):
    status_code = 500
    code = "checkout_error"
    transient = False
    default_message = "Une erreur est survenue. Veuillez réessayer dans quelques instants."

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class ValidationError(CheckoutError):
    status_code = 400
    code = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["field"] = self.field
        return payload


class GatewayRejection(CheckoutError):
    """La plateforme distante a refusé la requête (message déjà traduit)."""
    status_code = 400
    code = "gateway_rejection"
    transient = False

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        remote_status: Optional[int] = None,
        reason: str = "",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)
        if status_code is not None:
            self.status_code = status_code
        self.remote_status = remote_status
        # Texte technique brut renvoyé par la plateforme (jamais exposé)
        self.reason = reason


class GatewayUnavailable(GatewayRejection):
    """Délai dépassé, erreur réseau, 429 ou 5xx: l'opération a échoué de façon fermée."""
    status_code = 502
    code = "gateway_unavailable"
    transient = True
    default_message = "Le service de paiement est momentanément indisponible. Veuillez réessayer."


class AmountMismatch(CheckoutError):
    status_code = 400
    code = "amount_mismatch"
    default_message = "Le montant du paiement ne correspond pas à la commande"

    def __init__(self, expected: Any, received: Any, message: Optional[str] = None):
        super().__init__(message, details={"expected": str(expected), "received": str(received)})
        self.expected = expected
        self.received = received


class OrderNotFound(CheckoutError):
    status_code = 404
    code = "order_not_found"
    default_message = "Draft order non trouvé"


class CredentialsMissing(CheckoutError):
    status_code = 500
    code = "credentials_missing"

    def __init__(self, setting: str, message: Optional[str] = None):
        super().__init__(message or f"{setting} n'est pas configuré", details={"setting": setting})
        self.setting = setting


class RemoteAuthFailure(CheckoutError):
    status_code = 500
    code = "remote_auth_failure"
    default_message = "Authentification refusée par le service distant"


class SignatureInvalid(CheckoutError):
    status_code = 401
    code = "signature_invalid"
    default_message = "Non autorisé"


class DuplicateCheckout(CheckoutError):
    """Une création de checkout portant la même clé d'idempotence est en cours."""
    status_code = 409
    code = "duplicate_checkout"
    default_message = "Une commande est déjà en cours de création. Veuillez patienter."


class LedgerUnavailable(CheckoutError):
    """Le journal des webhooks est inaccessible: la livraison doit être rejouée."""
    status_code = 503
    code = "ledger_unavailable"
    transient = True
    default_message = "Service momentanément indisponible"
