"""
Traduction des erreurs techniques de la plateforme en messages utilisateur.
Le texte technique d'origine est journalisé, jamais renvoyé au client.
"""
import logging
import re
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Une erreur est survenue. Veuillez réessayer dans quelques instants."

# L'ordre compte: le premier motif reconnu l'emporte
ERROR_PATTERNS = [
    (re.compile(r"Invalid id: gid://shopify/Product/", re.I),
     "Le produit sélectionné n'est plus disponible. Veuillez rafraîchir la page et réessayer."),
    (re.compile(r"Invalid id: gid://shopify/ProductVariant/", re.I),
     "La variante sélectionnée n'est plus disponible. Veuillez choisir une autre option."),
    (re.compile(r"Product.*not found", re.I),
     "Le produit demandé n'existe pas ou a été supprimé."),
    (re.compile(r"Variant.*not found", re.I),
     "La variante demandée n'existe pas ou a été supprimée."),
    (re.compile(r"Cart.*not found", re.I),
     "Votre panier n'a pas été trouvé. Veuillez rafraîchir la page."),
    (re.compile(r"Cart.*error", re.I),
     "Une erreur est survenue avec votre panier. Veuillez réessayer."),
    (re.compile(r"Invalid.*merchandise", re.I),
     "Le produit sélectionné n'est plus disponible. Veuillez choisir un autre produit."),
    (re.compile(r"Quantity.*invalid", re.I),
     "La quantité sélectionnée n'est pas valide. Veuillez vérifier votre saisie."),
    (re.compile(r"out of stock|not available|épuisé", re.I),
     "Ce produit est actuellement épuisé. Veuillez réessayer plus tard."),
]

_KNOWN_MESSAGES = {message for _, message in ERROR_PATTERNS} | {DEFAULT_MESSAGE}


def translate_gateway_error(raw: Optional[str], context: str = "") -> str:
    text = (raw or "").strip()
    if not text:
        return DEFAULT_MESSAGE
    if text in _KNOWN_MESSAGES:
        return text
    logger.warning("checkout.gateway_error context=%s raw=%s", context or "-", text)
    for pattern, message in ERROR_PATTERNS:
        if pattern.search(text):
            return message
    return DEFAULT_MESSAGE


def translate_gateway_errors(raws: Iterable[str], context: str = "") -> str:
    """Plusieurs erreurs -> messages traduits, dédoublonnés et joints."""
    messages = []
    for raw in raws:
        message = translate_gateway_error(raw, context)
        if message not in messages:
            messages.append(message)
    return " ".join(messages) if messages else DEFAULT_MESSAGE
