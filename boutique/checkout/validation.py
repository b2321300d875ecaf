"""
Validation des entrées du checkout (pure, aucun appel distant).
La première violation rencontrée lève ValidationError(field, message).
"""
from typing import Dict, List, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from boutique.errors import ValidationError
from boutique.infra.shopify_client import extract_numeric_id
from .models import CartItemIn, CustomerInfo, LineItem, ShippingInfoIn

SHIPPING_METHODS = ("standard", "express")
_email_adapter = TypeAdapter(EmailStr)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _parse_quantity(raw) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def aggregate_items(items: Optional[List[CartItemIn]]) -> List[LineItem]:
    """
    Vérifie chaque ligne puis agrège les quantités par merchandiseId
    (ordre de première apparition conservé).
    """
    if not items:
        raise ValidationError("items", "Le panier est vide")
    quantities: Dict[str, int] = {}
    for index, item in enumerate(items):
        merchandise_id = _clean(item.merchandise_id)
        if not merchandise_id:
            raise ValidationError(f"items[{index}].merchandiseId", "Identifiant produit manquant")
        if not extract_numeric_id(merchandise_id).isdigit():
            raise ValidationError(f"items[{index}].merchandiseId", "Identifiant produit invalide")
        qty = _parse_quantity(item.quantity)
        if qty is None or qty <= 0:
            raise ValidationError(f"items[{index}].quantity", "La quantité doit être un entier positif")
        quantities[merchandise_id] = quantities.get(merchandise_id, 0) + qty
    return [LineItem(merchandise_id=m, quantity=q) for m, q in quantities.items()]


def validate_customer(info: Optional[ShippingInfoIn]) -> CustomerInfo:
    if info is None:
        raise ValidationError("shippingInfo", "Les informations de livraison sont requises")
    for field, value in (("email", info.email), ("firstName", info.first_name), ("lastName", info.last_name)):
        if not _clean(value):
            raise ValidationError(f"shippingInfo.{field}", "Email, prénom et nom sont requis")
    try:
        email = str(_email_adapter.validate_python(_clean(info.email)))
    except PydanticValidationError:
        raise ValidationError("shippingInfo.email", "Adresse email invalide")
    for field, value in (("address", info.address), ("city", info.city), ("postalCode", info.postal_code)):
        if not _clean(value):
            raise ValidationError(f"shippingInfo.{field}", "Adresse, ville et code postal sont requis")
    return CustomerInfo(
        email=email,
        first_name=_clean(info.first_name),
        last_name=_clean(info.last_name),
        address1=_clean(info.address),
        address2=_clean(info.address2) or None,
        city=_clean(info.city),
        postal_code=_clean(info.postal_code),
        country=_clean(info.country) or "France",
        phone=_clean(info.phone) or None,
    )


def validate_shipping_method(method_type: Optional[str]) -> str:
    method = _clean(method_type).lower() or "standard"
    if method not in SHIPPING_METHODS:
        raise ValidationError("shippingMethod.type", "Mode de livraison invalide")
    return method

