"""
Montants monétaires: Decimal de bout en bout, jamais de float.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from boutique.errors import ValidationError

# Devises sans unité mineure ou à trois décimales (ISO 4217); 2 par défaut
_ZERO_DECIMAL = {
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG",
    "RWF", "UGX", "UYI", "VND", "VUV", "XAF", "XOF", "XPF",
}
_THREE_DECIMAL = {"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"}

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def minor_unit_exponent(currency: str) -> int:
    code = (currency or "").upper()
    if code in _ZERO_DECIMAL:
        return 0
    if code in _THREE_DECIMAL:
        return 3
    return 2


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Convertit une chaîne, un entier ou un Decimal en Decimal.
    Les floats sont passés par leur repr textuelle pour éviter la dérive binaire.
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(field, f"{field} est requis")
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(field, f"{field} invalide")
    if not amount.is_finite():
        raise ValidationError(field, f"{field} invalide")
    return amount


def to_minor_units(amount: Decimal, currency: str) -> int:
    exponent = minor_unit_exponent(currency)
    scaled = (amount * (Decimal(10) ** exponent)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(scaled)


def quantize(amount: Decimal, currency: str) -> Decimal:
    exponent = minor_unit_exponent(currency)
    return amount.quantize(Decimal(1).scaleb(-exponent), rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, currency: str) -> str:
    """Chaîne décimale à la précision de la devise (ex: '50.99', '1200')."""
    return str(quantize(amount, currency))


def resolve_currency(override: Optional[str], default: str) -> str:
    """Résolue une seule fois: surcharge explicite, sinon devise de la boutique."""
    code = (override or default or "").strip().upper()
    if not _CURRENCY_RE.match(code):
        raise ValidationError("currency", "Code devise invalide")
    return code
