"""
Rapprochement des montants: fonction pure, sans effet de bord.

Les deux montants sont ramenés en unités mineures de la devise (centimes pour EUR,
unités pour JPY, millièmes pour KWD) avant soustraction; un écart inférieur ou égal
à la tolérance est accepté.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from boutique.errors import AmountMismatch
from boutique.money import to_decimal, to_minor_units


@dataclass(frozen=True)
class Reconciliation:
    ok: bool
    expected_minor: int
    received_minor: int
    tolerance_minor_units: int
    currency: str

    @property
    def difference_minor(self) -> int:
        return abs(self.expected_minor - self.received_minor)


def reconcile(
    expected: Any,
    received: Any,
    tolerance_minor_units: int = 1,
    currency: str = "EUR",
) -> Reconciliation:
    if tolerance_minor_units < 0:
        raise ValueError("tolerance_minor_units doit être positif ou nul")
    expected_minor = to_minor_units(to_decimal(expected, "expected"), currency)
    received_minor = to_minor_units(to_decimal(received, "amount"), currency)
    return Reconciliation(
        ok=abs(expected_minor - received_minor) <= tolerance_minor_units,
        expected_minor=expected_minor,
        received_minor=received_minor,
        tolerance_minor_units=tolerance_minor_units,
        currency=currency,
    )


def ensure_reconciled(
    expected: Any,
    received: Any,
    *,
    currency: str,
    tolerance_minor_units: int = 1,
    message: Optional[str] = None,
) -> Reconciliation:
    """Comme reconcile(), mais lève AmountMismatch en cas d'écart."""
    result = reconcile(expected, received, tolerance_minor_units, currency)
    if not result.ok:
        raise AmountMismatch(Decimal(str(expected)), Decimal(str(received)), message)
    return result
