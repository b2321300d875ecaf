"""
Frais de livraison: recherche pure dans la configuration, sans appel réseau.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from boutique import config
from boutique.money import format_amount


@dataclass(frozen=True)
class ShippingConfig:
    free_shipping_threshold: Decimal = Decimal("50")
    standard_cost: Decimal = Decimal("5.99")
    express_cost: Decimal = Decimal("12.99")
    delivery_days_france: str = "3-5 jours ouvrés"
    delivery_days_international: str = "7-14 jours ouvrés"
    express_delivery_days: str = "1-2 jours ouvrés"

    @classmethod
    def from_settings(cls) -> "ShippingConfig":
        return cls(
            free_shipping_threshold=config.SHIPPING_FREE_THRESHOLD,
            standard_cost=config.SHIPPING_STANDARD_COST,
            express_cost=config.SHIPPING_EXPRESS_COST,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "freeShippingThreshold": str(self.free_shipping_threshold),
            "standardShippingCost": str(self.standard_cost),
            "expressShippingCost": str(self.express_cost),
            "deliveryDaysFrance": self.delivery_days_france,
            "deliveryDaysInternational": self.delivery_days_international,
            "expressDeliveryDays": self.express_delivery_days,
        }


def compute_shipping(subtotal: Decimal, method: str, shipping: ShippingConfig) -> Decimal:
    # Livraison offerte au-delà du seuil, quel que soit le mode
    if subtotal >= shipping.free_shipping_threshold:
        return Decimal("0")
    if method == "express":
        return shipping.express_cost
    return shipping.standard_cost


def shipping_line(method: str, cost: Decimal, currency: str) -> Dict[str, str]:
    title = "Livraison express" if method == "express" else "Livraison standard"
    return {"title": title, "price": format_amount(cost, currency)}
