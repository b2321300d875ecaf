# module boutique.checkout.models
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from boutique.money import format_amount


# --- Corps de requête (volontairement permissifs: la validation métier
# produit des erreurs par champ dans checkout.validation) ---

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CartItemIn(_Body):
    merchandise_id: Optional[str] = Field(default=None, alias="merchandiseId")
    quantity: Any = None


class ShippingInfoIn(_Body):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = Field(default=None, alias="postalCode")
    country: Optional[str] = None


class ShippingMethodIn(_Body):
    type: Optional[str] = None


class CheckoutCreateRequest(_Body):
    items: Optional[List[CartItemIn]] = None
    shipping_info: Optional[ShippingInfoIn] = Field(default=None, alias="shippingInfo")
    shipping_method: Optional[ShippingMethodIn] = Field(default=None, alias="shippingMethod")
    currency: Optional[str] = None


# --- Objets métier ---

@dataclass(frozen=True)
class LineItem:
    merchandise_id: str
    quantity: int


@dataclass(frozen=True)
class CustomerInfo:
    email: str
    first_name: str
    last_name: str
    address1: str
    city: str
    postal_code: str
    country: str = "France"
    address2: Optional[str] = None
    phone: Optional[str] = None

    def address_payload(self) -> Dict[str, Any]:
        address = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "zip": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }
        return {k: v for k, v in address.items() if v}


@dataclass(frozen=True)
class CheckoutSession:
    checkout_id: str
    cart_id: str
    customer_id: Optional[str]
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    currency: str
    shipping_method: str
    invoice_url: Optional[str] = None
    variant_ids: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "checkoutId": self.checkout_id,
            "cartId": self.cart_id,
            "customerId": self.customer_id,
            "total": format_amount(self.total, self.currency),
            "subtotal": format_amount(self.subtotal, self.currency),
            "shippingCost": format_amount(self.shipping_cost, self.currency),
            "currency": self.currency,
            "invoiceUrl": self.invoice_url,
            "paymentUrl": self.invoice_url,
            "shippingMethod": self.shipping_method,
            "variantIds": list(self.variant_ids),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CheckoutSession":
        return cls(
            checkout_id=str(payload["checkoutId"]),
            cart_id=str(payload["cartId"]),
            customer_id=payload.get("customerId"),
            subtotal=Decimal(payload["subtotal"]),
            shipping_cost=Decimal(payload["shippingCost"]),
            total=Decimal(payload["total"]),
            currency=payload["currency"],
            shipping_method=payload.get("shippingMethod") or "standard",
            invoice_url=payload.get("invoiceUrl"),
            variant_ids=list(payload.get("variantIds") or []),
        )
