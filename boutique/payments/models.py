# module boutique.payments.models
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PaymentGateway(str, Enum):
    MANUAL = "manual"
    PAYPAL = "paypal"
    SHOP_PAY = "shop_pay"


@dataclass(frozen=True)
class PaymentAuthorization:
    """Autorisation obtenue par un adaptateur; consommée une seule fois par la promotion."""
    gateway: PaymentGateway
    transaction_id: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    status: str = "paid"
    payer_id: Optional[str] = None
    # Libellé transmis par le client (ex: "stripe" pour une passerelle générique)
    label: Optional[str] = None


@dataclass(frozen=True)
class FinalOrderRef:
    order_id: str
    draft_order_id: str
    order_number: Optional[str]
    name: Optional[str]
    status: str
    total: str
    currency: str
    already_completed: bool = field(default=False, compare=False)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "orderNumber": self.order_number or self.name,
            "status": self.status,
            "total": self.total,
            "currency": self.currency,
        }


# --- Corps de requêtes (API JSON) ---

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PayPalAmount(_Body):
    value: Any = None
    currency_code: Optional[str] = None


class PaymentCompleteRequest(_Body):
    draft_order_id: Optional[Union[str, int]] = Field(default=None, alias="draftOrderId")
    payment_gateway: Optional[str] = Field(default=None, alias="paymentGateway")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    paypal_order_id: Optional[str] = Field(default=None, alias="paypalOrderID")
    paypal_amount: Optional[PayPalAmount] = Field(default=None, alias="paypalAmount")
    payer_id: Optional[str] = Field(default=None, alias="payerID")


class PayPalCreateOrderRequest(_Body):
    checkout_id: Optional[Union[str, int]] = Field(default=None, alias="checkoutId")
    amount: Any = None
    currency: Optional[str] = None


class PayPalCallbackRequest(_Body):
    order_id: Optional[str] = Field(default=None, alias="orderID")
    draft_order_id: Optional[Union[str, int]] = Field(default=None, alias="draftOrderId")
    status: Optional[str] = None
    amount: Any = None
    currency: Optional[str] = None
    transaction_id: Optional[str] = Field(default=None, alias="transactionID")
    payer_id: Optional[str] = Field(default=None, alias="payerID")


class ShopPayCompleteRequest(_Body):
    checkout_id: Optional[Union[str, int]] = Field(default=None, alias="checkoutId")
    payment_token: Optional[str] = Field(default=None, alias="paymentToken")
    amount: Any = None
    currency: Optional[str] = None
