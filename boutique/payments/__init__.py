"""
Module 'payments' (feature-first): point d'entrée public.
Réunit rapprochement des montants, promotion des draft orders, adaptateurs de
passerelles (générique, PayPal, wallet) et cas d'usage des routes.
"""

from .models import PaymentGateway, PaymentAuthorization, FinalOrderRef
from .reconciliation import Reconciliation, reconcile, ensure_reconciled
from .promotion import PromotionService, is_completed
from .adapters import ManualPaymentAdapter, PayPalAdapter
from .service import complete_payment, create_paypal_order, handle_paypal_callback, complete_shop_pay

__all__ = [
    # models
    "PaymentGateway",
    "PaymentAuthorization",
    "FinalOrderRef",
    # reconciliation
    "Reconciliation",
    "reconcile",
    "ensure_reconciled",
    # promotion
    "PromotionService",
    "is_completed",
    # adapters
    "ManualPaymentAdapter",
    "PayPalAdapter",
    # services
    "complete_payment",
    "create_paypal_order",
    "handle_paypal_callback",
    "complete_shop_pay",
]
