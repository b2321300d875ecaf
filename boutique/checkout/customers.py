"""
Upsert client best-effort: recherche par email (insensible à la casse), mise à
jour si trouvé, création sinon. Toute erreur distante renvoie None et le
checkout continue avec une référence client inline.
"""
import logging
from typing import Optional

from boutique.errors import CheckoutError
from boutique.infra.shopify_client import ShopifyClient
from .models import CustomerInfo

logger = logging.getLogger(__name__)


def upsert_customer(shopify: ShopifyClient, customer: CustomerInfo) -> Optional[str]:
    contact = {
        "email": customer.email,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "phone": customer.phone,
        "addresses": [customer.address_payload()],
    }
    contact = {k: v for k, v in contact.items() if v}
    try:
        existing = shopify.find_customer_by_email(customer.email)
        if existing and existing.get("id"):
            customer_id = str(existing["id"])
            # L'adresse existante n'est pas dupliquée: seul le contact est mis à jour
            shopify.update_customer(customer_id, {k: v for k, v in contact.items() if k != "addresses"})
            logger.info("checkout.customer updated customer_id=%s", customer_id)
            return customer_id
        created = shopify.create_customer(contact)
    except CheckoutError as exc:
        logger.warning("checkout.customer upsert_failed code=%s reason=%s", exc.code, getattr(exc, "reason", ""))
        return None

    customer_id = created.get("id")
    if not customer_id:
        logger.warning("checkout.customer create_returned_no_id")
        return None
    logger.info("checkout.customer created customer_id=%s", customer_id)
    return str(customer_id)
