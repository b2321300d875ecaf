"""
Backend boutique: orchestration checkout -> draft order -> paiement -> commande,
et ingestion des webhooks Shopify.
"""
__version__ = "0.1.0"
