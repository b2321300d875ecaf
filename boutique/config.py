# boutique.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Shopify, PayPal, Supabase, Redis)
- Expose la configuration de livraison et de rapprochement des montants
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _decimal_env(name: str, default: str) -> Decimal:
    raw = _clean_env(os.getenv(name) or "") or default
    return Decimal(raw)

def _int_env(name: str, default: int) -> int:
    raw = _clean_env(os.getenv(name) or "")
    return int(raw) if raw.lstrip("-").isdigit() else default

# Shopify: domaine de la boutique (sans schéma), tokens Admin/Storefront
SHOPIFY_STORE_DOMAIN = _clean_env(os.getenv("SHOPIFY_STORE_DOMAIN") or "")
if "://" in SHOPIFY_STORE_DOMAIN:
    SHOPIFY_STORE_DOMAIN = SHOPIFY_STORE_DOMAIN.split("://", 1)[1]
SHOPIFY_STORE_DOMAIN = SHOPIFY_STORE_DOMAIN.rstrip("/")
SHOPIFY_ADMIN_TOKEN = _clean_env(os.getenv("SHOPIFY_ADMIN_TOKEN") or "")
SHOPIFY_STOREFRONT_TOKEN = _clean_env(os.getenv("SHOPIFY_STOREFRONT_TOKEN") or "")
SHOPIFY_API_VERSION = _clean_env(os.getenv("SHOPIFY_API_VERSION") or "") or "2024-10"

# Webhooks: secret HMAC partagé avec Shopify et secret opérateur de revalidation
SHOPIFY_WEBHOOK_SECRET = _clean_env(os.getenv("SHOPIFY_WEBHOOK_SECRET") or "")
SHOPIFY_REVALIDATION_SECRET = _clean_env(os.getenv("SHOPIFY_REVALIDATION_SECRET") or "")

# PayPal: identifiants client-credentials et environnement (sandbox par défaut)
PAYPAL_CLIENT_ID = _clean_env(os.getenv("PAYPAL_CLIENT_ID") or "")
PAYPAL_CLIENT_SECRET = _clean_env(os.getenv("PAYPAL_CLIENT_SECRET") or "")
PAYPAL_ENV = (_clean_env(os.getenv("PAYPAL_ENV") or "") or "sandbox").lower()
PAYPAL_BASE_URL = (
    "https://api.paypal.com" if PAYPAL_ENV in ("production", "live") else "https://api.sandbox.paypal.com"
)

# URLs publiques (retour/annulation PayPal)
DOMAIN_URL = (_clean_env(os.getenv("DOMAIN_URL") or "") or "http://localhost:8000").rstrip("/")
BRAND_NAME = _clean_env(os.getenv("BRAND_NAME") or "") or "JOLANANAS"

# Devise de la boutique (code ISO 4217)
STORE_CURRENCY = (_clean_env(os.getenv("STORE_CURRENCY") or "") or "EUR").upper()

# Délai maximal des appels distants (secondes), borné à [1, 30]
HTTP_TIMEOUT_SECONDS = min(max(_int_env("HTTP_TIMEOUT_SECONDS", 10), 1), 30)

# Livraison: seuil de gratuité et tarifs forfaitaires
SHIPPING_FREE_THRESHOLD = _decimal_env("SHIPPING_FREE_THRESHOLD", "50")
SHIPPING_STANDARD_COST = _decimal_env("SHIPPING_STANDARD_COST", "5.99")
SHIPPING_EXPRESS_COST = _decimal_env("SHIPPING_EXPRESS_COST", "12.99")

# Tolérance du rapprochement des montants (en unités mineures de la devise)
RECONCILIATION_TOLERANCE_MINOR_UNITS = _int_env("RECONCILIATION_TOLERANCE_MINOR_UNITS", 1)

# Durée de conservation des clés d'idempotence du checkout (secondes)
CHECKOUT_IDEMPOTENCY_TTL = _int_env("CHECKOUT_IDEMPOTENCY_TTL", 15 * 60)

# Supabase: journal des webhooks (service role, côté serveur uniquement)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
SUPABASE_URL = SUPABASE_URL.rstrip("/")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")
WEBHOOK_LEDGER_TABLE = _clean_env(os.getenv("WEBHOOK_LEDGER_TABLE") or "") or "webhook_events"

# Redis: diffusion des invalidations de cache et clés d'idempotence du checkout
REDIS_URL = _clean_env(os.getenv("REDIS_URL") or "")
REVALIDATION_CHANNEL = _clean_env(os.getenv("REVALIDATION_CHANNEL") or "") or "storefront:revalidate"

# CORS / hôtes
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
