"""
Lifespan FastAPI: construction et fermeture des collaborateurs distants.
- Clients Shopify et PayPal (httpx, timeout borné)
- Journal des webhooks: Supabase si configuré, mémoire sinon
- Redis (REDIS_URL): revalidation pub/sub + idempotence du checkout
- FastAPILimiter (Redis) avec options de test:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
from contextlib import asynccontextmanager

import redis
import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from boutique import config
from boutique.checkout.idempotency import CheckoutIdempotency
from boutique.infra.paypal_client import PayPalClient
from boutique.infra.shopify_client import ShopifyClient
from boutique.infra.supabase_client import create_service_supabase
from boutique.webhooks.repository import InMemoryWebhookLedger, SupabaseWebhookLedger, WebhookLedger
from boutique.webhooks.revalidation import RevalidationDispatcher

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except ImportError:
    FakeRedis = None

logger = logging.getLogger("uvicorn.error")


async def init_rate_limiter(app: FastAPI) -> None:
    """
    Configure le rate limiting et gère les fallbacks.
    - En cas d'échec de Redis et sans fallback, le rate limiting est désactivé proprement.
    """
    app.state.rate_limiter_ready = False
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            if not FakeRedis:
                raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
            r = FakeRedis(decode_responses=True)
        else:
            redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
            r = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)

        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        app.state.rate_limiter_ready = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            app.state.rate_limit_enabled = False
            logger.warning("Rate limiting disabled due to init error: %s", e)


def build_ledger() -> WebhookLedger:
    client = create_service_supabase(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
    if client is None:
        logger.warning("Webhook ledger: Supabase non configuré, journal en mémoire (non partagé entre workers)")
        return InMemoryWebhookLedger()
    logger.info("Webhook ledger: Supabase table=%s", config.WEBHOOK_LEDGER_TABLE)
    return SupabaseWebhookLedger(client, config.WEBHOOK_LEDGER_TABLE)


def build_collaborators(app: FastAPI) -> None:
    timeout = float(config.HTTP_TIMEOUT_SECONDS)
    app.state.shopify = ShopifyClient(
        store_domain=config.SHOPIFY_STORE_DOMAIN,
        admin_token=config.SHOPIFY_ADMIN_TOKEN,
        storefront_token=config.SHOPIFY_STOREFRONT_TOKEN,
        api_version=config.SHOPIFY_API_VERSION,
        timeout=timeout,
    )
    app.state.paypal = PayPalClient(
        client_id=config.PAYPAL_CLIENT_ID,
        client_secret=config.PAYPAL_CLIENT_SECRET,
        base_url=config.PAYPAL_BASE_URL,
        timeout=timeout,
    )
    app.state.ledger = build_ledger()

    redis_client = None
    if config.REDIS_URL:
        redis_client = redis.from_url(config.REDIS_URL, decode_responses=True)
    app.state.redis = redis_client
    app.state.revalidator = RevalidationDispatcher(redis_client, channel=config.REVALIDATION_CHANNEL)
    app.state.idempotency = (
        CheckoutIdempotency(redis_client, ttl_seconds=config.CHECKOUT_IDEMPOTENCY_TTL) if redis_client else None
    )
    logger.info(
        "Collaborators ready shopify=%s paypal=%s ledger=%s redis=%s",
        app.state.shopify.is_configured,
        app.state.paypal.is_configured,
        app.state.ledger.backend,
        redis_client is not None,
    )


def close_collaborators(app: FastAPI) -> None:
    for name in ("shopify", "paypal", "revalidator"):
        resource = getattr(app.state, name, None)
        if resource is None:
            continue
        try:
            resource.close()
        except Exception as e:
            logger.warning("Fermeture %s en échec: %s", name, e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_rate_limiter(app)
    build_collaborators(app)
    try:
        yield
    finally:
        close_collaborators(app)
        if app.state.rate_limiter_ready:
            await FastAPILimiter.close()
