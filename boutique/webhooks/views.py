import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from boutique import config
from boutique.app_setup.dependencies import get_ledger, get_webhook_service
from boutique.errors import CheckoutError, SignatureInvalid, ValidationError
from .models import CATALOG_TOPICS, PayloadInvalid, normalize_topic, resolve_source_id
from .repository import STATUSES, WebhookLedger
from .service import WebhookService
from .signature import verify_operator_secret, verify_signature

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])
revalidate_router = APIRouter(prefix="/api", tags=["Revalidation"])

SIGNATURE_HEADER = "x-shopify-hmac-sha256"


def _require_operator(request: Request) -> None:
    if not verify_operator_secret(request.headers, config.SHOPIFY_REVALIDATION_SECRET):
        logger.warning("webhooks.operator_denied path=%s", request.url.path)
        raise SignatureInvalid()


async def _ingest(
    request: Request,
    service: WebhookService,
    default_topic: Optional[str] = None,
    allow_operator: bool = False,
):
    """
    Chaîne commune: corps brut -> signature -> JSON -> topic -> journal + dispatch.
    - 401 si signature absente/invalide (aucune entrée au journal)
    - 200 pour tout le reste, y compris topics inconnus et payload illisible
    - 400 si le topic manque sur /revalidate (appel opérateur)
    - 503 si la plateforme ou le journal est momentanément indisponible (Shopify réessaiera)
    """
    raw = await request.body()
    operator = False
    if not verify_signature(raw, request.headers.get(SIGNATURE_HEADER), config.SHOPIFY_WEBHOOK_SECRET):
        if allow_operator and verify_operator_secret(request.headers, config.SHOPIFY_REVALIDATION_SECRET):
            operator = True
        else:
            logger.warning("webhooks.signature_invalid path=%s", request.url.path)
            raise SignatureInvalid()

    try:
        payload = json.loads(raw) if raw else {}
    except ValueError:
        logger.warning("webhooks.invalid_json path=%s size=%s", request.url.path, len(raw))
        return {"status": "invalid_payload", "topic": normalize_topic(request.headers.get("x-shopify-topic"))}

    body_topic = payload.get("topic") if isinstance(payload, dict) else None
    topic = normalize_topic(request.headers.get("x-shopify-topic") or body_topic or default_topic)
    if not topic:
        if allow_operator:
            raise ValidationError("topic", "Topic manquant")
        # Livraison Shopify sans topic: acquittée pour éviter les rejeux
        logger.warning("webhooks.missing_topic path=%s", request.url.path)
        return {"status": "ignored", "topic": None}
    if operator and topic not in CATALOG_TOPICS:
        logger.warning("webhooks.operator_topic_denied topic=%s", topic)
        raise SignatureInvalid()

    source_id = resolve_source_id(request.headers, payload, raw)
    try:
        return await run_in_threadpool(service.ingest, topic, source_id, payload)
    except PayloadInvalid as e:
        logger.warning("webhooks.invalid_payload topic=%s err=%s", topic, e)
        return {"status": "invalid_payload", "topic": topic}
    except CheckoutError as e:
        if not e.transient:
            raise
        return JSONResponse(status_code=503, content={"status": "retry", "topic": topic, "code": e.code})


# module boutique.webhooks.views
@router.post("/shopify")
async def shopify_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    """Point d'entrée générique: topic depuis X-Shopify-Topic (ou champ 'topic' du corps)."""
    return await _ingest(request, service)


@router.post("/payments/success")
async def payments_success_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    return await _ingest(request, service, default_topic="payments/success")


@router.post("/orders/create")
async def orders_create_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    return await _ingest(request, service, default_topic="orders/create")


@router.post("/products/update")
async def products_update_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    return await _ingest(request, service, default_topic="products/update")


@router.post("/inventory-levels/update")
async def inventory_levels_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    return await _ingest(request, service, default_topic="inventory_levels/update")


@router.post("/revalidate")
async def revalidate_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    """
    Revalidation catalogue: signature HMAC Shopify ou secret opérateur.
    Le secret opérateur n'autorise que les topics catalogue.
    """
    return await _ingest(request, service, allow_operator=True)


@router.get("/events")
def list_webhook_events(
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    status: Optional[str] = None,
    ledger: WebhookLedger = Depends(get_ledger),
) -> Dict[str, Any]:
    """Dernières entrées du journal (sans payload brut). Accès opérateur uniquement."""
    _require_operator(request)
    if status is not None and status.upper() not in STATUSES:
        raise ValidationError("status", "Statut inconnu")
    items = ledger.list_recent(limit=limit, offset=offset, status=status.upper() if status else None)
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if v]
    raise ValidationError("tags", "Format de tag invalide")


@revalidate_router.post("/revalidate")
async def manual_revalidate(request: Request, service: WebhookService = Depends(get_webhook_service)):
    """
    Revalidation manuelle (opérateur): corps optionnel {tag?, tags?, path?}.
    Sans cible, revalide 'products' et 'collections'.
    """
    _require_operator(request)
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        raise ValidationError("body", "JSON invalide")
    if not isinstance(body, dict):
        raise ValidationError("body", "JSON invalide")

    tags = _as_list(body.get("tag")) + _as_list(body.get("tags"))
    paths = _as_list(body.get("path")) + _as_list(body.get("paths"))
    logger.info("webhooks.manual_revalidate tags=%s paths=%s", tags, paths)
    return await run_in_threadpool(service.manual_revalidate, tags, paths)
