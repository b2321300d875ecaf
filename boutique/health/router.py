from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from boutique.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root():
    return {"ok": True}


@router.get("/ready")
def health_ready(request: Request):
    """
    État des collaborateurs (sans secrets): Shopify, PayPal, journal des webhooks,
    Redis et rate limiting. 503 si le journal ne répond pas.
    """
    state = request.app.state
    ledger = getattr(state, "ledger", None)
    ledger_ok = bool(ledger and ledger.ping())
    shopify = getattr(state, "shopify", None)
    paypal = getattr(state, "paypal", None)
    info: Dict[str, Any] = {
        "ok": ledger_ok,
        "shopify": {"configured": bool(shopify and shopify.is_configured)},
        "paypal": {"configured": bool(paypal and paypal.is_configured)},
        "ledger": {"backend": getattr(ledger, "backend", None), "ok": ledger_ok},
        "redis": {"configured": getattr(state, "redis", None) is not None},
        "rate_limit": rate_limit_health_info(request),
    }
    return JSONResponse(info, status_code=200 if ledger_ok else 503)
