"""
Registre central des routers (checkout, paiements, webhooks, revalidation, health).
"""
from fastapi import FastAPI

from boutique.checkout import views as checkout_views
from boutique.health.router import router as health_router
from boutique.payments import views as payments_views
from boutique.webhooks import views as webhooks_views


def register_routers(app: FastAPI) -> None:
    app.include_router(payments_views.router)
    app.include_router(checkout_views.router)
    app.include_router(webhooks_views.router)
    app.include_router(webhooks_views.revalidate_router)
    app.include_router(health_router)
