"""
ASGI entrypoint: expose `app` pour les process managers (uvicorn, gunicorn -k uvicorn.workers.UvicornWorker).
Toute la configuration est centralisée dans boutique.app_setup.factory.
"""

from boutique.app import app

__all__ = ["app"]
