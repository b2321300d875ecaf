from typing import Optional
from supabase import create_client, Client


def create_service_supabase(url: str, service_key: str) -> Optional[Client]:
    """
    Client Supabase 'service role' pour le journal des webhooks.
    Retourne None si l'URL ou la clé manquent (le lifespan bascule alors sur le journal mémoire).
    Aucune instance globale: le lifespan construit le client et le transmet au repository.
    """
    if not url or not service_key:
        return None
    return create_client(url, service_key)
