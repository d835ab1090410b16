"""
Service de webhooks sortants SamTech Voyages
Notifie l'URL configurée par l'agence (parametres.webhookUrl) des événements métier.

Format:
- POST {webhookUrl}
- Header X-Api-Key: clé API de l'agence
- Body: {"event": "facture.payee", "agenceId": ..., "date": ..., "data": {...}}

Un webhook en échec ne bloque jamais l'opération métier: le résultat est journalisé.
"""

import httpx
import logging

from config import db, now_iso

logger = logging.getLogger("webhooks")

WEBHOOK_TIMEOUT = 10.0


async def post_webhook(url: str, api_key: str, payload: dict) -> tuple:
    """
    Envoie le payload. Retourne (status, response).
    status: success | client_error | server_error | timeout | connection_error | failed
    """
    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT) as client:
            resp = await client.post(
                url,
                json=payload,
                headers={"X-Api-Key": api_key or "", "Content-Type": "application/json"}
            )
        if 200 <= resp.status_code < 300:
            return "success", resp.status_code
        if resp.status_code >= 500:
            logger.warning(f"[WEBHOOK] Erreur serveur {resp.status_code}: {url}")
            return "server_error", resp.status_code
        logger.warning(f"[WEBHOOK] Refusé {resp.status_code}: {url}")
        return "client_error", resp.status_code

    except httpx.TimeoutException:
        logger.warning(f"[WEBHOOK] Timeout après {WEBHOOK_TIMEOUT:.0f}s: {url}")
        return "timeout", None
    except httpx.ConnectError as e:
        logger.warning(f"[WEBHOOK] Erreur connexion {url}: {e}")
        return "connection_error", None
    except httpx.HTTPError as e:
        logger.error(f"[WEBHOOK] Erreur {url}: {e}")
        return "failed", None


async def dispatch_webhook(agence_id: str, event: str, data: dict) -> str:
    """
    Envoie l'événement si l'agence a configuré un webhook.
    Retourne le statut d'envoi, ou "skipped" sans URL configurée.
    """
    from services.event_logger import log_event

    agence = await db.agences.find_one(
        {"id": agence_id}, {"_id": 0, "parametres.webhookUrl": 1, "parametres.apiKey": 1}
    )
    params = (agence or {}).get("parametres") or {}
    url = (params.get("webhookUrl") or "").strip()
    if not url:
        return "skipped"

    payload = {"event": event, "agenceId": agence_id, "date": now_iso(), "data": data}
    status, code = await post_webhook(url, params.get("apiKey"), payload)

    if status != "success":
        await log_event(
            action="webhook_failed",
            message=f"Webhook {event} non délivré ({status}{f' HTTP {code}' if code else ''})",
            level="warning",
            module="parametres",
            entity_id=data.get("id"),
            agence_id=agence_id
        )
    return status
