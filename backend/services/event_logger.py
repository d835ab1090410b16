"""
SamTech Voyages - Event Logger

Journal système (info / success / warning / error) consulté via /api/logs.
Single function to call from any route/service.
"""

import uuid
import logging
from config import db, now_iso

logger = logging.getLogger("event_log")

LOG_LEVELS = ["info", "success", "warning", "error"]


async def log_event(
    action: str,
    message: str,
    level: str = "info",
    module: str = "",
    entity_id: str = "",
    user: str = "system",
    agence_id: str = None,
    details: dict = None
):
    """
    Write a single event to the event_log collection.

    Args:
        action: e.g. facture_created, bon_converted, backup_done, email_failed
        message: human readable line shown in the logs screen
        level: info | success | warning | error
        module: factures | caisse | agences | scheduler | ...
        entity_id: ID of the primary entity
        user: email of user performing action
        agence_id: owning agency (None for platform events)
        details: free-form dict
    """
    if level not in LOG_LEVELS:
        level = "info"

    await db.event_log.insert_one({
        "id": str(uuid.uuid4()),
        "action": action,
        "message": message,
        "level": level,
        "module": module,
        "entity_id": entity_id,
        "user": user,
        "agenceId": agence_id,
        "details": details or {},
        "created_at": now_iso()
    })

    if level == "error":
        logger.error(f"[{action}] {message}")
