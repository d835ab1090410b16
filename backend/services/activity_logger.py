"""
Service de journalisation des activités (piste d'audit)
"""

from typing import Optional
from config import db, now_iso
import uuid


async def log_activity(
    user: dict,
    action: str,
    module: str,
    entity_id: str = None,
    entity_name: str = None,
    details: dict = None,
    ip_address: str = None,
    success: bool = True,
    agence_id: str = None
):
    """
    Enregistre une activité dans le journal d'audit

    Actions: create, update, delete, login, login_failed, logout, approve,
             reject, suspend, convert, pay, send, reminder, export, backup
    Modules: auth, agences, clients, factures, bons-commande, caisse, ...
    """
    log_entry = {
        "id": str(uuid.uuid4()),
        "user_id": user.get("id", "system"),
        "user_email": user.get("email", "system"),
        "user_nom": " ".join(p for p in [user.get("prenom"), user.get("nom")] if p) or "Système",
        "user_role": user.get("role", "system"),
        "agenceId": agence_id if agence_id is not None else user.get("agenceId"),
        "action": action,
        "module": module,
        "entity_id": entity_id,
        "entity_name": entity_name,
        "details": details or {},
        "success": success,
        "ip_address": ip_address,
        "created_at": now_iso()
    }

    await db.activity_logs.insert_one(log_entry)
    log_entry.pop("_id", None)
    return log_entry


def build_activity_query(
    agence_id: Optional[str] = None,
    action: str = None,
    module: str = None,
    user_role: str = None,
    success: Optional[bool] = None,
    date_from: str = None,
    date_to: str = None
) -> dict:
    """Filtre Mongo pour les logs d'activité"""
    query = {}

    if agence_id:
        query["agenceId"] = agence_id
    if action:
        query["action"] = action
    if module:
        query["module"] = module
    if user_role:
        query["user_role"] = user_role
    if success is not None:
        query["success"] = success
    if date_from or date_to:
        query["created_at"] = {}
        if date_from:
            query["created_at"]["$gte"] = date_from
        if date_to:
            # date seule -> fin de journée incluse
            query["created_at"]["$lte"] = date_to + "T23:59:59.999999+00:00" if len(date_to) == 10 else date_to

    return query


async def get_activity_logs(query: dict, limit: int = 100, skip: int = 0):
    """
    Récupère les logs d'activité avec filtres optionnels
    """
    logs = await db.activity_logs.find(query, {"_id": 0}) \
        .sort("created_at", -1) \
        .skip(skip) \
        .limit(limit) \
        .to_list(limit)

    total = await db.activity_logs.count_documents(query)

    return {"logs": logs, "total": total, "limit": limit, "skip": skip}
