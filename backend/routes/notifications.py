"""
SamTech Voyages - Routes Notifications
Canaux: email (SendGrid), push (enregistrée), sms (non configuré -> echec).
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Optional
import uuid
import logging

from config import db, now_iso
from models import NotificationCreate, NOTIFICATION_STATUSES, NOTIFICATION_TYPES
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.permissions import require_active, get_agence_scope, build_agence_filter
from email_service import email_service

logger = logging.getLogger("notifications")

router = APIRouter(prefix="/notifications", tags=["Notifications"])

SMS_NOT_CONFIGURED = "Canal SMS non configuré"


def deliver(notification: dict) -> dict:
    """Envoi effectif. Retourne les champs à mettre à jour (statut, dateEnvoi, erreur)."""
    channel = notification.get("type")
    if channel == "email":
        sent = email_service.send_notification(
            notification.get("destinataire"), notification.get("titre"), notification.get("message")
        )
        if sent:
            return {"statut": "envoye", "dateEnvoi": now_iso(), "erreur": None}
        return {"statut": "echec", "dateEnvoi": None, "erreur": "Échec de l'envoi de l'email"}
    if channel == "push":
        return {"statut": "envoye", "dateEnvoi": now_iso(), "erreur": None}
    return {"statut": "echec", "dateEnvoi": None, "erreur": SMS_NOT_CONFIGURED}


def _scope_filter(user: dict, request: Request) -> dict:
    return build_agence_filter(get_agence_scope(user, request))


async def _get_notification(notification_id: str, user: dict, request: Request) -> dict:
    notification = await db.notifications.find_one(
        {"id": notification_id, **_scope_filter(user, request)}, {"_id": 0}
    )
    if not notification:
        raise HTTPException(status_code=404, detail="Notification non trouvée")
    return notification


@router.get("")
async def list_notifications(
    request: Request,
    statut: Optional[str] = None,
    type: Optional[str] = None,
    user: dict = Depends(require_active())
):
    query = _scope_filter(user, request)
    if statut:
        if statut not in NOTIFICATION_STATUSES:
            raise HTTPException(status_code=400, detail=f"Statut invalide: {statut}")
        query["statut"] = statut
    if type:
        if type not in NOTIFICATION_TYPES:
            raise HTTPException(status_code=400, detail=f"Type invalide: {type}")
        query["type"] = type

    notifications = await db.notifications.find(query, {"_id": 0}).sort("dateCreation", -1).to_list(500)
    return {"success": True, "count": len(notifications), "data": notifications}


@router.get("/stats")
async def notification_stats(request: Request, user: dict = Depends(require_active())):
    notifications = await db.notifications.find(
        _scope_filter(user, request), {"_id": 0, "statut": 1, "type": 1}
    ).to_list(10000)

    par_statut = {s: 0 for s in NOTIFICATION_STATUSES}
    par_type = {t: 0 for t in NOTIFICATION_TYPES}
    for n in notifications:
        if n.get("statut") in par_statut:
            par_statut[n["statut"]] += 1
        if n.get("type") in par_type:
            par_type[n["type"]] += 1

    return {
        "success": True,
        "data": {"total": len(notifications), "parStatut": par_statut, "parType": par_type},
    }


@router.post("", status_code=201)
async def create_notification(
    data: NotificationCreate,
    request: Request,
    user: dict = Depends(require_active())
):
    agence_id = get_agence_scope(user, request)
    notification = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        "type": data.type,
        "titre": data.titre,
        "message": data.message,
        "destinataire": data.destinataire,
        "priorite": data.priorite,
        "statut": "en_attente",
        "dateCreation": now_iso(),
        "dateEnvoi": None,
        "erreur": None,
        "created_by": user.get("email"),
    }
    if data.sendNow:
        notification.update(deliver(notification))

    await db.notifications.insert_one(notification)
    notification.pop("_id", None)

    await log_activity(
        user=user, action="create", module="notifications",
        entity_id=notification["id"], entity_name=data.titre, agence_id=agence_id,
        details={"type": data.type, "statut": notification["statut"]},
        success=notification["statut"] != "echec"
    )
    if notification["statut"] == "echec":
        await log_event(
            action="notification_failed",
            message=f"Notification {data.type} vers {data.destinataire} non envoyée: {notification['erreur']}",
            level="warning",
            module="notifications",
            entity_id=notification["id"],
            user=user.get("email"),
            agence_id=agence_id
        )

    message = {
        "envoye": "Notification envoyée",
        "echec": "Notification créée mais non envoyée",
    }.get(notification["statut"], "Notification enregistrée")
    return {"success": True, "message": message, "data": notification}


@router.post("/{notification_id}/send")
async def send_notification(
    notification_id: str,
    request: Request,
    user: dict = Depends(require_active())
):
    notification = await _get_notification(notification_id, user, request)
    if notification.get("statut") in ("envoye", "lu"):
        raise HTTPException(status_code=400, detail="Notification déjà envoyée")

    result = deliver(notification)
    await db.notifications.update_one({"id": notification_id}, {"$set": result})
    logger.info(f"[NOTIFICATION] id={notification_id} type={notification.get('type')} statut={result['statut']}")

    updated = await db.notifications.find_one({"id": notification_id}, {"_id": 0})
    return {
        "success": result["statut"] == "envoye",
        "message": "Notification envoyée" if result["statut"] == "envoye" else result["erreur"],
        "data": updated,
    }


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    request: Request,
    user: dict = Depends(require_active())
):
    await _get_notification(notification_id, user, request)
    await db.notifications.update_one(
        {"id": notification_id},
        {"$set": {"statut": "lu", "dateLecture": now_iso()}}
    )
    updated = await db.notifications.find_one({"id": notification_id}, {"_id": 0})
    return {"success": True, "message": "Notification marquée comme lue", "data": updated}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    request: Request,
    user: dict = Depends(require_active())
):
    await _get_notification(notification_id, user, request)
    await db.notifications.delete_one({"id": notification_id})
    return {"success": True, "message": "Notification supprimée", "deleted_id": notification_id}
