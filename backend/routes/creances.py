"""
SamTech Voyages - Routes Créances
Créance = facture en_retard, ou envoyee dont l'échéance est dépassée.
Relance par email (SendGrid) au client + horodatage lastReminder.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from datetime import datetime, timezone

from config import db, now_iso, parse_iso
from models import ReminderRequest
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.billing import (
    UNPAID_STATUSES, is_creance, days_late, creance_stats, attach_clients, client_ref,
)
from services.permissions import require_permission, get_agence_scope, build_agence_filter
from email_service import email_service

router = APIRouter(prefix="/creances", tags=["Créances"])

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


async def _load_creances(scope_filter: dict) -> list:
    candidates = await db.factures.find(
        {**scope_filter, "statut": {"$in": UNPAID_STATUSES}}, {"_id": 0}
    ).to_list(2000)
    now = datetime.now(timezone.utc)
    return [f for f in candidates if is_creance(f, now)]


@router.get("")
async def list_creances(
    request: Request,
    user: dict = Depends(require_permission("factures", "lire"))
):
    """Factures impayées échues, la plus ancienne échéance en premier"""
    scope = get_agence_scope(user, request)
    creances = await _load_creances(build_agence_filter(scope))

    now = datetime.now(timezone.utc)
    for f in creances:
        f["joursRetard"] = days_late(f, now)
    creances.sort(key=lambda f: parse_iso(f.get("dateEcheance")) or _FAR_FUTURE)

    await attach_clients(creances, with_phone=True)
    return {"success": True, "count": len(creances), "data": creances}


@router.get("/stats")
async def creances_stats(
    request: Request,
    user: dict = Depends(require_permission("factures", "lire"))
):
    scope = get_agence_scope(user, request)
    creances = await _load_creances(build_agence_filter(scope))
    return {"success": True, "data": creance_stats(creances)}


@router.post("/{facture_id}/reminder")
async def send_reminder(
    facture_id: str,
    data: ReminderRequest,
    request: Request,
    user: dict = Depends(require_permission("factures", "modifier"))
):
    """Relance le client. lastReminder est posé même si l'email n'a pas pu partir."""
    scope = get_agence_scope(user, request)
    facture = await db.factures.find_one({"id": facture_id, **build_agence_filter(scope)}, {"_id": 0})
    if not facture:
        raise HTTPException(status_code=404, detail="Facture non trouvée")
    if facture.get("statut") not in UNPAID_STATUSES:
        raise HTTPException(status_code=400, detail="Seule une facture impayée peut être relancée")

    client = await db.clients.find_one({"id": facture.get("clientId")}, {"_id": 0}) or {}
    agence = await db.agences.find_one({"id": facture.get("agenceId")}, {"_id": 0, "nom": 1}) or {}

    email_sent = email_service.send_creance_reminder(facture, client, agence.get("nom", ""), data.message or "")

    reminder_at = now_iso()
    await db.factures.update_one(
        {"id": facture_id},
        {"$set": {"lastReminder": reminder_at}, "$inc": {"nombreRelances": 1}}
    )

    await log_activity(
        user=user, action="reminder", module="factures",
        entity_id=facture_id, entity_name=facture.get("numero"), agence_id=facture.get("agenceId"),
        details={"emailSent": email_sent}, success=email_sent
    )
    await log_event(
        action="creance_reminder",
        message=f"Relance facture {facture.get('numero')}: "
                f"{'email envoyé' if email_sent else 'email non envoyé'}",
        level="info" if email_sent else "warning",
        module="factures",
        entity_id=facture_id,
        user=user.get("email"),
        agence_id=facture.get("agenceId")
    )

    updated = await db.factures.find_one({"id": facture_id}, {"_id": 0})
    updated["client"] = client_ref(client, with_phone=True) if client else None
    return {
        "success": True,
        "message": "Rappel envoyé avec succès" if email_sent else "Rappel enregistré (email non envoyé)",
        "emailSent": email_sent,
        "data": updated,
    }
