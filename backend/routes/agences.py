"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Routes Agences (superadmin)                               ║
║                                                                              ║
║  Validation des inscriptions: approve / reject / suspend                     ║
║  Le statut du compte propriétaire suit celui de l'agence                     ║
║  Activation des modules                                                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from config import db, now_iso
from models import AGENCE_STATUSES, AGENCE_TO_USER_STATUS, AgenceModulesUpdate
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.permissions import require_superadmin, AGENCE_MODULES, merge_modules
from email_service import email_service

router = APIRouter(prefix="/agences", tags=["Agences"])

# Jamais renvoyés dans les listes (clé API, snapshot complet des paramètres)
AGENCE_PROJECTION = {"_id": 0, "parametres": 0}

STATUS_ACTIONS = {
    "approve": ("approuve", "Agence approuvée avec succès"),
    "reject": ("rejete", "Agence rejetée"),
    "suspend": ("suspendu", "Agence suspendue"),
}


@router.get("")
async def list_agences(
    statut: Optional[str] = Query(None, description="en_attente | approuve | rejete | suspendu"),
    user: dict = Depends(require_superadmin())
):
    """Liste toutes les agences"""
    query = {}
    if statut:
        if statut not in AGENCE_STATUSES:
            raise HTTPException(status_code=400, detail=f"Statut invalide: {statut}")
        query["statut"] = statut

    agences = await db.agences.find(query, AGENCE_PROJECTION).sort("dateInscription", -1).to_list(1000)
    return {"success": True, "count": len(agences), "data": agences}


@router.get("/{agence_id}")
async def get_agence(agence_id: str, user: dict = Depends(require_superadmin())):
    agence = await db.agences.find_one({"id": agence_id}, AGENCE_PROJECTION)
    if not agence:
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    agence["stats"] = {
        "clients": await db.clients.count_documents({"agenceId": agence_id}),
        "factures": await db.factures.count_documents({"agenceId": agence_id}),
        "agents": await db.agents.count_documents({"agenceId": agence_id}),
    }
    return {"success": True, "data": agence}


async def _change_status(agence_id: str, action: str, user: dict) -> dict:
    agence = await db.agences.find_one({"id": agence_id}, {"_id": 0})
    if not agence:
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    statut, message = STATUS_ACTIONS[action]
    update = {"statut": statut, "updated_at": now_iso()}
    if statut == "approuve":
        update["modulesActifs"] = merge_modules(agence.get("modulesActifs"), agence.get("modulesChoisis"))
        update["dateApprobation"] = now_iso()

    await db.agences.update_one({"id": agence_id}, {"$set": update})
    # Compte propriétaire de l'agence (role agence)
    await db.users.update_many(
        {"agenceId": agence_id, "role": "agence"},
        {"$set": {"statut": AGENCE_TO_USER_STATUS[statut]}}
    )
    if statut != "approuve":
        # Sessions du propriétaire et des agents
        members = await db.users.find({"agenceId": agence_id}, {"_id": 0, "id": 1}).to_list(1000)
        await db.sessions.delete_many({"user_id": {"$in": [m["id"] for m in members]}})

    await log_activity(
        user=user,
        action=action,
        module="agences",
        entity_id=agence_id,
        entity_name=agence.get("nom"),
        details={"old_statut": agence.get("statut"), "new_statut": statut},
        agence_id=agence_id
    )
    await log_event(
        action=f"agence_{statut}",
        message=f"{message}: {agence.get('nom')}",
        level="success" if statut == "approuve" else "warning",
        module="agences",
        entity_id=agence_id,
        user=user.get("email"),
        agence_id=agence_id
    )

    email_service.send_agence_status(agence, statut)

    updated = await db.agences.find_one({"id": agence_id}, AGENCE_PROJECTION)
    return {"success": True, "message": message, "data": updated}


@router.put("/{agence_id}/approve")
async def approve_agence(agence_id: str, user: dict = Depends(require_superadmin())):
    return await _change_status(agence_id, "approve", user)


@router.put("/{agence_id}/reject")
async def reject_agence(agence_id: str, user: dict = Depends(require_superadmin())):
    return await _change_status(agence_id, "reject", user)


@router.put("/{agence_id}/suspend")
async def suspend_agence(agence_id: str, user: dict = Depends(require_superadmin())):
    return await _change_status(agence_id, "suspend", user)


@router.put("/{agence_id}/modules")
async def update_agence_modules(
    agence_id: str,
    data: AgenceModulesUpdate,
    user: dict = Depends(require_superadmin())
):
    """Remplace la liste des modules actifs (ids inconnus ignorés)"""
    if not isinstance(data.modules, list):
        raise HTTPException(status_code=400, detail="Liste de modules invalide")

    agence = await db.agences.find_one({"id": agence_id}, {"_id": 0, "id": 1, "nom": 1, "modulesActifs": 1})
    if not agence:
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    modules = [m for m in merge_modules([], data.modules) if m in AGENCE_MODULES]
    await db.agences.update_one(
        {"id": agence_id},
        {"$set": {"modulesActifs": modules, "updated_at": now_iso()}}
    )

    await log_activity(
        user=user,
        action="update_modules",
        module="agences",
        entity_id=agence_id,
        entity_name=agence.get("nom"),
        details={"old_value": agence.get("modulesActifs", []), "new_value": modules},
        agence_id=agence_id
    )

    updated = await db.agences.find_one({"id": agence_id}, AGENCE_PROJECTION)
    return {"success": True, "message": "Modules mis à jour avec succès", "data": updated}
