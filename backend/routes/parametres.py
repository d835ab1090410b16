"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Routes Paramètres agence                                  ║
║                                                                              ║
║  GET   /api/parametres                    (défauts créés à la 1ère lecture)  ║
║  PUT   /api/parametres                    (apiKey non modifiable ici)        ║
║  POST  /api/parametres/generate-api-key                                      ║
║  POST  /api/parametres/backup             GET /api/parametres/backups        ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from fastapi import APIRouter, Depends, HTTPException

from config import db, now_iso, generate_api_key
from models import ParametresUpdate
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.permissions import require_agence
from services.settings import get_agence_parametres, backup_agence

router = APIRouter(prefix="/parametres", tags=["Paramètres"])


def _agence_id(user: dict) -> str:
    agence_id = user.get("agenceId")
    if not agence_id:
        raise HTTPException(status_code=400, detail="Aucune agence rattachée à ce compte")
    return agence_id


async def _load(agence_id: str) -> dict:
    params = await get_agence_parametres(agence_id)
    if params is None:
        raise HTTPException(status_code=404, detail="Agence non trouvée")
    return params


@router.get("")
async def get_parametres(user: dict = Depends(require_agence())):
    params = await _load(_agence_id(user))
    return {"success": True, "data": params}


@router.put("")
async def update_parametres(data: ParametresUpdate, user: dict = Depends(require_agence())):
    agence_id = _agence_id(user)
    params = await _load(agence_id)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    merged = {**params, **changes}
    await db.agences.update_one(
        {"id": agence_id},
        {"$set": {"parametres": merged, "updated_at": now_iso()}}
    )

    await log_activity(
        user=user, action="update", module="parametres",
        entity_id=agence_id, agence_id=agence_id,
        details={"fields": list(changes.keys())}
    )
    return {"success": True, "message": "Paramètres enregistrés avec succès", "data": merged}


@router.post("/generate-api-key")
async def regenerate_api_key(user: dict = Depends(require_agence())):
    agence_id = _agence_id(user)
    await _load(agence_id)

    api_key = generate_api_key()
    await db.agences.update_one({"id": agence_id}, {"$set": {"parametres.apiKey": api_key}})

    await log_activity(user=user, action="generate_api_key", module="parametres", entity_id=agence_id, agence_id=agence_id)
    await log_event(
        action="api_key_rotated",
        message="Nouvelle clé API générée",
        level="warning",
        module="parametres",
        entity_id=agence_id,
        user=user.get("email"),
        agence_id=agence_id
    )
    return {"success": True, "message": "Nouvelle clé API générée", "data": {"apiKey": api_key}}


@router.post("/backup")
async def create_backup(user: dict = Depends(require_agence())):
    agence_id = _agence_id(user)
    await _load(agence_id)

    backup = await backup_agence(agence_id, trigger="manuel", user_email=user.get("email"))

    await log_event(
        action="backup_done",
        message=f"Sauvegarde manuelle effectuée ({backup['totalDocuments']} documents)",
        level="success",
        module="parametres",
        entity_id=backup["id"],
        user=user.get("email"),
        agence_id=agence_id
    )
    return {"success": True, "message": "Sauvegarde effectuée avec succès", "data": backup}


@router.get("/backups")
async def list_backups(user: dict = Depends(require_agence())):
    agence_id = _agence_id(user)
    backups = await db.backups.find(
        {"agenceId": agence_id}, {"_id": 0, "data": 0}
    ).sort("date", -1).to_list(100)
    return {"success": True, "count": len(backups), "data": backups}
