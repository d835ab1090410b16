"""
SamTech Voyages - Routes Billets
Billets d'avion émis par l'agence (numéro de vol, compagnie, passager, prix).
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import uuid

from config import db, now_iso, parse_iso
from models import BilletCreate, BilletUpdate, BILLET_STATUSES
from services.activity_logger import log_activity
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/billets", tags=["Billets"])


def _check_dates(depart: Optional[str], arrivee: Optional[str]):
    start, end = parse_iso(depart), parse_iso(arrivee)
    if (depart and not start) or (arrivee and not end):
        raise HTTPException(status_code=400, detail="Date invalide")
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="L'arrivée doit suivre le départ")


@router.get("")
async def list_billets(
    request: Request,
    statut: Optional[str] = None,
    clientId: Optional[str] = None,
    limit: int = Query(500, le=1000),
    user: dict = Depends(require_permission("billets", "lire"))
):
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if statut:
        if statut not in BILLET_STATUSES:
            raise HTTPException(status_code=400, detail=f"Statut invalide: {statut}")
        query["statut"] = statut
    if clientId:
        query["clientId"] = clientId

    billets = await db.billets.find(query, {"_id": 0}).sort("dateDepart", -1).to_list(limit)
    return {"success": True, "count": len(billets), "data": billets}


@router.get("/{billet_id}")
async def get_billet(
    billet_id: str,
    request: Request,
    user: dict = Depends(require_permission("billets", "lire"))
):
    scope = get_agence_scope(user, request)
    billet = await db.billets.find_one({"id": billet_id, **build_agence_filter(scope)}, {"_id": 0})
    if not billet:
        raise HTTPException(status_code=404, detail="Billet non trouvé")
    return {"success": True, "data": billet}


@router.post("", status_code=201)
async def create_billet(
    data: BilletCreate,
    request: Request,
    user: dict = Depends(require_permission("billets", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)
    _check_dates(data.dateDepart, data.dateArrivee)

    if data.clientId and not await db.clients.find_one({"id": data.clientId, "agenceId": agence_id}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Client non trouvé")

    billet = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        **data.model_dump(exclude={"agenceId"}),
        "numeroVol": data.numeroVol.strip().upper(),
        "dateCreation": now_iso(),
    }
    await db.billets.insert_one(billet)
    billet.pop("_id", None)

    await log_activity(
        user=user, action="create", module="billets",
        entity_id=billet["id"], entity_name=f"{billet['numeroVol']} {billet['passager']}", agence_id=agence_id
    )
    return {"success": True, "message": "Billet créé avec succès", "data": billet}


@router.put("/{billet_id}")
async def update_billet(
    billet_id: str,
    data: BilletUpdate,
    request: Request,
    user: dict = Depends(require_permission("billets", "modifier"))
):
    scope = get_agence_scope(user, request)
    billet = await db.billets.find_one({"id": billet_id, **build_agence_filter(scope)}, {"_id": 0})
    if not billet:
        raise HTTPException(status_code=404, detail="Billet non trouvé")

    update = data.model_dump(exclude_unset=True, exclude_none=True)
    _check_dates(update.get("dateDepart", billet.get("dateDepart")),
                 update.get("dateArrivee", billet.get("dateArrivee")))
    if "numeroVol" in update:
        update["numeroVol"] = update["numeroVol"].strip().upper()
    update["updated_at"] = now_iso()

    await db.billets.update_one({"id": billet_id}, {"$set": update})
    updated = await db.billets.find_one({"id": billet_id}, {"_id": 0})
    return {"success": True, "message": "Billet mis à jour avec succès", "data": updated}


@router.delete("/{billet_id}")
async def delete_billet(
    billet_id: str,
    request: Request,
    user: dict = Depends(require_permission("billets", "supprimer"))
):
    scope = get_agence_scope(user, request)
    result = await db.billets.delete_one({"id": billet_id, **build_agence_filter(scope)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Billet non trouvé")

    await log_activity(user=user, action="delete", module="billets", entity_id=billet_id)
    return {"success": True, "message": "Billet supprimé avec succès", "deleted_id": billet_id}
