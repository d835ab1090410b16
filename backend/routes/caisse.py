"""
SamTech Voyages - Routes Caisse
Opérations entree / sortie, solde = Σ entrées - Σ sorties.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import uuid

from config import db, now_iso, parse_iso
from models import OperationCreate, OPERATION_TYPES
from services.activity_logger import log_activity
from services.dashboard import compute_caisse_solde
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/caisse", tags=["Caisse"])


@router.get("/operations")
async def list_operations(
    request: Request,
    type: Optional[str] = Query(None, description="entree | sortie"),
    limit: int = Query(1000, le=5000),
    user: dict = Depends(require_permission("caisse", "lire"))
):
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if type:
        if type not in OPERATION_TYPES:
            raise HTTPException(status_code=400, detail="Type invalide: entree ou sortie")
        query["type"] = type

    operations = await db.operations.find(query, {"_id": 0}).sort("date", -1).to_list(limit)
    return {"success": True, "count": len(operations), "data": operations}


@router.post("/operations", status_code=201)
async def create_operation(
    data: OperationCreate,
    request: Request,
    user: dict = Depends(require_permission("caisse", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)

    date = now_iso()
    if data.date:
        parsed = parse_iso(data.date)
        if not parsed:
            raise HTTPException(status_code=400, detail="Date invalide")
        date = parsed.isoformat()

    operation = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        "type": data.type,
        "montant": round(data.montant, 2),
        "description": data.description,
        "date": date,
        "categorie": data.categorie or "autre",
        "reference": data.reference or "",
        "created_by": user.get("email"),
        "created_at": now_iso(),
    }
    await db.operations.insert_one(operation)
    operation.pop("_id", None)

    await log_activity(
        user=user, action="create", module="caisse",
        entity_id=operation["id"], entity_name=operation["description"], agence_id=agence_id,
        details={"type": operation["type"], "montant": operation["montant"]}
    )
    return {"success": True, "message": "Opération enregistrée avec succès", "data": operation}


@router.delete("/operations/{operation_id}")
async def delete_operation(
    operation_id: str,
    request: Request,
    user: dict = Depends(require_permission("caisse", "supprimer"))
):
    scope = get_agence_scope(user, request)
    operation = await db.operations.find_one({"id": operation_id, **build_agence_filter(scope)}, {"_id": 0})
    if not operation:
        raise HTTPException(status_code=404, detail="Opération non trouvée")

    await db.operations.delete_one({"id": operation_id})
    await log_activity(
        user=user, action="delete", module="caisse",
        entity_id=operation_id, entity_name=operation.get("description"),
        agence_id=operation.get("agenceId"),
        details={"type": operation.get("type"), "montant": operation.get("montant")}
    )
    return {"success": True, "message": "Opération supprimée avec succès", "deleted_id": operation_id}


@router.get("/solde")
async def get_solde(
    request: Request,
    user: dict = Depends(require_permission("caisse", "lire"))
):
    scope = get_agence_scope(user, request)
    operations = await db.operations.find(
        build_agence_filter(scope), {"_id": 0, "type": 1, "montant": 1}
    ).to_list(100000)
    return {"success": True, "data": compute_caisse_solde(operations)}
