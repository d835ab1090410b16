"""
SamTech Voyages - Routes Fournisseurs
CRUD des fournisseurs (compagnies, hôtels, transporteurs...) de l'agence.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import uuid

from config import db, now_iso
from models import FournisseurCreate, FournisseurUpdate
from routes.clients import search_filter
from services.activity_logger import log_activity
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/fournisseurs", tags=["Fournisseurs"])


@router.get("")
async def list_fournisseurs(
    request: Request,
    search: Optional[str] = None,
    limit: int = Query(500, le=1000),
    skip: int = 0,
    user: dict = Depends(require_permission("fournisseurs", "lire"))
):
    scope = get_agence_scope(user, request)
    query = {**build_agence_filter(scope), **search_filter(search, ["nom", "prenom", "email", "entreprise"])}

    fournisseurs = await db.fournisseurs.find(query, {"_id": 0}) \
        .sort("dateCreation", -1).skip(skip).limit(limit).to_list(limit)
    total = await db.fournisseurs.count_documents(query)

    return {"success": True, "count": len(fournisseurs), "total": total, "data": fournisseurs}


@router.get("/{fournisseur_id}")
async def get_fournisseur(
    fournisseur_id: str,
    request: Request,
    user: dict = Depends(require_permission("fournisseurs", "lire"))
):
    scope = get_agence_scope(user, request)
    fournisseur = await db.fournisseurs.find_one({"id": fournisseur_id, **build_agence_filter(scope)}, {"_id": 0})
    if not fournisseur:
        raise HTTPException(status_code=404, detail="Fournisseur non trouvé")
    return {"success": True, "data": fournisseur}


@router.post("", status_code=201)
async def create_fournisseur(
    data: FournisseurCreate,
    request: Request,
    user: dict = Depends(require_permission("fournisseurs", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)

    fournisseur = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        "nom": data.nom,
        "prenom": data.prenom or "",
        "entreprise": data.entreprise,
        "email": data.email,
        "telephone": data.telephone,
        "adresse": data.adresse,
        "solde": 0,
        "dateCreation": now_iso(),
    }
    await db.fournisseurs.insert_one(fournisseur)
    fournisseur.pop("_id", None)

    await log_activity(
        user=user, action="create", module="fournisseurs",
        entity_id=fournisseur["id"], entity_name=fournisseur["entreprise"], agence_id=agence_id
    )
    return {"success": True, "message": "Fournisseur créé avec succès", "data": fournisseur}


@router.put("/{fournisseur_id}")
async def update_fournisseur(
    fournisseur_id: str,
    data: FournisseurUpdate,
    request: Request,
    user: dict = Depends(require_permission("fournisseurs", "modifier"))
):
    scope = get_agence_scope(user, request)
    fournisseur = await db.fournisseurs.find_one({"id": fournisseur_id, **build_agence_filter(scope)}, {"_id": 0})
    if not fournisseur:
        raise HTTPException(status_code=404, detail="Fournisseur non trouvé")

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    for field in ("nom", "entreprise", "telephone", "adresse"):
        if field in update_data and not str(update_data[field]).strip():
            raise HTTPException(status_code=400, detail=f"Le champ {field} ne peut pas être vide")
    update_data["updated_at"] = now_iso()

    await db.fournisseurs.update_one({"id": fournisseur_id}, {"$set": update_data})

    updated = await db.fournisseurs.find_one({"id": fournisseur_id}, {"_id": 0})
    return {"success": True, "message": "Fournisseur mis à jour avec succès", "data": updated}


@router.delete("/{fournisseur_id}")
async def delete_fournisseur(
    fournisseur_id: str,
    request: Request,
    user: dict = Depends(require_permission("fournisseurs", "supprimer"))
):
    scope = get_agence_scope(user, request)
    result = await db.fournisseurs.delete_one({"id": fournisseur_id, **build_agence_filter(scope)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Fournisseur non trouvé")

    await log_activity(user=user, action="delete", module="fournisseurs", entity_id=fournisseur_id)
    return {"success": True, "message": "Fournisseur supprimé avec succès", "deleted_id": fournisseur_id}
