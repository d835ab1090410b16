"""
SamTech Voyages - Routes Packages
Offres de voyage de l'agence. Les packages visibles sont publiés sur la vitrine.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import uuid

from config import db, now_iso
from models import PackageCreate, PackageUpdate
from services.activity_logger import log_activity
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/packages", tags=["Packages"])


@router.get("/public")
async def list_public_packages(agenceId: Optional[str] = Query(None)):
    """Packages visibles (sans authentification), éventuellement d'une seule agence"""
    query = {"visible": True}
    if agenceId:
        query["agenceId"] = agenceId
    else:
        approved = await db.agences.find({"statut": "approuve"}, {"_id": 0, "id": 1}).to_list(1000)
        query["agenceId"] = {"$in": [a["id"] for a in approved]}

    packages = await db.packages.find(query, {"_id": 0, "created_by": 0}).sort("dateCreation", -1).to_list(500)
    return {"success": True, "count": len(packages), "data": packages}


@router.get("")
async def list_packages(
    request: Request,
    visible: Optional[bool] = None,
    user: dict = Depends(require_permission("packages", "lire"))
):
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if visible is not None:
        query["visible"] = visible

    packages = await db.packages.find(query, {"_id": 0}).sort("dateCreation", -1).to_list(500)
    return {"success": True, "count": len(packages), "data": packages}


@router.get("/{package_id}")
async def get_package(
    package_id: str,
    request: Request,
    user: dict = Depends(require_permission("packages", "lire"))
):
    scope = get_agence_scope(user, request)
    package = await db.packages.find_one({"id": package_id, **build_agence_filter(scope)}, {"_id": 0})
    if not package:
        raise HTTPException(status_code=404, detail="Package non trouvé")
    return {"success": True, "data": package}


@router.post("", status_code=201)
async def create_package(
    data: PackageCreate,
    request: Request,
    user: dict = Depends(require_permission("packages", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)
    if not data.nom.strip():
        raise HTTPException(status_code=400, detail="Nom du package obligatoire")

    package = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        **data.model_dump(exclude={"agenceId"}),
        "inclusions": [i.strip() for i in data.inclusions if i and i.strip()],
        "dateCreation": now_iso(),
        "created_by": user.get("email"),
    }
    await db.packages.insert_one(package)
    package.pop("_id", None)

    await log_activity(
        user=user, action="create", module="packages",
        entity_id=package["id"], entity_name=package["nom"], agence_id=agence_id
    )
    return {"success": True, "message": "Package créé avec succès", "data": package}


@router.put("/{package_id}")
async def update_package(
    package_id: str,
    data: PackageUpdate,
    request: Request,
    user: dict = Depends(require_permission("packages", "modifier"))
):
    scope = get_agence_scope(user, request)
    package = await db.packages.find_one({"id": package_id, **build_agence_filter(scope)}, {"_id": 0})
    if not package:
        raise HTTPException(status_code=404, detail="Package non trouvé")

    update = data.model_dump(exclude_unset=True, exclude_none=True)
    if "inclusions" in update:
        update["inclusions"] = [i.strip() for i in update["inclusions"] if i and i.strip()]
    update["updated_at"] = now_iso()

    await db.packages.update_one({"id": package_id}, {"$set": update})
    updated = await db.packages.find_one({"id": package_id}, {"_id": 0})
    return {"success": True, "message": "Package mis à jour avec succès", "data": updated}


@router.put("/{package_id}/toggle-visibility")
async def toggle_package_visibility(
    package_id: str,
    request: Request,
    user: dict = Depends(require_permission("packages", "modifier"))
):
    scope = get_agence_scope(user, request)
    package = await db.packages.find_one({"id": package_id, **build_agence_filter(scope)}, {"_id": 0})
    if not package:
        raise HTTPException(status_code=404, detail="Package non trouvé")

    visible = not package.get("visible", True)
    await db.packages.update_one({"id": package_id}, {"$set": {"visible": visible, "updated_at": now_iso()}})

    updated = await db.packages.find_one({"id": package_id}, {"_id": 0})
    return {
        "success": True,
        "message": "Package visible sur la vitrine" if visible else "Package masqué de la vitrine",
        "data": updated,
    }


@router.delete("/{package_id}")
async def delete_package(
    package_id: str,
    request: Request,
    user: dict = Depends(require_permission("packages", "supprimer"))
):
    scope = get_agence_scope(user, request)
    result = await db.packages.delete_one({"id": package_id, **build_agence_filter(scope)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Package non trouvé")

    await log_activity(user=user, action="delete", module="packages", entity_id=package_id)
    return {"success": True, "message": "Package supprimé avec succès", "deleted_id": package_id}
