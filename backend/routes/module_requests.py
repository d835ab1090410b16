"""
SamTech Voyages - Routes Demandes de modules
Agence: demande l'activation de modules (agence.modulesDemandes = union sans doublon).
Superadmin: approuve (ajout à modulesActifs) ou rejette; dans les deux cas
les modules traités sortent de modulesDemandes.
"""

from fastapi import APIRouter, Depends, HTTPException
import uuid

from config import db, now_iso
from models import ModuleRequestCreate, ModuleRequestProcess
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.permissions import (
    require_agence, require_superadmin, merge_modules, remove_modules, AGENCE_MODULES,
)

router = APIRouter(prefix="/module-requests", tags=["Module Requests"])


@router.post("", status_code=201)
async def create_module_request(
    data: ModuleRequestCreate,
    user: dict = Depends(require_agence())
):
    if not data.modules or not data.message or not data.message.strip():
        raise HTTPException(status_code=400, detail="Modules et message requis")

    unknown = [m for m in data.modules if m not in AGENCE_MODULES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Modules inconnus: {', '.join(unknown)}")

    agence_id = user.get("agenceId")
    agence = await db.agences.find_one({"id": agence_id}, {"_id": 0})
    if not agence:
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    modules = merge_modules([], data.modules)
    request_doc = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        "modules": modules,
        "message": data.message.strip(),
        "statut": "en_attente",
        "dateCreation": now_iso(),
        "dateTraitement": None,
        "commentaireAdmin": "",
    }
    await db.module_requests.insert_one(request_doc)
    request_doc.pop("_id", None)

    await db.agences.update_one(
        {"id": agence_id},
        {"$set": {"modulesDemandes": merge_modules(agence.get("modulesDemandes"), modules)}}
    )

    await log_activity(
        user=user, action="create", module="module-requests",
        entity_id=request_doc["id"], details={"modules": modules}
    )

    return {
        "success": True,
        "message": "Demande de modules envoyée avec succès",
        "data": request_doc,
    }


@router.get("/agence")
async def list_agence_requests(user: dict = Depends(require_agence())):
    """Demandes de l'agence connectée"""
    requests = await db.module_requests.find(
        {"agenceId": user.get("agenceId")}, {"_id": 0}
    ).sort("dateCreation", -1).to_list(200)
    return {"success": True, "count": len(requests), "data": requests}


@router.get("/admin/pending")
async def list_pending_agences(user: dict = Depends(require_superadmin())):
    """Agences ayant des modules en attente d'activation"""
    agences = await db.agences.find(
        {"modulesDemandes": {"$exists": True, "$ne": []}},
        {"_id": 0, "id": 1, "nom": 1, "email": 1, "telephone": 1,
         "modulesActifs": 1, "modulesDemandes": 1, "statut": 1}
    ).to_list(500)
    return {"success": True, "count": len(agences), "data": agences}


@router.get("")
async def list_module_requests(user: dict = Depends(require_superadmin())):
    requests = await db.module_requests.find({}, {"_id": 0}).sort("dateCreation", -1).to_list(500)

    agence_ids = list({r["agenceId"] for r in requests})
    agences = {}
    if agence_ids:
        for a in await db.agences.find(
            {"id": {"$in": agence_ids}}, {"_id": 0, "id": 1, "nom": 1, "email": 1, "telephone": 1}
        ).to_list(len(agence_ids)):
            agences[a["id"]] = a

    for r in requests:
        a = agences.get(r["agenceId"], {})
        r["agence"] = {
            "nom": a.get("nom", ""),
            "email": a.get("email", ""),
            "telephone": a.get("telephone", ""),
        }

    return {"success": True, "count": len(requests), "data": requests}


@router.put("/{request_id}/process")
async def process_module_request(
    request_id: str,
    data: ModuleRequestProcess,
    user: dict = Depends(require_superadmin())
):
    module_request = await db.module_requests.find_one({"id": request_id}, {"_id": 0})
    if not module_request:
        raise HTTPException(status_code=404, detail="Demande non trouvée")
    if module_request.get("statut") != "en_attente":
        raise HTTPException(status_code=400, detail="Demande déjà traitée")

    agence = await db.agences.find_one({"id": module_request["agenceId"]}, {"_id": 0})
    if not agence:
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    modules = module_request.get("modules", [])
    agence_update = {"modulesDemandes": remove_modules(agence.get("modulesDemandes"), modules)}
    if data.statut == "approuve":
        agence_update["modulesActifs"] = merge_modules(agence.get("modulesActifs"), modules)
    await db.agences.update_one({"id": agence["id"]}, {"$set": agence_update})

    await db.module_requests.update_one(
        {"id": request_id},
        {"$set": {
            "statut": data.statut,
            "commentaireAdmin": data.commentaireAdmin or "",
            "dateTraitement": now_iso(),
        }}
    )

    await log_activity(
        user=user,
        action="approve" if data.statut == "approuve" else "reject",
        module="module-requests",
        entity_id=request_id,
        entity_name=agence.get("nom"),
        details={"modules": modules},
        agence_id=agence["id"]
    )
    await log_event(
        action=f"modules_{data.statut}",
        message=f"Demande de modules {', '.join(modules)} {'approuvée' if data.statut == 'approuve' else 'rejetée'}",
        level="success" if data.statut == "approuve" else "info",
        module="module-requests",
        entity_id=request_id,
        user=user.get("email"),
        agence_id=agence["id"]
    )

    updated = await db.module_requests.find_one({"id": request_id}, {"_id": 0})
    return {
        "success": True,
        "message": "Demande traitée avec succès",
        "data": updated,
    }
