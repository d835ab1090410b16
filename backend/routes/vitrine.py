"""
SamTech Voyages - Routes Vitrine
Configuration du site public de l'agence (stockée dans agence.vitrineConfig).
"""

from fastapi import APIRouter, Depends, HTTPException

from config import db, now_iso
from models import VitrineUpdate
from services.activity_logger import log_activity
from services.permissions import require_agence
from services.settings import build_default_vitrine, get_agence_vitrine

router = APIRouter(prefix="/vitrine", tags=["Vitrine"])


def _agence_id(user: dict) -> str:
    agence_id = user.get("agenceId")
    if not agence_id:
        raise HTTPException(status_code=400, detail="Aucune agence rattachée à ce compte")
    return agence_id


@router.get("")
async def get_vitrine(user: dict = Depends(require_agence())):
    vitrine = await get_agence_vitrine(_agence_id(user))
    if vitrine is None:
        raise HTTPException(status_code=404, detail="Agence non trouvée")
    return {"success": True, "data": vitrine}


@router.put("")
async def update_vitrine(data: VitrineUpdate, user: dict = Depends(require_agence())):
    """Remplace la configuration, les champs absents reprennent leur valeur par défaut"""
    agence_id = _agence_id(user)
    agence = await db.agences.find_one({"id": agence_id}, {"_id": 0})
    if not agence:
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    defaults = build_default_vitrine(agence)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    vitrine = {**defaults, **changes}
    for nested in ("contactInfo", "socialLinks"):
        if nested in changes:
            vitrine[nested] = {**defaults[nested], **{k: v for k, v in changes[nested].items() if v is not None}}

    await db.agences.update_one(
        {"id": agence_id},
        {"$set": {"vitrineConfig": vitrine, "updated_at": now_iso()}}
    )
    await log_activity(
        user=user, action="update", module="vitrine", entity_id=agence_id, agence_id=agence_id,
        details={"fields": list(changes.keys())}
    )
    return {"success": True, "message": "Vitrine mise à jour avec succès", "data": vitrine}


@router.put("/toggle")
async def toggle_vitrine(user: dict = Depends(require_agence())):
    agence_id = _agence_id(user)
    vitrine = await get_agence_vitrine(agence_id)
    if vitrine is None:
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    is_active = not vitrine.get("isActive", True)
    await db.agences.update_one({"id": agence_id}, {"$set": {"vitrineConfig.isActive": is_active}})

    vitrine["isActive"] = is_active
    return {
        "success": True,
        "message": "Vitrine activée" if is_active else "Vitrine désactivée",
        "data": vitrine,
    }


@router.get("/public/{agence_id}")
async def get_public_vitrine(agence_id: str):
    """Vitrine publique (sans authentification)"""
    agence = await db.agences.find_one({"id": agence_id, "statut": "approuve"}, {"_id": 0, "parametres": 0})
    if not agence:
        raise HTTPException(status_code=404, detail="Vitrine non disponible")

    vitrine = agence.get("vitrineConfig") or build_default_vitrine(agence)
    if not vitrine.get("isActive", True):
        raise HTTPException(status_code=404, detail="Vitrine non disponible")

    packages = []
    if vitrine.get("showPackages", True):
        packages = await db.packages.find(
            {"agenceId": agence_id, "visible": True}, {"_id": 0, "created_by": 0}
        ).sort("dateCreation", -1).to_list(200)

    return {
        "success": True,
        "data": {
            "agence": {
                "id": agence["id"],
                "nom": agence.get("nom", ""),
                "email": agence.get("email", ""),
                "telephone": agence.get("telephone", ""),
                "adresse": agence.get("adresse", ""),
                "logo": agence.get("logo", ""),
            },
            "vitrine": vitrine,
            "packages": packages,
        },
    }
