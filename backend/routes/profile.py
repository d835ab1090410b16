"""
SamTech Voyages - Routes Profil agence
L'adresse est stockée composée ('rue, CP ville, pays') et redécoupée à la lecture.
"""

from fastapi import APIRouter, Depends, HTTPException

from config import db, now_iso
from models import ProfileUpdate, LogoUpdate, compose_adresse, split_adresse, is_valid_email_format
from services.activity_logger import log_activity
from services.permissions import require_agence

router = APIRouter(prefix="/profile", tags=["Profil"])

PROFILE_FIELDS = ["nom", "email", "telephone", "siret", "typeActivite", "logo"]


async def _get_own_agence(user: dict) -> dict:
    agence_id = user.get("agenceId")
    if not agence_id:
        raise HTTPException(status_code=400, detail="Aucune agence rattachée à ce compte")
    agence = await db.agences.find_one({"id": agence_id}, {"_id": 0})
    if not agence:
        raise HTTPException(status_code=404, detail="Agence non trouvée")
    return agence


def _profile(agence: dict) -> dict:
    profile = {k: agence.get(k, "") or "" for k in PROFILE_FIELDS}
    profile.update(split_adresse(agence.get("adresse", "")))
    return profile


@router.get("")
async def get_profile(user: dict = Depends(require_agence())):
    agence = await _get_own_agence(user)
    return {"success": True, "data": _profile(agence)}


@router.put("")
async def update_profile(data: ProfileUpdate, user: dict = Depends(require_agence())):
    agence = await _get_own_agence(user)
    update = data.model_dump(exclude_unset=True, exclude_none=True)

    if "nom" in update and not update["nom"].strip():
        raise HTTPException(status_code=400, detail="Nom de l'agence obligatoire")
    if "email" in update and update["email"] != agence.get("email"):
        if not is_valid_email_format(update["email"]):
            raise HTTPException(status_code=400, detail="Format d'email invalide")
        if await db.users.find_one({"email": update["email"], "id": {"$ne": user.get("id")}}, {"_id": 1}):
            raise HTTPException(status_code=400, detail="Cet email est déjà utilisé")

    address_keys = ("adresse", "codePostal", "ville", "pays")
    if any(k in update for k in address_keys):
        current = split_adresse(agence.get("adresse", ""))
        parts = {k: update.pop(k, current[k]) for k in address_keys}
        update["adresse"] = compose_adresse(parts["adresse"], parts["codePostal"], parts["ville"], parts["pays"])

    update["updated_at"] = now_iso()
    await db.agences.update_one({"id": agence["id"]}, {"$set": update})

    # Compte propriétaire
    user_sync = {}
    if "nom" in update:
        user_sync["nom"] = update["nom"]
    if "email" in update:
        user_sync["email"] = update["email"]
    if user_sync:
        await db.users.update_one({"id": user.get("id")}, {"$set": user_sync})

    await log_activity(
        user=user, action="update", module="profile",
        entity_id=agence["id"], entity_name=agence.get("nom"), agence_id=agence["id"],
        details={"fields": [k for k in update if k != "updated_at"]}
    )

    updated = await db.agences.find_one({"id": agence["id"]}, {"_id": 0})
    return {"success": True, "message": "Profil mis à jour avec succès", "data": _profile(updated)}


@router.post("/logo")
async def update_logo(data: LogoUpdate, user: dict = Depends(require_agence())):
    """Le logo est aussi repris par la vitrine"""
    agence = await _get_own_agence(user)
    if not data.logo or not data.logo.strip():
        raise HTTPException(status_code=400, detail="Logo manquant")

    logo = data.logo.strip()
    update = {"logo": logo, "updated_at": now_iso()}
    if agence.get("vitrineConfig"):
        update["vitrineConfig.logo"] = logo
    await db.agences.update_one({"id": agence["id"]}, {"$set": update})

    return {"success": True, "message": "Logo mis à jour avec succès", "data": {"logo": logo}}
