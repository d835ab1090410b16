"""
SamTech Voyages - Routes Permissions
Catalogue des modules/actions et permissions des agents.
"""

from fastapi import APIRouter, Depends, HTTPException

from config import db, now_iso
from models import UserModulesUpdate
from services.activity_logger import log_activity
from services.permissions import (
    MODULE_CATALOG, ALL_ACTIONS, require_active, require_agence, normalize_permissions,
)

router = APIRouter(prefix="/permissions", tags=["Permissions"])

USER_PROJECTION = {
    "_id": 0, "id": 1, "email": 1, "nom": 1, "prenom": 1, "role": 1,
    "statut": 1, "agenceId": 1, "permissions": 1,
}


@router.get("/modules")
async def list_modules(user: dict = Depends(require_active())):
    return {"success": True, "data": {"modules": MODULE_CATALOG, "actions": ALL_ACTIONS}}


@router.get("/users")
async def list_users_permissions(user: dict = Depends(require_agence())):
    """Superadmin: tous les utilisateurs. Agence: ses agents."""
    if user.get("role") == "superadmin":
        query = {}
    else:
        query = {"agenceId": user.get("agenceId"), "role": "agent"}

    users = await db.users.find(query, USER_PROJECTION).sort("email", 1).to_list(1000)
    for u in users:
        u.setdefault("permissions", [])
    return {"success": True, "count": len(users), "data": users}


@router.put("/users/{user_id}")
async def update_user_permissions(
    user_id: str,
    data: UserModulesUpdate,
    user: dict = Depends(require_agence())
):
    query = {"id": user_id}
    if user.get("role") != "superadmin":
        query["agenceId"] = user.get("agenceId")

    target = await db.users.find_one(query, USER_PROJECTION)
    if not target:
        raise HTTPException(status_code=404, detail="Utilisateur non trouvé")
    if target.get("role") != "agent":
        raise HTTPException(status_code=400, detail="Seuls les agents ont des permissions par module")

    try:
        permissions = normalize_permissions([m.model_dump() for m in data.modules])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await db.users.update_one({"id": user_id}, {"$set": {"permissions": permissions}})
    await db.agents.update_one(
        {"userId": user_id},
        {"$set": {"permissions": permissions, "updated_at": now_iso()}}
    )

    await log_activity(
        user=user, action="update_permissions", module="permissions",
        entity_id=user_id, entity_name=target.get("email"), agence_id=target.get("agenceId"),
        details={"old_value": target.get("permissions", []), "new_value": permissions}
    )

    target["permissions"] = permissions
    return {"success": True, "message": "Permissions mises à jour avec succès", "data": target}
