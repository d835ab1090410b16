"""
SamTech Voyages - Routes Agents
Un agent = document agents + compte users (role=agent) synchronisés.
Accès: propriétaire de l'agence (role agence).
"""

from fastapi import APIRouter, Depends, HTTPException
import uuid

from config import db, now_iso, hash_password, generate_password
from models import AgentCreate, AgentUpdate, AgentPermissionsUpdate, AgentAgenciesUpdate
from services.activity_logger import log_activity
from services.permissions import require_agence, normalize_permissions

router = APIRouter(prefix="/agents", tags=["Agents"])


def _agent_filter(user: dict, agent_id: str = None) -> dict:
    query = {} if user.get("role") == "superadmin" else {"agenceId": user.get("agenceId")}
    if agent_id:
        query["id"] = agent_id
    return query


def _permissions_or_400(permissions) -> list:
    try:
        return normalize_permissions([p.model_dump() for p in permissions])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
async def list_agents(user: dict = Depends(require_agence())):
    agents = await db.agents.find(_agent_filter(user), {"_id": 0}).sort("dateCreation", -1).to_list(500)
    return {"success": True, "count": len(agents), "data": agents}


@router.get("/{agent_id}")
async def get_agent(agent_id: str, user: dict = Depends(require_agence())):
    agent = await db.agents.find_one(_agent_filter(user, agent_id), {"_id": 0})
    if not agent:
        raise HTTPException(status_code=404, detail="Agent non trouvé")
    return {"success": True, "data": agent}


@router.post("", status_code=201)
async def create_agent(data: AgentCreate, user: dict = Depends(require_agence())):
    """
    Crée l'agent et son compte utilisateur.
    Sans mot de passe fourni, un mot de passe temporaire est généré et renvoyé une seule fois.
    """
    agence_id = user.get("agenceId")
    if not agence_id:
        raise HTTPException(status_code=400, detail="Aucune agence rattachée à ce compte")

    if await db.users.find_one({"email": data.email}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Cet email est déjà utilisé")

    permissions = _permissions_or_400(data.permissions)
    password = data.password or generate_password()
    now = now_iso()

    user_doc = {
        "id": str(uuid.uuid4()),
        "email": data.email,
        "password": hash_password(password),
        "nom": data.nom,
        "prenom": data.prenom,
        "role": "agent",
        "statut": "actif",
        "agenceId": agence_id,
        "agences": [],
        "permissions": permissions,
        "dateInscription": now,
        "created_at": now,
    }
    agent = {
        "id": str(uuid.uuid4()),
        "userId": user_doc["id"],
        "nom": data.nom,
        "prenom": data.prenom,
        "email": data.email,
        "telephone": data.telephone or "",
        "permissions": permissions,
        "statut": "actif",
        "agenceId": agence_id,
        "agences": [],
        "dateCreation": now,
    }

    await db.users.insert_one(user_doc)
    await db.agents.insert_one(agent)
    agent.pop("_id", None)

    await log_activity(
        user=user, action="create", module="agents",
        entity_id=agent["id"], entity_name=f"{data.prenom} {data.nom}"
    )

    result = dict(agent)
    if not data.password:
        result["motDePasseTemporaire"] = password
    return {"success": True, "message": "Agent créé avec succès", "data": result}


@router.put("/{agent_id}")
async def update_agent(agent_id: str, data: AgentUpdate, user: dict = Depends(require_agence())):
    agent = await db.agents.find_one(_agent_filter(user, agent_id), {"_id": 0})
    if not agent:
        raise HTTPException(status_code=404, detail="Agent non trouvé")

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        return {"success": True, "data": agent}

    if "email" in update_data and update_data["email"] != agent.get("email"):
        if await db.users.find_one({"email": update_data["email"]}, {"_id": 1}):
            raise HTTPException(status_code=400, detail="Cet email est déjà utilisé")

    await db.agents.update_one({"id": agent_id}, {"$set": {**update_data, "updated_at": now_iso()}})

    user_sync = {k: v for k, v in update_data.items() if k in ("nom", "prenom", "email", "statut")}
    if user_sync:
        await db.users.update_one({"id": agent.get("userId")}, {"$set": user_sync})
    if update_data.get("statut") == "suspendu":
        await db.sessions.delete_many({"user_id": agent.get("userId")})

    await log_activity(
        user=user, action="update", module="agents",
        entity_id=agent_id, details={"fields": list(update_data.keys())}
    )

    updated = await db.agents.find_one({"id": agent_id}, {"_id": 0})
    return {"success": True, "message": "Agent mis à jour avec succès", "data": updated}


@router.put("/{agent_id}/permissions")
async def update_agent_permissions(
    agent_id: str,
    data: AgentPermissionsUpdate,
    user: dict = Depends(require_agence())
):
    agent = await db.agents.find_one(_agent_filter(user, agent_id), {"_id": 0})
    if not agent:
        raise HTTPException(status_code=404, detail="Agent non trouvé")

    permissions = _permissions_or_400(data.permissions)
    await db.agents.update_one({"id": agent_id}, {"$set": {"permissions": permissions, "updated_at": now_iso()}})
    await db.users.update_one({"id": agent.get("userId")}, {"$set": {"permissions": permissions}})

    await log_activity(
        user=user, action="update_permissions", module="agents",
        entity_id=agent_id,
        details={"old_value": agent.get("permissions", []), "new_value": permissions}
    )

    updated = await db.agents.find_one({"id": agent_id}, {"_id": 0})
    return {"success": True, "message": "Permissions mises à jour avec succès", "data": updated}


@router.put("/{agent_id}/agencies")
async def update_agent_agencies(
    agent_id: str,
    data: AgentAgenciesUpdate,
    user: dict = Depends(require_agence())
):
    """Agences supplémentaires de l'agent (limitées aux agences du propriétaire)"""
    agent = await db.agents.find_one(_agent_filter(user, agent_id), {"_id": 0})
    if not agent:
        raise HTTPException(status_code=404, detail="Agent non trouvé")

    if user.get("role") == "superadmin":
        allowed = set(data.agences)
    else:
        allowed = {user.get("agenceId"), *(user.get("agences") or [])}
    refused = [a for a in data.agences if a not in allowed]
    if refused:
        raise HTTPException(status_code=403, detail="Agence non autorisée pour cet agent")

    existing = await db.agences.count_documents({"id": {"$in": data.agences}})
    if existing != len(set(data.agences)):
        raise HTTPException(status_code=404, detail="Agence non trouvée")

    agences = list(dict.fromkeys(data.agences))
    await db.agents.update_one({"id": agent_id}, {"$set": {"agences": agences, "updated_at": now_iso()}})
    await db.users.update_one({"id": agent.get("userId")}, {"$set": {"agences": agences}})

    updated = await db.agents.find_one({"id": agent_id}, {"_id": 0})
    return {"success": True, "message": "Agences de l'agent mises à jour", "data": updated}


@router.delete("/{agent_id}")
async def delete_agent(agent_id: str, user: dict = Depends(require_agence())):
    agent = await db.agents.find_one(_agent_filter(user, agent_id), {"_id": 0})
    if not agent:
        raise HTTPException(status_code=404, detail="Agent non trouvé")

    await db.agents.delete_one({"id": agent_id})
    await db.users.delete_one({"id": agent.get("userId")})
    await db.sessions.delete_many({"user_id": agent.get("userId")})

    await log_activity(
        user=user, action="delete", module="agents",
        entity_id=agent_id, entity_name=f"{agent.get('prenom', '')} {agent.get('nom', '')}".strip()
    )

    return {"success": True, "message": "Agent supprimé avec succès", "deleted_id": agent_id}
