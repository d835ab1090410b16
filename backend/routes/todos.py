"""
SamTech Voyages - Routes Tâches
Toggle: en_attente -> en_cours -> termine -> en_attente
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Optional
import uuid

from config import db, now_iso, parse_iso
from models import TodoCreate, TodoUpdate
from services.activity_logger import log_activity
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/todos", tags=["Tâches"])

NEXT_STATUS = {
    "en_attente": "en_cours",
    "en_cours": "termine",
    "termine": "en_attente",
}


async def _client_nom(client_id: Optional[str], agence_id: str) -> str:
    if not client_id:
        return ""
    client = await db.clients.find_one({"id": client_id, "agenceId": agence_id}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")
    return " ".join(p for p in [client.get("prenom"), client.get("nom")] if p)


def _check_echeance(value: Optional[str]):
    if value and not parse_iso(value):
        raise HTTPException(status_code=400, detail="Date d'échéance invalide")


@router.get("")
async def list_todos(
    request: Request,
    statut: Optional[str] = None,
    priorite: Optional[str] = None,
    user: dict = Depends(require_permission("todos", "lire"))
):
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if statut:
        query["statut"] = statut
    if priorite:
        query["priorite"] = priorite

    todos = await db.todos.find(query, {"_id": 0}).sort("dateCreation", -1).to_list(1000)
    return {"success": True, "count": len(todos), "data": todos}


@router.post("", status_code=201)
async def create_todo(
    data: TodoCreate,
    request: Request,
    user: dict = Depends(require_permission("todos", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)
    _check_echeance(data.dateEcheance)

    todo = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        **data.model_dump(exclude={"agenceId"}),
        "clientNom": await _client_nom(data.clientId, agence_id),
        "dateCreation": now_iso(),
        "created_by": user.get("email"),
    }
    await db.todos.insert_one(todo)
    todo.pop("_id", None)

    await log_activity(
        user=user, action="create", module="todos",
        entity_id=todo["id"], entity_name=todo["titre"], agence_id=agence_id
    )
    return {"success": True, "message": "Tâche créée avec succès", "data": todo}


@router.put("/{todo_id}")
async def update_todo(
    todo_id: str,
    data: TodoUpdate,
    request: Request,
    user: dict = Depends(require_permission("todos", "modifier"))
):
    scope = get_agence_scope(user, request)
    todo = await db.todos.find_one({"id": todo_id, **build_agence_filter(scope)}, {"_id": 0})
    if not todo:
        raise HTTPException(status_code=404, detail="Tâche non trouvée")

    update = data.model_dump(exclude_unset=True, exclude_none=True)
    _check_echeance(update.get("dateEcheance"))
    if "clientId" in update:
        update["clientNom"] = await _client_nom(update["clientId"], todo["agenceId"])
    update["updated_at"] = now_iso()

    await db.todos.update_one({"id": todo_id}, {"$set": update})
    updated = await db.todos.find_one({"id": todo_id}, {"_id": 0})
    return {"success": True, "message": "Tâche mise à jour avec succès", "data": updated}


@router.put("/{todo_id}/toggle")
async def toggle_todo(
    todo_id: str,
    request: Request,
    user: dict = Depends(require_permission("todos", "modifier"))
):
    scope = get_agence_scope(user, request)
    todo = await db.todos.find_one({"id": todo_id, **build_agence_filter(scope)}, {"_id": 0})
    if not todo:
        raise HTTPException(status_code=404, detail="Tâche non trouvée")

    statut = NEXT_STATUS.get(todo.get("statut"), "en_attente")
    await db.todos.update_one({"id": todo_id}, {"$set": {"statut": statut, "updated_at": now_iso()}})

    updated = await db.todos.find_one({"id": todo_id}, {"_id": 0})
    return {"success": True, "message": "Statut de la tâche mis à jour", "data": updated}


@router.delete("/{todo_id}")
async def delete_todo(
    todo_id: str,
    request: Request,
    user: dict = Depends(require_permission("todos", "supprimer"))
):
    scope = get_agence_scope(user, request)
    result = await db.todos.delete_one({"id": todo_id, **build_agence_filter(scope)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Tâche non trouvée")

    await log_activity(user=user, action="delete", module="todos", entity_id=todo_id)
    return {"success": True, "message": "Tâche supprimée avec succès", "deleted_id": todo_id}
