"""
SamTech Voyages - Routes Calendrier
Événements de l'agence. Couleur par défaut selon le type.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import uuid

from config import db, now_iso, parse_iso
from models import EventCreate, EventUpdate, event_color
from services.activity_logger import log_activity
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/calendrier", tags=["Calendrier"])


def _check_range(start: Optional[str], end: Optional[str]):
    start_dt, end_dt = parse_iso(start), parse_iso(end)
    if (start and not start_dt) or (end and not end_dt):
        raise HTTPException(status_code=400, detail="Date invalide")
    if start_dt and end_dt and end_dt < start_dt:
        raise HTTPException(status_code=400, detail="La fin doit suivre le début")


async def _client_nom(client_id: Optional[str], agence_id: str) -> str:
    if not client_id:
        return ""
    client = await db.clients.find_one({"id": client_id, "agenceId": agence_id}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")
    return " ".join(p for p in [client.get("prenom"), client.get("nom")] if p)


@router.get("/events")
async def list_events(
    request: Request,
    start: Optional[str] = Query(None, description="Début de la plage (ISO)"),
    end: Optional[str] = Query(None, description="Fin de la plage (ISO)"),
    type: Optional[str] = None,
    user: dict = Depends(require_permission("calendrier", "lire"))
):
    """Événements qui chevauchent la plage [start, end] si fournie"""
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if type:
        query["type"] = type

    events = await db.events.find(query, {"_id": 0}).sort("start", 1).to_list(2000)

    range_start, range_end = parse_iso(start), parse_iso(end)
    if (start and not range_start) or (end and not range_end):
        raise HTTPException(status_code=400, detail="Date invalide")
    if range_start or range_end:
        selected = []
        for e in events:
            e_start = parse_iso(e.get("start"))
            e_end = parse_iso(e.get("end")) or e_start
            if not e_start:
                continue
            if range_end and e_start > range_end:
                continue
            if range_start and e_end < range_start:
                continue
            selected.append(e)
        events = selected

    return {"success": True, "count": len(events), "data": events}


@router.post("/events", status_code=201)
async def create_event(
    data: EventCreate,
    request: Request,
    user: dict = Depends(require_permission("calendrier", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)
    _check_range(data.start, data.end)

    event = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        **data.model_dump(exclude={"agenceId"}),
        "color": data.color or event_color(data.type),
        "clientNom": await _client_nom(data.clientId, agence_id),
        "dateCreation": now_iso(),
        "created_by": user.get("email"),
    }
    await db.events.insert_one(event)
    event.pop("_id", None)

    await log_activity(
        user=user, action="create", module="calendrier",
        entity_id=event["id"], entity_name=event["title"], agence_id=agence_id
    )
    return {"success": True, "message": "Événement créé avec succès", "data": event}


@router.put("/events/{event_id}")
async def update_event(
    event_id: str,
    data: EventUpdate,
    request: Request,
    user: dict = Depends(require_permission("calendrier", "modifier"))
):
    scope = get_agence_scope(user, request)
    event = await db.events.find_one({"id": event_id, **build_agence_filter(scope)}, {"_id": 0})
    if not event:
        raise HTTPException(status_code=404, detail="Événement non trouvé")

    update = data.model_dump(exclude_unset=True, exclude_none=True)
    _check_range(update.get("start", event.get("start")), update.get("end", event.get("end")))
    if "type" in update and "color" not in update and event.get("color") == event_color(event.get("type")):
        # Couleur par défaut: suit le nouveau type
        update["color"] = event_color(update["type"])
    if "clientId" in update:
        update["clientNom"] = await _client_nom(update["clientId"], event["agenceId"])
    update["updated_at"] = now_iso()

    await db.events.update_one({"id": event_id}, {"$set": update})
    updated = await db.events.find_one({"id": event_id}, {"_id": 0})
    return {"success": True, "message": "Événement mis à jour avec succès", "data": updated}


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    request: Request,
    user: dict = Depends(require_permission("calendrier", "supprimer"))
):
    scope = get_agence_scope(user, request)
    result = await db.events.delete_one({"id": event_id, **build_agence_filter(scope)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Événement non trouvé")

    await log_activity(user=user, action="delete", module="calendrier", entity_id=event_id)
    return {"success": True, "message": "Événement supprimé avec succès", "deleted_id": event_id}
