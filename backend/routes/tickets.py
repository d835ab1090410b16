"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Routes Tickets support                                    ║
║                                                                              ║
║  Agence / agent: tickets de leur agence uniquement                           ║
║  Superadmin: tous les tickets, réponses, statut, suppression                 ║
║  Réponse superadmin sur un ticket ouvert -> en_cours                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import uuid

from config import db, now_iso
from models import (
    TicketCreate, TicketUpdate, TicketStatusUpdate, TicketReponseCreate,
    TICKET_STATUSES, TICKET_PRIORITIES,
)
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.permissions import require_active, require_superadmin

router = APIRouter(prefix="/tickets", tags=["Tickets"])


def _user_name(user: dict) -> str:
    return " ".join(p for p in [user.get("prenom"), user.get("nom")] if p) or user.get("email", "")


async def _get_ticket(ticket_id: str, user: dict) -> dict:
    ticket = await db.tickets.find_one({"id": ticket_id}, {"_id": 0})
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket non trouvé")
    if user.get("role") != "superadmin" and ticket.get("agenceId") != user.get("agenceId"):
        raise HTTPException(status_code=403, detail="Accès non autorisé à ce ticket")
    return ticket


async def _with_agence(tickets: list) -> list:
    agence_ids = list({t.get("agenceId") for t in tickets if t.get("agenceId")})
    agences = {}
    if agence_ids:
        for a in await db.agences.find(
            {"id": {"$in": agence_ids}}, {"_id": 0, "id": 1, "nom": 1, "email": 1}
        ).to_list(len(agence_ids)):
            agences[a["id"]] = a
    for t in tickets:
        a = agences.get(t.get("agenceId"), {})
        t["agence"] = {"nom": a.get("nom", ""), "email": a.get("email", "")}
    return tickets


@router.get("")
async def list_tickets(
    statut: Optional[str] = Query(None),
    priorite: Optional[str] = Query(None),
    user: dict = Depends(require_active())
):
    query = {}
    if user.get("role") != "superadmin":
        query["agenceId"] = user.get("agenceId")
    if statut:
        if statut not in TICKET_STATUSES:
            raise HTTPException(status_code=400, detail=f"Statut invalide: {statut}")
        query["statut"] = statut
    if priorite:
        if priorite not in TICKET_PRIORITIES:
            raise HTTPException(status_code=400, detail=f"Priorité invalide: {priorite}")
        query["priorite"] = priorite

    tickets = await db.tickets.find(query, {"_id": 0}).sort("dateCreation", -1).to_list(500)
    if user.get("role") == "superadmin":
        await _with_agence(tickets)
    return {"success": True, "count": len(tickets), "data": tickets}


@router.get("/{ticket_id}")
async def get_ticket(ticket_id: str, user: dict = Depends(require_active())):
    ticket = await _get_ticket(ticket_id, user)
    await _with_agence([ticket])
    return {"success": True, "data": ticket}


@router.post("", status_code=201)
async def create_ticket(data: TicketCreate, user: dict = Depends(require_active())):
    if user.get("role") == "superadmin" or not user.get("agenceId"):
        raise HTTPException(status_code=403, detail="Seules les agences peuvent ouvrir un ticket")

    now = now_iso()
    ticket = {
        "id": str(uuid.uuid4()),
        "agenceId": user["agenceId"],
        "sujet": data.sujet,
        "description": data.description,
        "statut": "ouvert",
        "priorite": data.priorite,
        "dateCreation": now,
        "dateMAJ": now,
        "reponses": [],
        "created_by": user.get("email"),
    }
    await db.tickets.insert_one(ticket)
    ticket.pop("_id", None)

    await log_activity(
        user=user, action="create", module="tickets",
        entity_id=ticket["id"], entity_name=data.sujet, agence_id=ticket["agenceId"]
    )
    await log_event(
        action="ticket_created",
        message=f"Nouveau ticket: {data.sujet} ({data.priorite})",
        level="warning" if data.priorite == "urgente" else "info",
        module="tickets",
        entity_id=ticket["id"],
        user=user.get("email"),
        agence_id=ticket["agenceId"]
    )
    return {"success": True, "message": "Ticket créé avec succès", "data": ticket}


@router.post("/{ticket_id}/reponses")
async def add_reponse(
    ticket_id: str,
    data: TicketReponseCreate,
    user: dict = Depends(require_active())
):
    ticket = await _get_ticket(ticket_id, user)

    now = now_iso()
    reponse = {
        "id": str(uuid.uuid4()),
        "message": data.message,
        "userId": user.get("id"),
        "userName": _user_name(user),
        "userRole": user.get("role"),
        "date": now,
    }
    update = {"dateMAJ": now}
    if user.get("role") == "superadmin" and ticket.get("statut") == "ouvert":
        update["statut"] = "en_cours"

    await db.tickets.update_one(
        {"id": ticket_id},
        {"$push": {"reponses": reponse}, "$set": update}
    )

    updated = await db.tickets.find_one({"id": ticket_id}, {"_id": 0})
    return {"success": True, "message": "Réponse ajoutée", "data": updated}


@router.put("/{ticket_id}/status")
async def update_ticket_status(
    ticket_id: str,
    data: TicketStatusUpdate,
    user: dict = Depends(require_active())
):
    """Superadmin ou agence propriétaire du ticket"""
    ticket = await _get_ticket(ticket_id, user)
    if user.get("role") == "agent":
        raise HTTPException(status_code=403, detail="Accès non autorisé à ce ticket")

    await db.tickets.update_one(
        {"id": ticket_id},
        {"$set": {"statut": data.statut, "dateMAJ": now_iso()}}
    )
    await log_activity(
        user=user, action="update_status", module="tickets",
        entity_id=ticket_id, entity_name=ticket.get("sujet"), agence_id=ticket.get("agenceId"),
        details={"old_value": ticket.get("statut"), "new_value": data.statut}
    )

    updated = await db.tickets.find_one({"id": ticket_id}, {"_id": 0})
    return {"success": True, "message": "Statut du ticket mis à jour", "data": updated}


@router.put("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    data: TicketUpdate,
    user: dict = Depends(require_active())
):
    ticket = await _get_ticket(ticket_id, user)
    if user.get("role") != "agence" or ticket.get("agenceId") != user.get("agenceId"):
        raise HTTPException(status_code=403, detail="Accès non autorisé à ce ticket")

    update = {k: v.strip() if isinstance(v, str) else v
              for k, v in data.model_dump(exclude_unset=True, exclude_none=True).items()}
    if ("sujet" in update and not update["sujet"]) or ("description" in update and not update["description"]):
        raise HTTPException(status_code=400, detail="Sujet et description obligatoires")
    update["dateMAJ"] = now_iso()

    await db.tickets.update_one({"id": ticket_id}, {"$set": update})
    updated = await db.tickets.find_one({"id": ticket_id}, {"_id": 0})
    return {"success": True, "message": "Ticket mis à jour avec succès", "data": updated}


@router.delete("/{ticket_id}")
async def delete_ticket(ticket_id: str, user: dict = Depends(require_superadmin())):
    ticket = await db.tickets.find_one({"id": ticket_id}, {"_id": 0, "sujet": 1, "agenceId": 1})
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket non trouvé")

    await db.tickets.delete_one({"id": ticket_id})
    await log_activity(
        user=user, action="delete", module="tickets",
        entity_id=ticket_id, entity_name=ticket.get("sujet"), agence_id=ticket.get("agenceId")
    )
    return {"success": True, "message": "Ticket supprimé avec succès", "deleted_id": ticket_id}
