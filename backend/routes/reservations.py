"""
SamTech Voyages - Routes Réservations
Numérotation RES-<année>-<seq> par agence, nom du client recopié à l'écriture.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import uuid

from config import db, now_iso, parse_iso
from models import ReservationCreate, ReservationUpdate, StatutUpdate, RESERVATION_STATUSES
from services.activity_logger import log_activity
from services.billing import RESERVATION_PREFIX, next_document_number
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)
from services.webhooks import dispatch_webhook

router = APIRouter(prefix="/reservations", tags=["Réservations"])


def _client_nom(client: dict) -> str:
    return " ".join(p for p in [client.get("prenom"), client.get("nom")] if p)


def _check_dates(depart: Optional[str], retour: Optional[str]):
    start, end = parse_iso(depart), parse_iso(retour)
    if (depart and not start) or (retour and not end):
        raise HTTPException(status_code=400, detail="Date invalide")
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="La date de retour doit suivre la date de départ")


async def _get_client(client_id: str, agence_id: str) -> dict:
    client = await db.clients.find_one({"id": client_id, "agenceId": agence_id}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")
    return client


@router.get("")
async def list_reservations(
    request: Request,
    statut: Optional[str] = None,
    type: Optional[str] = None,
    clientId: Optional[str] = None,
    limit: int = Query(500, le=1000),
    user: dict = Depends(require_permission("reservations", "lire"))
):
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if statut:
        query["statut"] = statut
    if type:
        query["type"] = type
    if clientId:
        query["clientId"] = clientId

    reservations = await db.reservations.find(query, {"_id": 0}).sort("dateCreation", -1).to_list(limit)
    return {"success": True, "count": len(reservations), "data": reservations}


@router.get("/{reservation_id}")
async def get_reservation(
    reservation_id: str,
    request: Request,
    user: dict = Depends(require_permission("reservations", "lire"))
):
    scope = get_agence_scope(user, request)
    reservation = await db.reservations.find_one(
        {"id": reservation_id, **build_agence_filter(scope)}, {"_id": 0}
    )
    if not reservation:
        raise HTTPException(status_code=404, detail="Réservation non trouvée")
    return {"success": True, "data": reservation}


@router.post("", status_code=201)
async def create_reservation(
    data: ReservationCreate,
    request: Request,
    user: dict = Depends(require_permission("reservations", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)
    _check_dates(data.dateDepart, data.dateRetour)
    client = await _get_client(data.clientId, agence_id)

    depart = parse_iso(data.dateDepart)
    numero = await next_document_number(db.reservations, RESERVATION_PREFIX, agence_id)

    reservation = {
        "id": str(uuid.uuid4()),
        "numero": numero,
        "agenceId": agence_id,
        **data.model_dump(exclude={"agenceId"}),
        "clientNom": _client_nom(client),
        "notes": data.notes or "",
        "dateCreation": now_iso(),
        "created_by": user.get("email"),
    }
    await db.reservations.insert_one(reservation)
    reservation.pop("_id", None)

    await log_activity(
        user=user, action="create", module="reservations",
        entity_id=reservation["id"], entity_name=numero, agence_id=agence_id,
        details={"destination": data.destination, "dateDepart": depart.isoformat() if depart else None}
    )
    await dispatch_webhook(agence_id, "reservation.creee", reservation)
    return {"success": True, "message": "Réservation créée avec succès", "data": reservation}


@router.put("/{reservation_id}")
async def update_reservation(
    reservation_id: str,
    data: ReservationUpdate,
    request: Request,
    user: dict = Depends(require_permission("reservations", "modifier"))
):
    scope = get_agence_scope(user, request)
    reservation = await db.reservations.find_one(
        {"id": reservation_id, **build_agence_filter(scope)}, {"_id": 0}
    )
    if not reservation:
        raise HTTPException(status_code=404, detail="Réservation non trouvée")

    update = data.model_dump(exclude_unset=True, exclude_none=True)
    _check_dates(update.get("dateDepart", reservation.get("dateDepart")),
                 update.get("dateRetour", reservation.get("dateRetour")))
    if "clientId" in update:
        client = await _get_client(update["clientId"], reservation["agenceId"])
        update["clientNom"] = _client_nom(client)
    update["updated_at"] = now_iso()

    await db.reservations.update_one({"id": reservation_id}, {"$set": update})
    updated = await db.reservations.find_one({"id": reservation_id}, {"_id": 0})
    return {"success": True, "message": "Réservation mise à jour avec succès", "data": updated}


@router.put("/{reservation_id}/status")
async def update_reservation_status(
    reservation_id: str,
    data: StatutUpdate,
    request: Request,
    user: dict = Depends(require_permission("reservations", "modifier"))
):
    if data.statut not in RESERVATION_STATUSES:
        raise HTTPException(status_code=400, detail=f"Statut invalide: {data.statut}")

    scope = get_agence_scope(user, request)
    reservation = await db.reservations.find_one(
        {"id": reservation_id, **build_agence_filter(scope)}, {"_id": 0}
    )
    if not reservation:
        raise HTTPException(status_code=404, detail="Réservation non trouvée")

    await db.reservations.update_one(
        {"id": reservation_id},
        {"$set": {"statut": data.statut, "updated_at": now_iso()}}
    )
    await log_activity(
        user=user, action="update_status", module="reservations",
        entity_id=reservation_id, entity_name=reservation.get("numero"),
        agence_id=reservation.get("agenceId"),
        details={"old_value": reservation.get("statut"), "new_value": data.statut}
    )

    updated = await db.reservations.find_one({"id": reservation_id}, {"_id": 0})
    return {"success": True, "message": "Statut mis à jour", "data": updated}


@router.delete("/{reservation_id}")
async def delete_reservation(
    reservation_id: str,
    request: Request,
    user: dict = Depends(require_permission("reservations", "supprimer"))
):
    scope = get_agence_scope(user, request)
    result = await db.reservations.delete_one({"id": reservation_id, **build_agence_filter(scope)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Réservation non trouvée")

    await log_activity(user=user, action="delete", module="reservations", entity_id=reservation_id)
    return {"success": True, "message": "Réservation supprimée avec succès", "deleted_id": reservation_id}
