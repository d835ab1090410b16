"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Routes Clients                                            ║
║                                                                              ║
║  CRUD des clients de l'agence                                                ║
║  Multi-tenant strict: toutes les requêtes filtrées par agenceId              ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import re
import uuid

from config import db, now_iso
from models import ClientCreate, ClientUpdate
from services.activity_logger import log_activity
from services.billing import UNPAID_STATUSES
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)

router = APIRouter(prefix="/clients", tags=["Clients"])


def search_filter(search: Optional[str], fields) -> dict:
    """$or insensible à la casse sur plusieurs champs"""
    if not search or not search.strip():
        return {}
    pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
    return {"$or": [{f: pattern} for f in fields]}


@router.get("")
async def list_clients(
    request: Request,
    search: Optional[str] = Query(None, description="Recherche nom / prénom / email / entreprise"),
    limit: int = Query(500, le=1000),
    skip: int = 0,
    user: dict = Depends(require_permission("clients", "lire"))
):
    """Liste les clients de l'agence"""
    scope = get_agence_scope(user, request)
    query = {**build_agence_filter(scope), **search_filter(search, ["nom", "prenom", "email", "entreprise"])}

    clients = await db.clients.find(query, {"_id": 0}) \
        .sort("dateCreation", -1).skip(skip).limit(limit).to_list(limit)
    total = await db.clients.count_documents(query)

    return {"success": True, "count": len(clients), "total": total, "data": clients}


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    request: Request,
    user: dict = Depends(require_permission("clients", "lire"))
):
    """Client + résumé de facturation"""
    scope = get_agence_scope(user, request)
    client = await db.clients.find_one({"id": client_id, **build_agence_filter(scope)}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")

    factures = await db.factures.find(
        {"clientId": client_id}, {"_id": 0, "statut": 1, "montantTTC": 1}
    ).to_list(1000)
    client["factures"] = {
        "total": len(factures),
        "impayees": sum(1 for f in factures if f.get("statut") in UNPAID_STATUSES),
        "montantImpaye": round(sum(f.get("montantTTC", 0) for f in factures if f.get("statut") in UNPAID_STATUSES), 2),
    }
    client["reservations"] = await db.reservations.count_documents({"clientId": client_id})

    return {"success": True, "data": client}


@router.post("", status_code=201)
async def create_client(
    data: ClientCreate,
    request: Request,
    user: dict = Depends(require_permission("clients", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)

    client = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        "nom": data.nom,
        "prenom": data.prenom or "",
        "entreprise": data.entreprise or "",
        "email": data.email,
        "telephone": data.telephone,
        "adresse": data.adresse,
        "solde": 0,
        "dateCreation": now_iso(),
        "created_by": user.get("email"),
    }

    await db.clients.insert_one(client)
    client.pop("_id", None)

    await log_activity(
        user=user, action="create", module="clients",
        entity_id=client["id"], entity_name=client["nom"], agence_id=agence_id
    )

    return {"success": True, "message": "Client créé avec succès", "data": client}


@router.put("/{client_id}")
async def update_client(
    client_id: str,
    data: ClientUpdate,
    request: Request,
    user: dict = Depends(require_permission("clients", "modifier"))
):
    """Met à jour un client"""
    scope = get_agence_scope(user, request)
    client = await db.clients.find_one({"id": client_id, **build_agence_filter(scope)}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    for field in ("nom", "telephone", "adresse"):
        if field in update_data and not str(update_data[field]).strip():
            raise HTTPException(status_code=400, detail=f"Le champ {field} ne peut pas être vide")
    update_data["updated_at"] = now_iso()

    await db.clients.update_one({"id": client_id}, {"$set": update_data})

    await log_activity(
        user=user, action="update", module="clients",
        entity_id=client_id, entity_name=client.get("nom"),
        details={"fields": [k for k in update_data if k != "updated_at"]},
        agence_id=client.get("agenceId")
    )

    updated = await db.clients.find_one({"id": client_id}, {"_id": 0})
    return {"success": True, "message": "Client mis à jour avec succès", "data": updated}


@router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    request: Request,
    user: dict = Depends(require_permission("clients", "supprimer"))
):
    """
    Supprime un client

    ATTENTION: refusé tant que des factures impayées sont liées
    """
    scope = get_agence_scope(user, request)
    client = await db.clients.find_one({"id": client_id, **build_agence_filter(scope)}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")

    unpaid = await db.factures.count_documents({
        "clientId": client_id,
        "statut": {"$in": UNPAID_STATUSES}
    })
    if unpaid > 0:
        raise HTTPException(
            status_code=400,
            detail=f"Impossible de supprimer: {unpaid} facture(s) impayée(s)"
        )

    await db.clients.delete_one({"id": client_id})

    await log_activity(
        user=user, action="delete", module="clients",
        entity_id=client_id, entity_name=client.get("nom"), agence_id=client.get("agenceId")
    )

    return {"success": True, "message": "Client supprimé avec succès", "deleted_id": client_id}
