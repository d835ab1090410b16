"""
SamTech Voyages - Routes Bons de commande
Cycle: brouillon -> envoye -> accepte | refuse ; accepte -> facture (conversion).
Un bon converti (statut facture) n'est plus modifiable.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import uuid

from config import db, now_iso
from models import BonCommandeCreate, BonCommandeUpdate, StatutUpdate
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.billing import (
    BON_STATUSES, BON_PREFIX, compute_totals, next_document_number,
    convert_bon_commande, attach_clients, client_ref,
)
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)
from services.settings import get_tva_rate
from services.webhooks import dispatch_webhook

router = APIRouter(prefix="/bons-commande", tags=["Bons de commande"])


async def _get_scoped_bon(bon_id: str, request: Request, user: dict) -> dict:
    scope = get_agence_scope(user, request)
    bon = await db.bons_commande.find_one({"id": bon_id, **build_agence_filter(scope)}, {"_id": 0})
    if not bon:
        raise HTTPException(status_code=404, detail="Bon de commande non trouvé")
    return bon


def _ensure_editable(bon: dict):
    if bon.get("statut") == "facture":
        raise HTTPException(status_code=400, detail="Bon de commande déjà converti en facture")


@router.get("")
async def list_bons(
    request: Request,
    statut: Optional[str] = None,
    clientId: Optional[str] = None,
    limit: int = Query(500, le=1000),
    skip: int = 0,
    user: dict = Depends(require_permission("factures", "lire"))
):
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if statut:
        query["statut"] = statut
    if clientId:
        query["clientId"] = clientId

    bons = await db.bons_commande.find(query, {"_id": 0}) \
        .sort("dateCreation", -1).skip(skip).limit(limit).to_list(limit)
    total = await db.bons_commande.count_documents(query)

    await attach_clients(bons)
    return {"success": True, "count": len(bons), "total": total, "data": bons}


@router.get("/{bon_id}")
async def get_bon(
    bon_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "lire"))
):
    bon = await _get_scoped_bon(bon_id, request, user)
    await attach_clients([bon])
    return {"success": True, "data": bon}


@router.post("", status_code=201)
async def create_bon(
    data: BonCommandeCreate,
    request: Request,
    user: dict = Depends(require_permission("factures", "creer"))
):
    agence_id = enforce_write_agence(user, request, data.agenceId)

    client = await db.clients.find_one({"id": data.clientId, "agenceId": agence_id}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")

    tva = await get_tva_rate(agence_id)
    numero = await next_document_number(db.bons_commande, BON_PREFIX, agence_id)

    bon = {
        "id": str(uuid.uuid4()),
        "numero": numero,
        "agenceId": agence_id,
        "clientId": data.clientId,
        "dateCreation": now_iso(),
        "statut": data.statut,
        **compute_totals([a.model_dump() for a in data.articles], tva),
        "notes": data.notes or "",
        "factureId": None,
        "created_by": user.get("email"),
    }
    await db.bons_commande.insert_one(bon)
    bon.pop("_id", None)

    await log_activity(
        user=user, action="create", module="bons-commande",
        entity_id=bon["id"], entity_name=numero, agence_id=agence_id
    )

    bon["client"] = client_ref(client)
    return {"success": True, "message": "Bon de commande créé avec succès", "data": bon}


@router.put("/{bon_id}")
async def update_bon(
    bon_id: str,
    data: BonCommandeUpdate,
    request: Request,
    user: dict = Depends(require_permission("factures", "modifier"))
):
    bon = await _get_scoped_bon(bon_id, request, user)
    _ensure_editable(bon)

    update = data.model_dump(exclude_unset=True, exclude_none=True)
    if "clientId" in update:
        if not await db.clients.find_one({"id": update["clientId"], "agenceId": bon["agenceId"]}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Client non trouvé")
    if "articles" in update:
        update.update(compute_totals(update.pop("articles"), bon.get("tauxTVA", 20)))

    update["updated_at"] = now_iso()
    await db.bons_commande.update_one({"id": bon_id}, {"$set": update})

    updated = await db.bons_commande.find_one({"id": bon_id}, {"_id": 0})
    await attach_clients([updated])
    return {"success": True, "message": "Bon de commande mis à jour avec succès", "data": updated}


@router.put("/{bon_id}/status")
async def update_bon_status(
    bon_id: str,
    data: StatutUpdate,
    request: Request,
    user: dict = Depends(require_permission("factures", "modifier"))
):
    """Le statut 'facture' n'est posé que par la conversion"""
    if data.statut not in BON_STATUSES or data.statut == "facture":
        raise HTTPException(status_code=400, detail=f"Statut invalide: {data.statut}")

    bon = await _get_scoped_bon(bon_id, request, user)
    _ensure_editable(bon)

    await db.bons_commande.update_one(
        {"id": bon_id},
        {"$set": {"statut": data.statut, "updated_at": now_iso()}}
    )
    await log_activity(
        user=user, action="update_status", module="bons-commande",
        entity_id=bon_id, entity_name=bon.get("numero"), agence_id=bon.get("agenceId"),
        details={"old_value": bon.get("statut"), "new_value": data.statut}
    )

    updated = await db.bons_commande.find_one({"id": bon_id}, {"_id": 0})
    return {"success": True, "message": "Statut mis à jour", "data": updated}


@router.post("/{bon_id}/convert", status_code=201)
async def convert_bon(
    bon_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "creer"))
):
    """Convertit un bon accepté en facture envoyée (échéance +30 jours)"""
    scope = get_agence_scope(user, request)
    facture = await convert_bon_commande(bon_id, build_agence_filter(scope), user)

    await log_activity(
        user=user, action="convert", module="bons-commande",
        entity_id=bon_id, entity_name=facture["numero"], agence_id=facture.get("agenceId"),
        details={"factureId": facture["id"]}
    )
    await log_event(
        action="bon_converted",
        message=f"Bon de commande converti en facture {facture['numero']}",
        level="success",
        module="factures",
        entity_id=facture["id"],
        user=user.get("email"),
        agence_id=facture.get("agenceId")
    )

    await dispatch_webhook(facture["agenceId"], "bon_commande.converti", facture)

    await attach_clients([facture])
    return {
        "success": True,
        "message": "Bon de commande converti en facture avec succès",
        "data": facture,
    }


@router.delete("/{bon_id}")
async def delete_bon(
    bon_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "supprimer"))
):
    bon = await _get_scoped_bon(bon_id, request, user)
    _ensure_editable(bon)

    await db.bons_commande.delete_one({"id": bon_id})
    await log_activity(
        user=user, action="delete", module="bons-commande",
        entity_id=bon_id, entity_name=bon.get("numero"), agence_id=bon.get("agenceId")
    )
    return {"success": True, "message": "Bon de commande supprimé avec succès", "deleted_id": bon_id}
