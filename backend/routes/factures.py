"""
SamTech Voyages - Routes Factures
Factures: articles, montantHT, tauxTVA (paramètres agence), montantTTC, numero, statut, dates.
Cycle: brouillon -> envoyee -> payee (en_retard posé automatiquement à échéance dépassée).
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from typing import Optional
import uuid
import logging

from config import db, now_iso, parse_iso, to_utc_iso
from models import FactureCreate, FactureUpdate
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.billing import (
    FACTURE_STATUSES, compute_totals, next_document_number, due_date_iso,
    payment_days_from_conditions, attach_clients, client_ref,
)
from services.permissions import (
    require_permission, get_agence_scope, build_agence_filter, enforce_write_agence,
)
from services.settings import get_agence_parametres, DEFAULT_PARAMETRES
from services.pdf import render_facture_pdf
from services.webhooks import dispatch_webhook

logger = logging.getLogger("factures")

router = APIRouter(prefix="/factures", tags=["Factures"])


async def _get_scoped_facture(facture_id: str, request: Request, user: dict) -> dict:
    scope = get_agence_scope(user, request)
    facture = await db.factures.find_one({"id": facture_id, **build_agence_filter(scope)}, {"_id": 0})
    if not facture:
        raise HTTPException(status_code=404, detail="Facture non trouvée")
    return facture


def _check_dates(emission: Optional[str], echeance: Optional[str]):
    start, end = parse_iso(emission), parse_iso(echeance)
    if (emission and not start) or (echeance and not end):
        raise HTTPException(status_code=400, detail="Date invalide")
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="La date d'échéance doit suivre la date d'émission")


# ════════════════════════════════════════════════════════════════════════
# CRUD
# ════════════════════════════════════════════════════════════════════════

@router.get("")
async def list_factures(
    request: Request,
    statut: Optional[str] = None,
    clientId: Optional[str] = None,
    limit: int = Query(500, le=1000),
    skip: int = 0,
    user: dict = Depends(require_permission("factures", "lire"))
):
    """Liste les factures de l'agence, client embarqué."""
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)
    if statut:
        if statut not in FACTURE_STATUSES:
            raise HTTPException(status_code=400, detail=f"Statut invalide: {statut}")
        query["statut"] = statut
    if clientId:
        query["clientId"] = clientId

    factures = await db.factures.find(query, {"_id": 0}) \
        .sort("dateEmission", -1).skip(skip).limit(limit).to_list(limit)
    total = await db.factures.count_documents(query)

    await attach_clients(factures)
    return {"success": True, "count": len(factures), "total": total, "data": factures}


@router.get("/{facture_id}")
async def get_facture(
    facture_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "lire"))
):
    facture = await _get_scoped_facture(facture_id, request, user)
    await attach_clients([facture])
    return {"success": True, "data": facture}


@router.post("", status_code=201)
async def create_facture(
    data: FactureCreate,
    request: Request,
    user: dict = Depends(require_permission("factures", "creer"))
):
    """Crée une facture. TTC calculé avec la TVA par défaut de l'agence."""
    agence_id = enforce_write_agence(user, request, data.agenceId)

    client = await db.clients.find_one({"id": data.clientId, "agenceId": agence_id}, {"_id": 0})
    if not client:
        raise HTTPException(status_code=404, detail="Client non trouvé")

    params = await get_agence_parametres(agence_id) or DEFAULT_PARAMETRES
    tva = float(params.get("tvaDefaut", 20))
    prefix = params.get("prefixeFacture") or "FAC"

    emission_iso = to_utc_iso(data.dateEmission) if data.dateEmission else now_iso()
    echeance_iso = to_utc_iso(data.dateEcheance) if data.dateEcheance else due_date_iso(
        parse_iso(emission_iso), payment_days_from_conditions(params.get("conditionsPaiement"))
    )
    if not emission_iso or not echeance_iso:
        raise HTTPException(status_code=400, detail="Date invalide")
    _check_dates(emission_iso, echeance_iso)

    numero = await next_document_number(db.factures, prefix, agence_id, parse_iso(emission_iso).year)
    totals = compute_totals([a.model_dump() for a in data.articles], tva)

    facture = {
        "id": str(uuid.uuid4()),
        "numero": numero,
        "agenceId": agence_id,
        "clientId": data.clientId,
        "dateEmission": emission_iso,
        "dateEcheance": echeance_iso,
        "statut": data.statut,
        **totals,
        "notes": data.notes or "",
        "lastReminder": None,
        "datePaiement": None,
        "bonCommandeId": None,
        "created_at": now_iso(),
        "created_by": user.get("email"),
    }

    await db.factures.insert_one(facture)
    facture.pop("_id", None)

    await log_activity(
        user=user, action="create", module="factures",
        entity_id=facture["id"], entity_name=numero, agence_id=agence_id,
        details={"montantTTC": facture["montantTTC"]}
    )
    await log_event(
        action="facture_created",
        message=f"Facture {numero} créée ({facture['montantTTC']:.2f} TTC)",
        level="success",
        module="factures",
        entity_id=facture["id"],
        user=user.get("email"),
        agence_id=agence_id
    )

    await dispatch_webhook(agence_id, "facture.creee", facture)

    facture["client"] = client_ref(client)
    return {"success": True, "message": "Facture créée avec succès", "data": facture}


@router.put("/{facture_id}")
async def update_facture(
    facture_id: str,
    data: FactureUpdate,
    request: Request,
    user: dict = Depends(require_permission("factures", "modifier"))
):
    """Met à jour une facture non payée. Totaux recalculés si les articles changent."""
    facture = await _get_scoped_facture(facture_id, request, user)
    if facture.get("statut") == "payee":
        raise HTTPException(status_code=400, detail="Une facture payée ne peut pas être modifiée")

    update = data.model_dump(exclude_unset=True, exclude_none=True)

    if "clientId" in update:
        client = await db.clients.find_one({"id": update["clientId"], "agenceId": facture["agenceId"]}, {"_id": 1})
        if not client:
            raise HTTPException(status_code=404, detail="Client non trouvé")

    if "articles" in update:
        update.update(compute_totals(update.pop("articles"), facture.get("tauxTVA", 20)))

    _check_dates(update.get("dateEmission", facture.get("dateEmission")),
                 update.get("dateEcheance", facture.get("dateEcheance")))
    for field in ("dateEmission", "dateEcheance"):
        if field in update:
            update[field] = to_utc_iso(update[field])

    if update.get("statut") == "payee":
        update["datePaiement"] = now_iso()

    update["updated_at"] = now_iso()
    await db.factures.update_one({"id": facture_id}, {"$set": update})

    await log_activity(
        user=user, action="update", module="factures",
        entity_id=facture_id, entity_name=facture.get("numero"),
        details={"fields": [k for k in update if k != "updated_at"]},
        agence_id=facture.get("agenceId")
    )

    updated = await db.factures.find_one({"id": facture_id}, {"_id": 0})
    await attach_clients([updated])
    return {"success": True, "message": "Facture mise à jour avec succès", "data": updated}


@router.put("/{facture_id}/send")
async def send_facture(
    facture_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "modifier"))
):
    """brouillon -> envoyee"""
    facture = await _get_scoped_facture(facture_id, request, user)
    if facture.get("statut") != "brouillon":
        raise HTTPException(
            status_code=400,
            detail=f"Seule une facture brouillon peut être envoyée (actuel: {facture.get('statut')})"
        )

    await db.factures.update_one(
        {"id": facture_id},
        {"$set": {"statut": "envoyee", "dateEnvoi": now_iso(), "updated_at": now_iso()}}
    )
    await log_activity(
        user=user, action="send", module="factures",
        entity_id=facture_id, entity_name=facture.get("numero"), agence_id=facture.get("agenceId")
    )

    updated = await db.factures.find_one({"id": facture_id}, {"_id": 0})
    return {"success": True, "message": "Facture envoyée", "data": updated}


@router.put("/{facture_id}/pay")
async def pay_facture(
    facture_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "modifier"))
):
    """Marque la facture comme payée"""
    facture = await _get_scoped_facture(facture_id, request, user)
    if facture.get("statut") == "payee":
        raise HTTPException(status_code=400, detail="Facture déjà payée")

    paid_at = now_iso()
    await db.factures.update_one(
        {"id": facture_id},
        {"$set": {"statut": "payee", "datePaiement": paid_at, "updated_at": paid_at}}
    )

    await log_activity(
        user=user, action="pay", module="factures",
        entity_id=facture_id, entity_name=facture.get("numero"), agence_id=facture.get("agenceId"),
        details={"montantTTC": facture.get("montantTTC")}
    )
    await log_event(
        action="facture_paid",
        message=f"Facture {facture.get('numero')} payée",
        level="success",
        module="factures",
        entity_id=facture_id,
        user=user.get("email"),
        agence_id=facture.get("agenceId")
    )

    updated = await db.factures.find_one({"id": facture_id}, {"_id": 0})
    await dispatch_webhook(facture["agenceId"], "facture.payee", updated)
    return {"success": True, "message": "Facture marquée comme payée", "data": updated}


@router.get("/{facture_id}/pdf")
async def facture_pdf(
    facture_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "lire"))
):
    facture = await _get_scoped_facture(facture_id, request, user)
    agence = await db.agences.find_one({"id": facture["agenceId"]}, {"_id": 0}) or {}
    client = await db.clients.find_one({"id": facture.get("clientId")}, {"_id": 0})
    devise = (agence.get("parametres") or {}).get("devise", "EUR")

    pdf_bytes = render_facture_pdf(facture, agence, client, devise)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{facture["numero"]}.pdf"'}
    )


@router.delete("/{facture_id}")
async def delete_facture(
    facture_id: str,
    request: Request,
    user: dict = Depends(require_permission("factures", "supprimer"))
):
    facture = await _get_scoped_facture(facture_id, request, user)
    if facture.get("statut") == "payee":
        raise HTTPException(status_code=400, detail="Une facture payée ne peut pas être supprimée")

    await db.factures.delete_one({"id": facture_id})
    if facture.get("bonCommandeId"):
        # Le bon redevient convertible
        await db.bons_commande.update_one(
            {"id": facture["bonCommandeId"]},
            {"$set": {"statut": "accepte", "factureId": None}}
        )

    await log_activity(
        user=user, action="delete", module="factures",
        entity_id=facture_id, entity_name=facture.get("numero"), agence_id=facture.get("agenceId")
    )
    return {"success": True, "message": "Facture supprimée avec succès", "deleted_id": facture_id}
