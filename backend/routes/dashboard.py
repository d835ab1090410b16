"""
SamTech Voyages - Routes Dashboard
Les routes chargent les collections, l'agrégation est dans services/dashboard.py
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from config import db
from services.dashboard import compute_agency_stats, compute_superadmin_stats, compute_caisse_solde
from services.permissions import (
    require_active, require_superadmin, get_agence_scope, build_agence_filter,
)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

_STATS_PROJECTION = {"_id": 0, "articles": 0}


@router.get("/stats")
async def get_dashboard_stats(request: Request, user: dict = Depends(require_active())):
    """Statistiques de l'agence (superadmin: toutes agences ou X-Agence-Id)"""
    scope = get_agence_scope(user, request)
    query = build_agence_filter(scope)

    total_clients = await db.clients.count_documents(query)
    factures = await db.factures.find(query, _STATS_PROJECTION).to_list(10000)
    operations = await db.operations.find(query, {"_id": 0}).to_list(10000)
    bons = await db.bons_commande.find(query, _STATS_PROJECTION).to_list(10000)

    stats = compute_agency_stats(total_clients, factures, operations, bons)
    return {"success": True, "data": stats}


@router.get("/superadmin/stats")
async def get_superadmin_stats(user: dict = Depends(require_superadmin())):
    agences = await db.agences.find({}, {"_id": 0, "parametres": 0, "vitrineConfig": 0}).to_list(5000)
    tickets = await db.tickets.find({}, {"_id": 0, "reponses": 0}).to_list(5000)

    stats = compute_superadmin_stats(agences, tickets)
    return {"success": True, "data": stats}


@router.get("/agence/stats")
async def get_agence_stats(user: dict = Depends(require_active())):
    agence_id = user.get("agenceId")
    if not agence_id:
        raise HTTPException(status_code=400, detail="Aucune agence rattachée à ce compte")

    query = {"agenceId": agence_id}
    operations = await db.operations.find(query, {"_id": 0}).to_list(10000)

    return {
        "success": True,
        "data": {
            "totalClients": await db.clients.count_documents(query),
            "totalFactures": await db.factures.count_documents(query),
            "facturesImpayees": await db.factures.count_documents({**query, "statut": "en_retard"}),
            "totalReservations": await db.reservations.count_documents(query),
            "soldeCaisse": compute_caisse_solde(operations)["solde"],
            "ticketsOuverts": await db.tickets.count_documents({**query, "statut": "ouvert"}),
        },
    }
