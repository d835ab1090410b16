"""
SamTech Voyages - Routes Rapports
Financier (par mois), top clients, destinations. Export CSV avec l'action 'exporter'.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
from datetime import datetime, timezone

from config import db
from services.permissions import require_permission, get_agence_scope, build_agence_filter
from services.reports import (
    financial_report, clients_report, destinations_report, rows_to_csv, csv_response,
)

router = APIRouter(prefix="/rapports", tags=["Rapports"])

EXPORT_FIELDS = {
    "financier": ["mois", "label", "chiffreAffaires", "encaisse", "depenses"],
    "clients": ["clientId", "nom", "entreprise", "totalFacture", "nombreFactures", "impaye"],
    "destinations": ["destination", "reservations", "voyageurs", "montant"],
}


async def _financier(query: dict, annee: int) -> dict:
    factures = await db.factures.find(query, {"_id": 0, "articles": 0}).to_list(50000)
    operations = await db.operations.find(query, {"_id": 0}).to_list(50000)
    return financial_report(factures, operations, annee)


async def _clients(query: dict) -> list:
    factures = await db.factures.find(query, {"_id": 0, "articles": 0}).to_list(50000)
    clients = await db.clients.find(query, {"_id": 0}).to_list(50000)
    return clients_report(factures, clients)


async def _destinations(query: dict) -> list:
    reservations = await db.reservations.find(query, {"_id": 0}).to_list(50000)
    return destinations_report(reservations)


@router.get("/financier")
async def rapport_financier(
    request: Request,
    annee: Optional[int] = Query(None, ge=2000, le=2100),
    user: dict = Depends(require_permission("rapports", "lire"))
):
    query = build_agence_filter(get_agence_scope(user, request))
    annee = annee or datetime.now(timezone.utc).year
    return {"success": True, "data": await _financier(query, annee)}


@router.get("/clients")
async def rapport_clients(request: Request, user: dict = Depends(require_permission("rapports", "lire"))):
    query = build_agence_filter(get_agence_scope(user, request))
    rows = await _clients(query)
    return {"success": True, "count": len(rows), "data": rows}


@router.get("/destinations")
async def rapport_destinations(request: Request, user: dict = Depends(require_permission("rapports", "lire"))):
    query = build_agence_filter(get_agence_scope(user, request))
    rows = await _destinations(query)
    return {"success": True, "count": len(rows), "data": rows}


@router.get("/export/{kind}")
async def export_rapport(
    kind: str,
    request: Request,
    annee: Optional[int] = Query(None, ge=2000, le=2100),
    user: dict = Depends(require_permission("rapports", "exporter"))
):
    if kind not in EXPORT_FIELDS:
        raise HTTPException(status_code=400, detail=f"Type de rapport invalide: {kind}")

    query = build_agence_filter(get_agence_scope(user, request))
    if kind == "financier":
        rows = (await _financier(query, annee or datetime.now(timezone.utc).year))["mois"]
    elif kind == "clients":
        rows = await _clients(query)
    else:
        rows = await _destinations(query)

    return csv_response(rows_to_csv(rows, EXPORT_FIELDS[kind]), f"rapport_{kind}")
