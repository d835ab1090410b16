"""
SamTech Voyages - Routes Logs système (db.event_log)
Agence: ses propres logs. Superadmin: tous (ou X-Agence-Id).
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
from datetime import datetime, timezone, timedelta

from config import db
from services.event_logger import LOG_LEVELS
from services.permissions import require_active, get_agence_scope, build_agence_filter
from services.reports import rows_to_csv, csv_response
from routes.clients import search_filter

router = APIRouter(prefix="/logs", tags=["Logs"])

DATE_FILTERS = {"1j": 1, "7j": 7, "30j": 30}
EXPORT_FIELDS = ["created_at", "level", "action", "module", "message", "user", "entity_id", "agenceId"]


def build_log_query(
    scope: Optional[str],
    level: Optional[str] = None,
    date_filter: Optional[str] = None,
    search: Optional[str] = None,
    module: Optional[str] = None,
    now: datetime = None
) -> dict:
    query = build_agence_filter(scope)
    if level:
        if level not in LOG_LEVELS:
            raise HTTPException(status_code=400, detail=f"Niveau invalide: {level}")
        query["level"] = level
    if module:
        query["module"] = module
    if date_filter:
        if date_filter not in DATE_FILTERS:
            raise HTTPException(status_code=400, detail="Filtre de date invalide: 1j, 7j ou 30j")
        now = now or datetime.now(timezone.utc)
        query["created_at"] = {"$gte": (now - timedelta(days=DATE_FILTERS[date_filter])).isoformat()}
    query.update(search_filter(search, ["message", "action", "user"]))
    return query


@router.get("")
async def list_logs(
    request: Request,
    level: Optional[str] = None,
    dateFilter: Optional[str] = None,
    search: Optional[str] = None,
    module: Optional[str] = None,
    limit: int = Query(100, le=1000),
    skip: int = 0,
    user: dict = Depends(require_active())
):
    query = build_log_query(get_agence_scope(user, request), level, dateFilter, search, module)

    logs = await db.event_log.find(query, {"_id": 0}) \
        .sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
    total = await db.event_log.count_documents(query)

    return {"success": True, "count": len(logs), "total": total, "data": logs}


@router.get("/stats")
async def logs_stats(request: Request, user: dict = Depends(require_active())):
    scope_filter = build_agence_filter(get_agence_scope(user, request))
    since = (datetime.now(timezone.utc) - timedelta(hours=24)).isoformat()

    par_niveau = {}
    dernieres_24h = {}
    for level in LOG_LEVELS:
        par_niveau[level] = await db.event_log.count_documents({**scope_filter, "level": level})
        dernieres_24h[level] = await db.event_log.count_documents(
            {**scope_filter, "level": level, "created_at": {"$gte": since}}
        )

    return {
        "success": True,
        "data": {
            "total": sum(par_niveau.values()),
            "parNiveau": par_niveau,
            "dernieres24h": dernieres_24h,
        },
    }


@router.get("/export")
async def export_logs(
    request: Request,
    level: Optional[str] = None,
    dateFilter: Optional[str] = None,
    search: Optional[str] = None,
    user: dict = Depends(require_active())
):
    query = build_log_query(get_agence_scope(user, request), level, dateFilter, search)
    logs = await db.event_log.find(query, {"_id": 0}).sort("created_at", -1).to_list(10000)
    return csv_response(rows_to_csv(logs, EXPORT_FIELDS), "logs")
