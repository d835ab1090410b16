"""
SamTech Voyages - Routes Audit (db.activity_logs)
Qui a fait quoi, quand, sur quelle entité.
"""

from fastapi import APIRouter, Depends, Query, Request
from typing import Optional
from collections import Counter

from config import db
from services.activity_logger import build_activity_query, get_activity_logs
from services.permissions import require_active, get_agence_scope
from services.reports import rows_to_csv, csv_response

router = APIRouter(prefix="/audit", tags=["Audit"])

EXPORT_FIELDS = [
    "created_at", "user_email", "user_role", "action", "module",
    "entity_id", "entity_name", "success", "ip_address", "agenceId",
]


@router.get("")
async def list_audit_logs(
    request: Request,
    action: Optional[str] = None,
    module: Optional[str] = None,
    userRole: Optional[str] = None,
    success: Optional[bool] = None,
    dateFrom: Optional[str] = None,
    dateTo: Optional[str] = None,
    limit: int = Query(100, le=1000),
    skip: int = 0,
    user: dict = Depends(require_active())
):
    query = build_activity_query(
        agence_id=get_agence_scope(user, request),
        action=action, module=module, user_role=userRole,
        success=success, date_from=dateFrom, date_to=dateTo
    )
    result = await get_activity_logs(query, limit=limit, skip=skip)
    return {
        "success": True,
        "count": len(result["logs"]),
        "total": result["total"],
        "data": result["logs"],
    }


@router.get("/stats")
async def audit_stats(request: Request, user: dict = Depends(require_active())):
    query = build_activity_query(agence_id=get_agence_scope(user, request))
    logs = await db.activity_logs.find(
        query, {"_id": 0, "action": 1, "module": 1, "success": 1, "user_role": 1}
    ).to_list(50000)

    actions = Counter(log.get("action") for log in logs)
    modules = Counter(log.get("module") for log in logs)
    roles = Counter(log.get("user_role") for log in logs)

    return {
        "success": True,
        "data": {
            "total": len(logs),
            "echecs": sum(1 for log in logs if log.get("success") is False),
            "topActions": [{"action": a, "count": c} for a, c in actions.most_common(10)],
            "parModule": dict(modules),
            "parRole": dict(roles),
        },
    }


@router.get("/export")
async def export_audit_logs(
    request: Request,
    action: Optional[str] = None,
    module: Optional[str] = None,
    userRole: Optional[str] = None,
    success: Optional[bool] = None,
    dateFrom: Optional[str] = None,
    dateTo: Optional[str] = None,
    user: dict = Depends(require_active())
):
    query = build_activity_query(
        agence_id=get_agence_scope(user, request),
        action=action, module=module, user_role=userRole,
        success=success, date_from=dateFrom, date_to=dateTo
    )
    result = await get_activity_logs(query, limit=10000)
    return csv_response(rows_to_csv(result["logs"], EXPORT_FIELDS), "audit")
