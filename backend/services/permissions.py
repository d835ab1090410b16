"""
SamTech Voyages - Permission System
Roles (superadmin / agence / agent) + per-module actions for agents.
Agency isolation helpers + FastAPI dependencies.
"""

import logging
from typing import Optional, Dict, List
from fastapi import Depends, HTTPException, Request

logger = logging.getLogger("permissions")

# ════════════════════════════════════════════════════════════════════════
# ROLES / ACTIONS / MODULES
# ════════════════════════════════════════════════════════════════════════

ALL_ACTIONS = ["lire", "creer", "modifier", "supprimer", "exporter"]
CRUD_ACTIONS = ["lire", "creer", "modifier", "supprimer"]

MODULE_CATALOG: List[Dict] = [
    {"id": "clients", "nom": "Clients", "actions": CRUD_ACTIONS},
    {"id": "fournisseurs", "nom": "Fournisseurs", "actions": CRUD_ACTIONS},
    {"id": "factures", "nom": "Factures & Bons de commande", "actions": CRUD_ACTIONS},
    {"id": "caisse", "nom": "Caisse", "actions": CRUD_ACTIONS},
    {"id": "reservations", "nom": "Réservations", "actions": CRUD_ACTIONS},
    {"id": "packages", "nom": "Packages", "actions": CRUD_ACTIONS},
    {"id": "billets", "nom": "Billets", "actions": CRUD_ACTIONS},
    {"id": "documents", "nom": "Documents", "actions": CRUD_ACTIONS},
    {"id": "todos", "nom": "Tâches", "actions": CRUD_ACTIONS},
    {"id": "calendrier", "nom": "Calendrier", "actions": CRUD_ACTIONS},
    {"id": "crm", "nom": "CRM", "actions": CRUD_ACTIONS},
    {"id": "rapports", "nom": "Rapports", "actions": ["lire", "exporter"]},
]

MODULE_ACTIONS: Dict[str, List[str]] = {m["id"]: m["actions"] for m in MODULE_CATALOG}

# Modules an agency can have activated (sidebar entries)
AGENCE_MODULES = [
    "clients", "fournisseurs", "bons-commande", "factures", "creances",
    "caisse", "situation", "billets", "packages", "vitrine", "agents",
    "crm", "reservations", "documents", "todos", "calendrier",
    "notifications", "rapports", "logs",
]

SUPERADMIN_MODULES = [
    "agences", "tickets", "parametres", "permissions", "audit",
    "rapports", "notifications", "calendrier",
]


# ════════════════════════════════════════════════════════════════════════
# PERMISSION CHECK HELPERS
# ════════════════════════════════════════════════════════════════════════

def user_has_permission(user: dict, module: str, action: str) -> bool:
    """superadmin / agence: everything. agent: explicit {module, actions} entry."""
    role = user.get("role")
    if role in ("superadmin", "agence"):
        return True
    if role != "agent":
        return False
    for perm in user.get("permissions") or []:
        if perm.get("module") == module:
            return action in (perm.get("actions") or [])
    return False


def get_accessible_modules(user: dict) -> List[str]:
    role = user.get("role")
    if role == "superadmin":
        return list(SUPERADMIN_MODULES)
    if role == "agence":
        return ["dashboard"] + list(AGENCE_MODULES)
    if role == "agent":
        return ["dashboard"] + [p.get("module") for p in user.get("permissions") or []]
    return []


def normalize_permissions(permissions: Optional[List[Dict]]) -> List[Dict]:
    """
    Validate an agent permission list [{module, actions}].
    Raises ValueError on unknown module/action. Duplicated modules are merged.
    """
    merged: Dict[str, List[str]] = {}
    for perm in permissions or []:
        module = perm.get("module")
        if module not in MODULE_ACTIONS:
            raise ValueError(f"Module inconnu: {module}")
        actions = perm.get("actions") or []
        for action in actions:
            if action not in MODULE_ACTIONS[module]:
                raise ValueError(f"Action '{action}' invalide pour le module {module}")
        merged[module] = merge_modules(merged.get(module, []), actions)
    return [{"module": m, "actions": a} for m, a in merged.items()]


def merge_modules(current: Optional[List[str]], added: Optional[List[str]]) -> List[str]:
    """Order-preserving set union: current first, then new entries of added."""
    result = []
    for module in list(current or []) + list(added or []):
        if module not in result:
            result.append(module)
    return result


def remove_modules(current: Optional[List[str]], removed: Optional[List[str]]) -> List[str]:
    removed = set(removed or [])
    return [m for m in current or [] if m not in removed]


# ════════════════════════════════════════════════════════════════════════
# AGENCY ISOLATION
# ════════════════════════════════════════════════════════════════════════

def get_agence_scope(user: dict, request: Request) -> Optional[str]:
    """
    Resolve the agency scope for the current request.
    - superadmin: X-Agence-Id header if present, else None (all agencies)
    - others: always forced to user.agenceId
    """
    if user.get("role") == "superadmin":
        scope = request.headers.get("x-agence-id", "").strip()
        return scope or None
    return user.get("agenceId")


def build_agence_filter(scope: Optional[str], field: str = "agenceId") -> dict:
    """scope=None -> no filter, otherwise strict filter on agenceId."""
    if scope is None:
        return {}
    return {field: scope}


def enforce_write_agence(user: dict, request: Request, provided_agence: Optional[str] = None) -> str:
    """
    Determine the agency for a write operation.
    - agence / agent: always user.agenceId (client-provided value ignored)
    - superadmin: X-Agence-Id header, else explicit agenceId in body, else 400
    """
    if user.get("role") != "superadmin":
        agence_id = user.get("agenceId")
        if not agence_id:
            raise HTTPException(status_code=403, detail="Aucune agence rattachée à ce compte")
        return agence_id

    scope = get_agence_scope(user, request)
    if scope:
        return scope
    if provided_agence:
        return provided_agence

    raise HTTPException(
        status_code=400,
        detail="Agence explicite requise pour les écritures superadmin (en-tête X-Agence-Id)"
    )


def ensure_account_active(user: dict):
    """Agency modules are closed until the account is approved."""
    if user.get("role") == "superadmin":
        return
    if user.get("statut", "actif") != "actif":
        raise HTTPException(status_code=403, detail="Compte en attente d'approbation")


# ════════════════════════════════════════════════════════════════════════
# FASTAPI DEPENDENCIES
# ════════════════════════════════════════════════════════════════════════

def require_permission(module: str, action: str = "lire"):
    """
    FastAPI dependency factory.
    Usage: user: dict = Depends(require_permission("clients", "creer"))
    """
    from routes.auth import get_current_user

    async def _check(request: Request, user: dict = Depends(get_current_user)):
        ensure_account_active(user)
        if not user_has_permission(user, module, action):
            logger.warning(
                f"[PERMISSION_DENIED] user={user.get('email')} "
                f"module={module} action={action} role={user.get('role')}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"Permission requise: {module}.{action}"
            )
        return user

    return _check


def require_superadmin():
    """FastAPI dependency: only superadmin allowed."""
    from routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        if user.get("role") != "superadmin":
            raise HTTPException(status_code=403, detail="Accès superadmin requis")
        return user

    return _check


def require_agence():
    """FastAPI dependency: agency owner (or superadmin) with an active account."""
    from routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        if user.get("role") not in ("agence", "superadmin"):
            raise HTTPException(status_code=403, detail="Accès réservé aux agences")
        ensure_account_active(user)
        return user

    return _check


def require_active():
    """FastAPI dependency: any authenticated, approved account."""
    from routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        ensure_account_active(user)
        return user

    return _check
