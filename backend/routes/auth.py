"""
SamTech Voyages - Routes Auth
Register (agence en attente) / Login / Logout / Session.
"""

from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timezone, timedelta
import uuid

from models import UserLogin, RegisterRequest, compose_adresse
from config import db, hash_password, generate_token, now_iso, SESSION_DAYS
from services.activity_logger import log_activity
from services.event_logger import log_event
from services.permissions import AGENCE_MODULES, merge_modules, get_accessible_modules
from services.settings import build_default_parametres, build_default_vitrine

router = APIRouter(prefix="/auth", tags=["Auth"])
security = HTTPBearer(auto_error=False)

BLOCKED_STATUSES = {
    "suspendu": "Compte suspendu",
    "rejete": "Compte rejeté",
}

AGENCE_BLOCKED_STATUSES = {
    "en_attente": "Agence en attente d'approbation",
    "suspendu": "Agence suspendue",
    "rejete": "Agence rejetée",
}


# ==================== HELPERS ====================

def public_user(user: dict) -> dict:
    """User sans mot de passe ni _id"""
    return {k: v for k, v in user.items() if k not in ("password", "_id")}


async def check_agence_open(user: dict):
    """Un agent suit le statut de son agence: bloqué tant qu'elle n'est pas approuvée."""
    if user.get("role") != "agent":
        return
    agence = await db.agences.find_one({"id": user.get("agenceId")}, {"_id": 0, "statut": 1})
    blocked = AGENCE_BLOCKED_STATUSES.get((agence or {}).get("statut", "suspendu"))
    if blocked:
        raise HTTPException(status_code=403, detail=blocked)


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Récupère l'utilisateur connecté depuis le token."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Authentification requise")

    token = credentials.credentials
    session = await db.sessions.find_one({
        "token": token,
        "expires_at": {"$gt": now_iso()}
    })

    if not session:
        raise HTTPException(status_code=401, detail="Session expirée")

    user = await db.users.find_one(
        {"id": session["user_id"]},
        {"_id": 0, "password": 0}
    )

    if not user:
        raise HTTPException(status_code=401, detail="Utilisateur non trouvé")

    blocked = BLOCKED_STATUSES.get(user.get("statut"))
    if blocked:
        raise HTTPException(status_code=403, detail=blocked)
    await check_agence_open(user)

    return user


def _client_ip(request: Request):
    return request.client.host if request.client else None


# ==================== REGISTER ====================

@router.post("/register", status_code=201)
async def register(data: RegisterRequest, request: Request):
    """Inscription d'une agence: agence + compte propriétaire, tous deux en attente."""
    if await db.users.find_one({"email": data.email}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Cet email est déjà utilisé")

    now = now_iso()
    agence = {
        "id": str(uuid.uuid4()),
        "nom": data.nomAgence,
        "email": data.email,
        "telephone": data.telephone or "",
        "adresse": compose_adresse(data.adresse, data.codePostal, data.ville, data.pays),
        "statut": "en_attente",
        "dateInscription": now,
        "modulesActifs": [],
        "modulesChoisis": [m for m in merge_modules([], data.modulesChoisis) if m in AGENCE_MODULES],
        "modulesDemandes": [],
        "typeActivite": data.typeActivite or "agence-voyage",
        "siret": data.siret or "",
        "logo": "",
        "created_at": now,
    }
    agence["vitrineConfig"] = build_default_vitrine(agence)
    agence["parametres"] = build_default_parametres(agence)

    user = {
        "id": str(uuid.uuid4()),
        "email": data.email,
        "password": hash_password(data.password),
        "nom": data.nomAgence,
        "prenom": "",
        "role": "agence",
        "statut": "en_attente",
        "agenceId": agence["id"],
        "agences": [],
        "permissions": [],
        "dateInscription": now,
        "created_at": now,
    }

    await db.agences.insert_one(agence)
    await db.users.insert_one(user)

    await log_activity(
        user=user,
        action="register",
        module="auth",
        entity_id=agence["id"],
        entity_name=agence["nom"],
        ip_address=_client_ip(request)
    )
    await log_event(
        action="agence_registered",
        message=f"Nouvelle inscription: {agence['nom']}",
        module="agences",
        entity_id=agence["id"],
        user=user["email"],
        agence_id=agence["id"]
    )

    return {
        "success": True,
        "message": "Inscription réussie, en attente d'approbation",
        "user": public_user(user),
    }


# ==================== LOGIN / LOGOUT ====================

@router.post("/login")
async def login(data: UserLogin, request: Request):
    """Connexion utilisateur."""
    email = (data.email or "").lower().strip()
    if not email or not data.password:
        raise HTTPException(status_code=400, detail="Email et mot de passe requis")

    user = await db.users.find_one({"email": email}, {"_id": 0})

    if not user or user.get("password") != hash_password(data.password):
        await log_activity(
            user=user or {"email": email},
            action="login_failed",
            module="auth",
            success=False,
            ip_address=_client_ip(request)
        )
        raise HTTPException(status_code=401, detail="Identifiants incorrects")

    blocked = BLOCKED_STATUSES.get(user.get("statut"))
    if blocked:
        raise HTTPException(status_code=403, detail=blocked)
    await check_agence_open(user)

    token = generate_token()
    expires_at = (datetime.now(timezone.utc) + timedelta(days=SESSION_DAYS)).isoformat()

    await db.sessions.insert_one({
        "token": token,
        "user_id": user["id"],
        "created_at": now_iso(),
        "expires_at": expires_at
    })

    await log_activity(
        user=user,
        action="login",
        module="auth",
        entity_id=user["id"],
        ip_address=_client_ip(request)
    )

    return {
        "success": True,
        "message": "Connexion réussie",
        "token": token,
        "user": public_user(user),
    }


@router.post("/logout")
async def logout(
    user: dict = Depends(get_current_user),
    credentials: HTTPAuthorizationCredentials = Depends(security)
):
    if credentials:
        await db.sessions.delete_one({"token": credentials.credentials})
    await log_activity(user=user, action="logout", module="auth", entity_id=user["id"])
    return {"success": True, "message": "Déconnexion réussie"}


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Retourne user + modules accessibles (+ agence pour les comptes agence/agent)."""
    data = dict(user)
    data["modulesAccessibles"] = get_accessible_modules(user)
    if user.get("agenceId"):
        agence = await db.agences.find_one(
            {"id": user["agenceId"]},
            {"_id": 0, "id": 1, "nom": 1, "statut": 1, "modulesActifs": 1, "modulesDemandes": 1, "logo": 1}
        )
        data["agence"] = agence
    return {"success": True, "data": data}
