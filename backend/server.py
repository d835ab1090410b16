"""
SamTech Voyages - API Backend
Back-office multi-agences (agences de voyage) + vitrines publiques

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from config import db, CORS_ORIGINS, SCHEDULER_ENABLED

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("samtech")

# Créer l'app
app = FastAPI(
    title="SamTech Voyages",
    description="Back-office SaaS pour agences de voyage",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERREURS ====================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", []) if p != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Informations manquantes", "errors": errors}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"[ERROR] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Une erreur est survenue"}
    )


# ==================== IMPORT DES ROUTES ====================

from routes import (
    auth, agences, module_requests, agents, clients, fournisseurs,
    factures, bons_commande, creances, caisse, billets, packages,
    reservations, tickets, todos, calendrier, documents, dashboard,
    profile, parametres, vitrine, notifications, logs, audit,
    permissions, rapports,
)

# Routes avec préfixe /api
app.include_router(auth.router, prefix="/api")
app.include_router(agences.router, prefix="/api")
app.include_router(module_requests.router, prefix="/api")
app.include_router(agents.router, prefix="/api")
app.include_router(clients.router, prefix="/api")
app.include_router(fournisseurs.router, prefix="/api")
app.include_router(factures.router, prefix="/api")
app.include_router(bons_commande.router, prefix="/api")
app.include_router(creances.router, prefix="/api")
app.include_router(caisse.router, prefix="/api")
app.include_router(billets.router, prefix="/api")
app.include_router(packages.router, prefix="/api")
app.include_router(reservations.router, prefix="/api")
app.include_router(tickets.router, prefix="/api")
app.include_router(todos.router, prefix="/api")
app.include_router(calendrier.router, prefix="/api")
app.include_router(documents.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(profile.router, prefix="/api")
app.include_router(parametres.router, prefix="/api")
app.include_router(vitrine.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(logs.router, prefix="/api")
app.include_router(audit.router, prefix="/api")
app.include_router(permissions.router, prefix="/api")
app.include_router(rapports.router, prefix="/api")


# ==================== ROUTE RACINE ====================

@app.get("/")
async def root():
    return {
        "name": "SamTech Voyages API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/api/health")
async def health():
    return {"success": True, "message": "OK"}


# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup():
    logger.info("SamTech Voyages API démarrée")

    await db.users.create_index("email", unique=True)
    await db.sessions.create_index("token")
    await db.sessions.create_index("expires_at")
    await db.agences.create_index("id", unique=True)
    await db.agences.create_index("statut")
    for name in (
        "clients", "fournisseurs", "factures", "bons_commande", "operations",
        "billets", "packages", "reservations", "todos", "events", "documents",
        "tickets", "notifications", "module_requests",
    ):
        await db[name].create_index("agenceId")
    await db.factures.create_index([("agenceId", 1), ("numero", 1)])
    await db.bons_commande.create_index([("agenceId", 1), ("numero", 1)])
    await db.event_log.create_index("created_at")
    await db.activity_logs.create_index("created_at")
    logger.info("Index MongoDB créés")

    if SCHEDULER_ENABLED:
        from scheduler_service import task_scheduler
        task_scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    if SCHEDULER_ENABLED:
        from scheduler_service import task_scheduler
        task_scheduler.stop()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
