"""
SamTech Voyages - fixtures de test
L'app tourne en process (TestClient), Mongo est remplacé par mongomock-motor.
Run: cd backend && pytest tests -v
"""

import asyncio
import uuid

import pytest
from mongomock_motor import AsyncMongoMockClient

import config

# Remplacer la base AVANT tout import de routes/services (from config import db)
config.client = AsyncMongoMockClient()
config.db = config.client[config.DB_NAME]

from fastapi.testclient import TestClient  # noqa: E402
from server import app  # noqa: E402

PASSWORD = "Samtech2026!"
SUPERADMIN_EMAIL = "superadmin@test.local"


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def auth_h(token, agence_id=None):
    h = {"Authorization": f"Bearer {token}"}
    if agence_id:
        h["X-Agence-Id"] = agence_id
    return h


def login(c, email, password=PASSWORD):
    r = c.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]


def register_agence(c, nom="Soleil Voyages", email=None, **extra):
    email = email or f"agence_{uuid.uuid4().hex[:8]}@test.local"
    r = c.post("/api/auth/register", json={"nomAgence": nom, "email": email, "password": PASSWORD, **extra})
    assert r.status_code == 201, r.text
    return r.json()["user"]


@pytest.fixture(autouse=True)
def clean_db():
    async def _drop():
        for name in await config.db.list_collection_names():
            await config.db.drop_collection(name)
    _db_op(_drop())
    yield


@pytest.fixture
def db():
    return config.db


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def superadmin_token(client):
    _db_op(config.db.users.insert_one({
        "id": str(uuid.uuid4()),
        "email": SUPERADMIN_EMAIL,
        "password": config.hash_password(PASSWORD),
        "nom": "Admin",
        "prenom": "Super",
        "role": "superadmin",
        "statut": "actif",
        "agenceId": None,
        "permissions": [],
    }))
    return login(client, SUPERADMIN_EMAIL)


def _approved_agence(client, superadmin_token, nom, email):
    user = register_agence(client, nom=nom, email=email, modulesChoisis=["clients", "factures"])
    r = client.put(f"/api/agences/{user['agenceId']}/approve", headers=auth_h(superadmin_token))
    assert r.status_code == 200, r.text
    return {"agenceId": user["agenceId"], "email": email, "token": login(client, email)}


@pytest.fixture
def agence(client, superadmin_token):
    """Agence approuvée + token du compte propriétaire"""
    return _approved_agence(client, superadmin_token, "Soleil Voyages", "soleil@test.local")


@pytest.fixture
def other_agence(client, superadmin_token):
    return _approved_agence(client, superadmin_token, "Lune Voyages", "lune@test.local")


@pytest.fixture
def agence_h(agence):
    return auth_h(agence["token"])


def make_agent(client, agence, permissions, email="agent@test.local"):
    r = client.post("/api/agents", headers=auth_h(agence["token"]), json={
        "nom": "Dupont", "prenom": "Jean", "email": email,
        "password": PASSWORD, "permissions": permissions,
    })
    assert r.status_code == 201, r.text
    return {"agent": r.json()["data"], "token": login(client, email)}


def make_client(c, headers, **overrides):
    body = {
        "nom": "Martin", "prenom": "Claire", "email": "claire.martin@example.com",
        "telephone": "0601020304", "adresse": "3 rue des Lilas, 69001 Lyon",
        **overrides,
    }
    r = c.post("/api/clients", headers=headers, json=body)
    assert r.status_code == 201, r.text
    return r.json()["data"]


@pytest.fixture(autouse=True)
def no_sendgrid(monkeypatch):
    """Pas d'envoi réel: sans clé API, _send_email renvoie False"""
    from email_service import email_service
    monkeypatch.setattr(email_service, "api_key", "")
