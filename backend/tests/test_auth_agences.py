"""
SamTech Voyages - Auth, onboarding & module requests API tests
Tests: register/login, pending accounts, approve/reject/suspend, module activation.
Run: cd backend && pytest tests/test_auth_agences.py -v
"""

from tests.conftest import _db_op, auth_h, login, register_agence, make_agent, make_client, PASSWORD
from config import db


class TestRegisterLogin:
    def test_register_creates_pending_agence(self, client):
        user = register_agence(
            client, nom="Azur Évasion", email="Azur@Test.local",
            adresse="12 rue X", codePostal="06000", ville="Nice", pays="France",
        )
        assert user["role"] == "agence"
        assert user["statut"] == "en_attente"
        assert user["email"] == "azur@test.local"
        assert "password" not in user

        agence = _db_op(db.agences.find_one({"id": user["agenceId"]}, {"_id": 0}))
        assert agence["statut"] == "en_attente"
        assert agence["adresse"] == "12 rue X, 06000 Nice, France"
        assert agence["vitrineConfig"]["domainName"] == "azur-evasion.samtech.fr"
        assert agence["parametres"]["apiKey"].startswith("sk_live_")

    def test_register_duplicate_email(self, client):
        register_agence(client, email="dup@test.local")
        r = client.post("/api/auth/register", json={
            "nomAgence": "Autre", "email": "dup@test.local", "password": PASSWORD,
        })
        assert r.status_code == 400
        assert r.json() == {"success": False, "message": "Cet email est déjà utilisé"}

    def test_register_missing_fields(self, client):
        r = client.post("/api/auth/register", json={"email": "x@test.local"})
        assert r.status_code == 400
        assert r.json()["message"] == "Informations manquantes"

    def test_login_requires_credentials(self, client):
        r = client.post("/api/auth/login", json={"email": "", "password": ""})
        assert r.status_code == 400
        assert r.json()["message"] == "Email et mot de passe requis"

    def test_login_wrong_password(self, client):
        register_agence(client, email="wrong@test.local")
        r = client.post("/api/auth/login", json={"email": "wrong@test.local", "password": "nope-nope"})
        assert r.status_code == 401
        assert r.json()["message"] == "Identifiants incorrects"

        failures = _db_op(db.activity_logs.count_documents({"action": "login_failed", "success": False}))
        assert failures == 1

    def test_pending_account_can_login_but_not_use_modules(self, client):
        register_agence(client, email="pending@test.local")
        token = login(client, "pending@test.local")

        me = client.get("/api/auth/me", headers=auth_h(token))
        assert me.status_code == 200
        assert me.json()["data"]["agence"]["statut"] == "en_attente"

        r = client.get("/api/clients", headers=auth_h(token))
        assert r.status_code == 403
        assert r.json()["message"] == "Compte en attente d'approbation"

    def test_logout_invalidates_session(self, client, agence):
        h = auth_h(agence["token"])
        assert client.post("/api/auth/logout", headers=h).status_code == 200
        assert client.get("/api/auth/me", headers=h).status_code == 401

    def test_no_token(self, client):
        assert client.get("/api/auth/me").status_code == 401


class TestAgenceValidation:
    def test_list_requires_superadmin(self, client, agence):
        r = client.get("/api/agences", headers=auth_h(agence["token"]))
        assert r.status_code == 403

    def test_approve_activates_owner_and_chosen_modules(self, client, superadmin_token, agence):
        r = client.get(f"/api/agences/{agence['agenceId']}", headers=auth_h(superadmin_token))
        data = r.json()["data"]
        assert data["statut"] == "approuve"
        assert data["modulesActifs"] == ["clients", "factures"]
        assert "parametres" not in data

        owner = _db_op(db.users.find_one({"email": agence["email"]}))
        assert owner["statut"] == "actif"

    def test_list_filter_by_status(self, client, superadmin_token, agence):
        register_agence(client, email="waiting@test.local")
        h = auth_h(superadmin_token)
        pending = client.get("/api/agences?statut=en_attente", headers=h).json()
        assert pending["count"] == 1
        assert client.get("/api/agences?statut=inconnu", headers=h).status_code == 400

    def test_suspend_blocks_owner(self, client, superadmin_token, agence):
        r = client.put(f"/api/agences/{agence['agenceId']}/suspend", headers=auth_h(superadmin_token))
        assert r.status_code == 200
        assert r.json()["data"]["statut"] == "suspendu"

        # sessions purgées + connexion refusée
        assert client.get("/api/auth/me", headers=auth_h(agence["token"])).status_code == 401
        r = client.post("/api/auth/login", json={"email": agence["email"], "password": PASSWORD})
        assert r.status_code == 403

    def test_suspend_blocks_agents_until_reapproval(self, client, superadmin_token, agence):
        make_client(client, auth_h(agence["token"]))
        agent = make_agent(client, agence, [{"module": "clients", "actions": ["lire"]}])
        assert client.get("/api/clients", headers=auth_h(agent["token"])).json()["count"] == 1

        client.put(f"/api/agences/{agence['agenceId']}/suspend", headers=auth_h(superadmin_token))
        assert client.get("/api/clients", headers=auth_h(agent["token"])).status_code == 401
        r = client.post("/api/auth/login", json={"email": "agent@test.local", "password": PASSWORD})
        assert r.status_code == 403
        assert r.json()["detail"] == "Agence suspendue"

        client.put(f"/api/agences/{agence['agenceId']}/approve", headers=auth_h(superadmin_token))
        token = login(client, "agent@test.local")
        assert client.get("/api/clients", headers=auth_h(token)).json()["count"] == 1

    def test_agent_session_follows_agence_status(self, client, agence):
        agent = make_agent(client, agence, [{"module": "clients", "actions": ["lire"]}])
        _db_op(db.agences.update_one({"id": agence["agenceId"]}, {"$set": {"statut": "rejete"}}))
        r = client.get("/api/clients", headers=auth_h(agent["token"]))
        assert r.status_code == 403
        assert r.json()["detail"] == "Agence rejetée"

    def test_reject(self, client, superadmin_token):
        user = register_agence(client, email="rejected@test.local")
        r = client.put(f"/api/agences/{user['agenceId']}/reject", headers=auth_h(superadmin_token))
        assert r.json()["data"]["statut"] == "rejete"
        owner = _db_op(db.users.find_one({"email": "rejected@test.local"}))
        assert owner["statut"] == "rejete"

    def test_unknown_agence(self, client, superadmin_token):
        r = client.put("/api/agences/nope/approve", headers=auth_h(superadmin_token))
        assert r.status_code == 404

    def test_status_change_is_audited(self, client, superadmin_token, agence):
        logs = _db_op(db.activity_logs.find({"action": "approve", "module": "agences"}).to_list(10))
        assert len(logs) == 1
        assert logs[0]["entity_id"] == agence["agenceId"]

    def test_update_modules(self, client, superadmin_token, agence):
        h = auth_h(superadmin_token)
        url = f"/api/agences/{agence['agenceId']}/modules"
        r = client.put(url, headers=h, json={"modules": ["caisse", "inconnu", "caisse", "billets"]})
        assert r.status_code == 200
        assert r.json()["data"]["modulesActifs"] == ["caisse", "billets"]

        r = client.put(url, headers=h, json={"modules": "caisse"})
        assert r.status_code == 400


class TestModuleRequests:
    def test_request_merges_into_pending_modules(self, client, agence_h, agence):
        r = client.post("/api/module-requests", headers=agence_h,
                        json={"modules": ["caisse", "billets"], "message": "Merci"})
        assert r.status_code == 201
        client.post("/api/module-requests", headers=agence_h,
                    json={"modules": ["billets", "packages"], "message": "Encore"})

        a = _db_op(db.agences.find_one({"id": agence["agenceId"]}))
        assert a["modulesDemandes"] == ["caisse", "billets", "packages"]

        mine = client.get("/api/module-requests/agence", headers=agence_h).json()
        assert mine["count"] == 2

    def test_request_validation(self, client, agence_h):
        r = client.post("/api/module-requests", headers=agence_h, json={"modules": [], "message": "x"})
        assert r.status_code == 400
        r = client.post("/api/module-requests", headers=agence_h, json={"modules": ["caisse"]})
        assert r.status_code == 400

    def test_approve_request(self, client, superadmin_token, agence_h, agence):
        req = client.post("/api/module-requests", headers=agence_h,
                          json={"modules": ["caisse", "clients"], "message": "Merci"}).json()["data"]
        h = auth_h(superadmin_token)

        pending = client.get("/api/module-requests/admin/pending", headers=h).json()
        assert [a["id"] for a in pending["data"]] == [agence["agenceId"]]

        listing = client.get("/api/module-requests", headers=h).json()
        assert listing["data"][0]["agence"]["nom"] == "Soleil Voyages"

        r = client.put(f"/api/module-requests/{req['id']}/process", headers=h,
                       json={"statut": "approuve", "commentaireAdmin": "OK"})
        assert r.status_code == 200
        assert r.json()["data"]["dateTraitement"]

        a = _db_op(db.agences.find_one({"id": agence["agenceId"]}))
        assert a["modulesActifs"] == ["clients", "factures", "caisse"]
        assert a["modulesDemandes"] == []

        again = client.put(f"/api/module-requests/{req['id']}/process", headers=h, json={"statut": "rejete"})
        assert again.status_code == 400

    def test_reject_request_only_clears_pending(self, client, superadmin_token, agence_h, agence):
        req = client.post("/api/module-requests", headers=agence_h,
                          json={"modules": ["billets"], "message": "Merci"}).json()["data"]
        client.put(f"/api/module-requests/{req['id']}/process", headers=auth_h(superadmin_token),
                   json={"statut": "rejete"})
        a = _db_op(db.agences.find_one({"id": agence["agenceId"]}))
        assert "billets" not in a["modulesActifs"]
        assert a["modulesDemandes"] == []
