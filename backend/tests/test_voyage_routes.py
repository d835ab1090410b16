"""
SamTech Voyages - Billets, packages, réservations & vitrine API tests
Run: cd backend && pytest tests/test_voyage_routes.py -v
"""

from datetime import datetime, timezone

from tests.conftest import auth_h, make_client, make_agent

BILLET = {
    "numeroVol": "af 1234", "compagnie": "Air France",
    "dateDepart": "2026-07-01T08:00:00Z", "dateArrivee": "2026-07-01T10:15:00Z",
    "origine": "CDG", "destination": "FCO", "passager": "Claire Martin", "prix": 189.9,
}

PACKAGE = {
    "nom": "Week-end à Rome", "description": "3 jours / 2 nuits", "prix": 499,
    "duree": "3 jours", "inclusions": ["Vol", " ", "Hôtel 4*"], "destination": "Rome",
}


# ═══════════════════════════════════════════════════════════════
# 1. BILLETS
# ═══════════════════════════════════════════════════════════════

class TestBillets:
    def test_create_normalizes_flight_number(self, client, agence_h):
        r = client.post("/api/billets", headers=agence_h, json=BILLET)
        assert r.status_code == 201
        billet = r.json()["data"]
        assert billet["numeroVol"] == "AF 1234"
        assert billet["statut"] == "en_attente"

    def test_arrival_before_departure(self, client, agence_h):
        r = client.post("/api/billets", headers=agence_h,
                        json={**BILLET, "dateArrivee": "2026-06-30T10:00:00Z"})
        assert r.status_code == 400

    def test_unknown_client(self, client, agence_h):
        r = client.post("/api/billets", headers=agence_h, json={**BILLET, "clientId": "inconnu"})
        assert r.status_code == 404

    def test_update_filter_delete(self, client, agence_h):
        billet = client.post("/api/billets", headers=agence_h, json=BILLET).json()["data"]
        r = client.put(f"/api/billets/{billet['id']}", headers=agence_h, json={"statut": "confirme"})
        assert r.json()["data"]["statut"] == "confirme"

        assert client.get("/api/billets?statut=confirme", headers=agence_h).json()["count"] == 1
        assert client.get("/api/billets?statut=en_attente", headers=agence_h).json()["count"] == 0

        assert client.delete(f"/api/billets/{billet['id']}", headers=agence_h).status_code == 200
        assert client.get(f"/api/billets/{billet['id']}", headers=agence_h).status_code == 404

    def test_invalid_status(self, client, agence_h):
        r = client.post("/api/billets", headers=agence_h, json={**BILLET, "statut": "perdu"})
        assert r.status_code == 400


# ═══════════════════════════════════════════════════════════════
# 2. PACKAGES
# ═══════════════════════════════════════════════════════════════

class TestPackages:
    def test_create_strips_empty_inclusions(self, client, agence_h):
        r = client.post("/api/packages", headers=agence_h, json=PACKAGE)
        assert r.status_code == 201
        assert r.json()["data"]["inclusions"] == ["Vol", "Hôtel 4*"]
        assert r.json()["data"]["visible"] is True

    def test_toggle_visibility_and_public_listing(self, client, agence, agence_h):
        package = client.post("/api/packages", headers=agence_h, json=PACKAGE).json()["data"]

        public = client.get(f"/api/packages/public?agenceId={agence['agenceId']}").json()
        assert public["count"] == 1
        assert "created_by" not in public["data"][0]

        r = client.put(f"/api/packages/{package['id']}/toggle-visibility", headers=agence_h)
        assert r.json()["data"]["visible"] is False
        assert client.get("/api/packages/public").json()["count"] == 0
        assert client.get("/api/packages?visible=false", headers=agence_h).json()["count"] == 1

    def test_public_listing_ignores_pending_agencies(self, client, agence_h, db):
        from tests.conftest import _db_op, register_agence
        client.post("/api/packages", headers=agence_h, json=PACKAGE)
        pending = register_agence(client, nom="En Attente", email="attente@test.local")
        _db_op(db.packages.insert_one({"id": "p-pending", "agenceId": pending["agenceId"], "nom": "X", "visible": True}))

        assert client.get("/api/packages/public").json()["count"] == 1

    def test_isolation(self, client, agence_h, other_agence):
        package = client.post("/api/packages", headers=agence_h, json=PACKAGE).json()["data"]
        other_h = auth_h(other_agence["token"])
        assert client.get(f"/api/packages/{package['id']}", headers=other_h).status_code == 404
        assert client.delete(f"/api/packages/{package['id']}", headers=other_h).status_code == 404


# ═══════════════════════════════════════════════════════════════
# 3. RÉSERVATIONS
# ═══════════════════════════════════════════════════════════════

class TestReservations:
    def _body(self, client_id, **overrides):
        return {
            "clientId": client_id, "type": "package", "destination": "Rome",
            "dateDepart": "2026-07-01", "dateRetour": "2026-07-04",
            "nombrePersonnes": 2, "montant": 998, **overrides,
        }

    def test_create_numbering_and_client_name(self, client, agence_h):
        c = make_client(client, agence_h)
        year = datetime.now(timezone.utc).year

        first = client.post("/api/reservations", headers=agence_h, json=self._body(c["id"]))
        assert first.status_code == 201
        assert first.json()["data"]["numero"] == f"RES-{year}-001"
        assert first.json()["data"]["clientNom"] == "Claire Martin"

        second = client.post("/api/reservations", headers=agence_h, json=self._body(c["id"]))
        assert second.json()["data"]["numero"] == f"RES-{year}-002"

    def test_return_before_departure(self, client, agence_h):
        c = make_client(client, agence_h)
        r = client.post("/api/reservations", headers=agence_h,
                        json=self._body(c["id"], dateRetour="2026-06-20"))
        assert r.status_code == 400

    def test_client_of_other_agency(self, client, agence_h, other_agence):
        foreign = make_client(client, auth_h(other_agence["token"]))
        r = client.post("/api/reservations", headers=agence_h, json=self._body(foreign["id"]))
        assert r.status_code == 404

    def test_status_update(self, client, agence_h):
        c = make_client(client, agence_h)
        res = client.post("/api/reservations", headers=agence_h, json=self._body(c["id"])).json()["data"]
        url = f"/api/reservations/{res['id']}/status"

        assert client.put(url, headers=agence_h, json={"statut": "confirmee"}).json()["data"]["statut"] == "confirmee"
        assert client.put(url, headers=agence_h, json={"statut": "payee"}).status_code == 400
        assert client.get("/api/reservations?statut=confirmee", headers=agence_h).json()["count"] == 1

    def test_update_client_refreshes_name(self, client, agence_h):
        c = make_client(client, agence_h)
        other = make_client(client, agence_h, nom="Durand", prenom="Paul", email="paul@example.com")
        res = client.post("/api/reservations", headers=agence_h, json=self._body(c["id"])).json()["data"]

        r = client.put(f"/api/reservations/{res['id']}", headers=agence_h, json={"clientId": other["id"]})
        assert r.json()["data"]["clientNom"] == "Paul Durand"

    def test_agent_needs_permission(self, client, agence, agence_h):
        agent = make_agent(client, agence, [{"module": "reservations", "actions": ["lire"]}])
        h = auth_h(agent["token"])
        c = make_client(client, agence_h)

        assert client.get("/api/reservations", headers=h).status_code == 200
        r = client.post("/api/reservations", headers=h, json=self._body(c["id"]))
        assert r.status_code == 403


# ═══════════════════════════════════════════════════════════════
# 4. VITRINE
# ═══════════════════════════════════════════════════════════════

class TestVitrine:
    def test_default_config(self, client, agence_h):
        vitrine = client.get("/api/vitrine", headers=agence_h).json()["data"]
        assert vitrine["isActive"] is True
        assert vitrine["title"] == "Soleil Voyages - Votre Agence de Voyage"
        assert vitrine["contactInfo"]["email"] == "soleil@test.local"
        assert vitrine["primaryColor"] == "#3B82F6"

    def test_partial_update_keeps_nested_defaults(self, client, agence_h):
        r = client.put("/api/vitrine", headers=agence_h, json={
            "title": "Soleil", "contactInfo": {"phone": "0400000000"},
        })
        vitrine = r.json()["data"]
        assert vitrine["title"] == "Soleil"
        assert vitrine["contactInfo"]["phone"] == "0400000000"
        assert vitrine["contactInfo"]["email"] == "soleil@test.local"

        assert client.get("/api/vitrine", headers=agence_h).json()["data"]["title"] == "Soleil"

    def test_public_page(self, client, agence, agence_h):
        client.post("/api/packages", headers=agence_h, json=PACKAGE)
        hidden = client.post("/api/packages", headers=agence_h, json={**PACKAGE, "nom": "Caché", "visible": False})
        assert hidden.status_code == 201

        r = client.get(f"/api/vitrine/public/{agence['agenceId']}")
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["agence"]["nom"] == "Soleil Voyages"
        assert "parametres" not in data["agence"]
        assert [p["nom"] for p in data["packages"]] == ["Week-end à Rome"]

    def test_toggle_hides_public_page(self, client, agence, agence_h):
        r = client.put("/api/vitrine/toggle", headers=agence_h)
        assert r.json()["data"]["isActive"] is False

        r = client.get(f"/api/vitrine/public/{agence['agenceId']}")
        assert r.status_code == 404
        assert r.json()["message"] == "Vitrine non disponible"

        client.put("/api/vitrine/toggle", headers=agence_h)
        assert client.get(f"/api/vitrine/public/{agence['agenceId']}").status_code == 200

    def test_pending_agency_has_no_public_page(self, client):
        from tests.conftest import register_agence
        pending = register_agence(client, nom="En Attente", email="attente@test.local")
        assert client.get(f"/api/vitrine/public/{pending['agenceId']}").status_code == 404

    def test_agent_forbidden(self, client, agence):
        agent = make_agent(client, agence, [])
        assert client.get("/api/vitrine", headers=auth_h(agent["token"])).status_code == 403
