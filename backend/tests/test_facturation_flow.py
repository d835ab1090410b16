"""
SamTech Voyages - Clients, factures, bons de commande, créances & caisse API tests
Tests: tenant isolation, numbering, totals, conversion, reminders, cash balance, PDF.
Run: cd backend && pytest tests/test_facturation_flow.py -v
"""

from datetime import datetime, timezone, timedelta

from tests.conftest import _db_op, auth_h, make_client, make_agent
from config import db

ARTICLES = [
    {"designation": "Vol Paris - Rome", "quantite": 2, "prixUnitaire": 150},
    {"designation": "Hôtel 3 nuits", "quantite": 1, "prixUnitaire": 300.5},
]


def make_facture(c, headers, client_id, **overrides):
    r = c.post("/api/factures", headers=headers, json={"clientId": client_id, "articles": ARTICLES, **overrides})
    assert r.status_code == 201, r.text
    return r.json()["data"]


def make_bon(c, headers, client_id, statut="brouillon"):
    r = c.post("/api/bons-commande", headers=headers,
               json={"clientId": client_id, "articles": ARTICLES, "statut": statut})
    assert r.status_code == 201, r.text
    return r.json()["data"]


# ═══════════════════════════════════════════════════════════════
# 1. CLIENTS & FOURNISSEURS
# ═══════════════════════════════════════════════════════════════

class TestClients:
    def test_crud_and_search(self, client, agence_h):
        created = make_client(client, agence_h)
        assert created["solde"] == 0
        make_client(client, agence_h, nom="Durand", prenom="Paul", email="paul@example.com", entreprise="Durand SA")

        r = client.get("/api/clients?search=durand", headers=agence_h).json()
        assert r["count"] == 1
        assert r["data"][0]["entreprise"] == "Durand SA"

        r = client.put(f"/api/clients/{created['id']}", headers=agence_h, json={"telephone": "0700000000"})
        assert r.json()["data"]["telephone"] == "0700000000"

        r = client.delete(f"/api/clients/{created['id']}", headers=agence_h)
        assert r.status_code == 200
        assert client.get(f"/api/clients/{created['id']}", headers=agence_h).status_code == 404

    def test_required_fields(self, client, agence_h):
        r = client.post("/api/clients", headers=agence_h, json={"nom": "X", "email": "bad"})
        assert r.status_code == 400
        assert r.json()["success"] is False

    def test_isolation_between_agencies(self, client, agence_h, other_agence):
        created = make_client(client, agence_h)
        other_h = auth_h(other_agence["token"])
        assert client.get(f"/api/clients/{created['id']}", headers=other_h).status_code == 404
        assert client.get("/api/clients", headers=other_h).json()["count"] == 0

    def test_superadmin_scope(self, client, superadmin_token, agence, agence_h, other_agence):
        make_client(client, agence_h)
        make_client(client, auth_h(other_agence["token"]))
        h = auth_h(superadmin_token)

        assert client.get("/api/clients", headers=h).json()["count"] == 2
        scoped = client.get("/api/clients", headers=auth_h(superadmin_token, agence["agenceId"])).json()
        assert scoped["count"] == 1

        body = {"nom": "Sans", "email": "sans@example.com", "telephone": "01", "adresse": "Ici"}
        assert client.post("/api/clients", headers=h, json=body).status_code == 400
        r = client.post("/api/clients", headers=h, json={**body, "agenceId": agence["agenceId"]})
        assert r.status_code == 201
        assert r.json()["data"]["agenceId"] == agence["agenceId"]

    def test_delete_refused_with_unpaid_invoice(self, client, agence_h):
        c = make_client(client, agence_h)
        make_facture(client, agence_h, c["id"], statut="envoyee")
        r = client.delete(f"/api/clients/{c['id']}", headers=agence_h)
        assert r.status_code == 400

    def test_fournisseur_requires_entreprise(self, client, agence_h):
        body = {"nom": "Lopez", "email": "lopez@example.com", "telephone": "01", "adresse": "Madrid"}
        assert client.post("/api/fournisseurs", headers=agence_h, json=body).status_code == 400
        r = client.post("/api/fournisseurs", headers=agence_h, json={**body, "entreprise": "Iberia Tours"})
        assert r.status_code == 201
        assert client.get("/api/fournisseurs", headers=agence_h).json()["count"] == 1


# ═══════════════════════════════════════════════════════════════
# 2. FACTURES
# ═══════════════════════════════════════════════════════════════

class TestFactures:
    def test_dates_stored_in_utc(self, client, agence_h):
        c = make_client(client, agence_h)
        facture = make_facture(client, agence_h, c["id"],
                               dateEmission="2025-03-01T10:00:00+02:00", dateEcheance="2025-03-31T01:00:00+02:00")
        assert facture["dateEmission"] == "2025-03-01T08:00:00+00:00"
        assert facture["dateEcheance"] == "2025-03-30T23:00:00+00:00"

        r = client.put(f"/api/factures/{facture['id']}", headers=agence_h,
                       json={"dateEcheance": "2025-04-15T00:30:00+02:00"})
        assert r.json()["data"]["dateEcheance"] == "2025-04-14T22:30:00+00:00"

    def test_offset_due_date_not_overdue_early(self, client, agence_h):
        from services.billing import mark_overdue_factures
        c = make_client(client, agence_h)
        now = datetime.now(timezone.utc)
        echeance = (now + timedelta(hours=2)).astimezone(timezone(timedelta(hours=-5)))
        make_facture(client, agence_h, c["id"], statut="envoyee",
                     dateEmission=(now - timedelta(days=1)).isoformat(), dateEcheance=echeance.isoformat())
        assert _db_op(mark_overdue_factures()) == 0

    def test_create_computes_totals_and_number(self, client, agence_h):
        c = make_client(client, agence_h)
        facture = make_facture(client, agence_h, c["id"])
        year = datetime.now(timezone.utc).year

        assert facture["numero"] == f"FAC-{year}-001"
        assert facture["montantHT"] == 600.5
        assert facture["tauxTVA"] == 20
        assert facture["montantTTC"] == 720.6
        assert facture["statut"] == "brouillon"
        assert facture["client"]["nom"] == "Martin"

        emission = datetime.fromisoformat(facture["dateEmission"])
        echeance = datetime.fromisoformat(facture["dateEcheance"])
        assert (echeance - emission).days == 30

        second = make_facture(client, agence_h, c["id"])
        assert second["numero"] == f"FAC-{year}-002"

    def test_numbering_per_agency(self, client, agence_h, other_agence):
        other_h = auth_h(other_agence["token"])
        make_facture(client, agence_h, make_client(client, agence_h)["id"])
        facture = make_facture(client, other_h, make_client(client, other_h)["id"])
        assert facture["numero"].endswith("-001")

    def test_uses_agency_parametres(self, client, agence_h):
        client.put("/api/parametres", headers=agence_h,
                   json={"tvaDefaut": 10, "prefixeFacture": "SV", "conditionsPaiement": "45 jours"})
        facture = make_facture(client, agence_h, make_client(client, agence_h)["id"])
        assert facture["numero"].startswith("SV-")
        assert facture["montantTTC"] == 660.55
        emission = datetime.fromisoformat(facture["dateEmission"])
        assert (datetime.fromisoformat(facture["dateEcheance"]) - emission).days == 45

    def test_unknown_client(self, client, agence_h):
        r = client.post("/api/factures", headers=agence_h, json={"clientId": "nope", "articles": ARTICLES})
        assert r.status_code == 404

    def test_echeance_before_emission(self, client, agence_h):
        c = make_client(client, agence_h)
        r = client.post("/api/factures", headers=agence_h, json={
            "clientId": c["id"], "articles": ARTICLES,
            "dateEmission": "2025-05-10", "dateEcheance": "2025-05-01",
        })
        assert r.status_code == 400

    def test_update_recomputes_totals(self, client, agence_h):
        facture = make_facture(client, agence_h, make_client(client, agence_h)["id"])
        r = client.put(f"/api/factures/{facture['id']}", headers=agence_h,
                       json={"articles": [{"designation": "Option", "quantite": 1, "prixUnitaire": 100}]})
        data = r.json()["data"]
        assert data["montantHT"] == 100
        assert data["montantTTC"] == 120

    def test_send_then_pay_lifecycle(self, client, agence_h):
        facture = make_facture(client, agence_h, make_client(client, agence_h)["id"])
        url = f"/api/factures/{facture['id']}"

        assert client.put(f"{url}/send", headers=agence_h).json()["data"]["statut"] == "envoyee"
        assert client.put(f"{url}/send", headers=agence_h).status_code == 400

        paid = client.put(f"{url}/pay", headers=agence_h).json()["data"]
        assert paid["statut"] == "payee"
        assert paid["datePaiement"]

        assert client.put(f"{url}/pay", headers=agence_h).status_code == 400
        assert client.put(url, headers=agence_h, json={"notes": "x"}).status_code == 400
        assert client.delete(url, headers=agence_h).status_code == 400

    def test_filter_by_status(self, client, agence_h):
        c = make_client(client, agence_h)
        make_facture(client, agence_h, c["id"])
        make_facture(client, agence_h, c["id"], statut="envoyee")
        r = client.get("/api/factures?statut=envoyee", headers=agence_h).json()
        assert r["count"] == 1
        assert client.get("/api/factures?statut=bidon", headers=agence_h).status_code == 400

    def test_pdf(self, client, agence_h):
        facture = make_facture(client, agence_h, make_client(client, agence_h)["id"])
        r = client.get(f"/api/factures/{facture['id']}/pdf", headers=agence_h)
        assert r.status_code == 200
        assert r.headers["content-type"] == "application/pdf"
        assert r.content.startswith(b"%PDF")


# ═══════════════════════════════════════════════════════════════
# 3. BONS DE COMMANDE -> FACTURE
# ═══════════════════════════════════════════════════════════════

class TestBonsCommande:
    def test_create_numbering(self, client, agence_h):
        bon = make_bon(client, agence_h, make_client(client, agence_h)["id"])
        assert bon["numero"] == f"BC-{datetime.now(timezone.utc).year}-001"
        assert bon["montantTTC"] == 720.6

    def test_convert_requires_accepted(self, client, agence_h):
        bon = make_bon(client, agence_h, make_client(client, agence_h)["id"])
        r = client.post(f"/api/bons-commande/{bon['id']}/convert", headers=agence_h)
        assert r.status_code == 400
        assert r.json()["message"] == "Le bon de commande doit être accepté pour être converti en facture"

    def test_convert_missing(self, client, agence_h):
        assert client.post("/api/bons-commande/nope/convert", headers=agence_h).status_code == 404

    def test_convert_accepted_bon(self, client, agence_h):
        c = make_client(client, agence_h)
        bon = make_bon(client, agence_h, c["id"])
        client.put(f"/api/bons-commande/{bon['id']}/status", headers=agence_h, json={"statut": "accepte"})

        r = client.post(f"/api/bons-commande/{bon['id']}/convert", headers=agence_h)
        assert r.status_code == 201
        facture = r.json()["data"]
        assert facture["statut"] == "envoyee"
        assert facture["bonCommandeId"] == bon["id"]
        assert facture["clientId"] == c["id"]
        assert facture["montantTTC"] == bon["montantTTC"]
        assert facture["numero"].startswith("FAC-")

        converted = client.get(f"/api/bons-commande/{bon['id']}", headers=agence_h).json()["data"]
        assert converted["statut"] == "facture"
        assert converted["factureId"] == facture["id"]

        # bon figé
        assert client.put(f"/api/bons-commande/{bon['id']}", headers=agence_h, json={"notes": "x"}).status_code == 400
        assert client.delete(f"/api/bons-commande/{bon['id']}", headers=agence_h).status_code == 400
        assert client.post(f"/api/bons-commande/{bon['id']}/convert", headers=agence_h).status_code == 400

    def test_deleting_facture_releases_bon(self, client, agence_h):
        bon = make_bon(client, agence_h, make_client(client, agence_h)["id"], statut="accepte")
        facture = client.post(f"/api/bons-commande/{bon['id']}/convert", headers=agence_h).json()["data"]

        assert client.delete(f"/api/factures/{facture['id']}", headers=agence_h).status_code == 200
        released = client.get(f"/api/bons-commande/{bon['id']}", headers=agence_h).json()["data"]
        assert released["statut"] == "accepte"
        assert released["factureId"] is None

    def test_status_validation(self, client, agence_h):
        bon = make_bon(client, agence_h, make_client(client, agence_h)["id"])
        url = f"/api/bons-commande/{bon['id']}/status"
        assert client.put(url, headers=agence_h, json={"statut": "facture"}).status_code == 400
        assert client.put(url, headers=agence_h, json={"statut": "perdu"}).status_code == 400
        assert client.put(url, headers=agence_h, json={"statut": "refuse"}).status_code == 200


# ═══════════════════════════════════════════════════════════════
# 4. CRÉANCES
# ═══════════════════════════════════════════════════════════════

class TestCreances:
    def _overdue(self, client, agence_h, days):
        c = make_client(client, agence_h, telephone="0611111111")
        emission = (datetime.now(timezone.utc) - timedelta(days=days + 30)).isoformat()
        echeance = (datetime.now(timezone.utc) - timedelta(days=days, hours=1)).isoformat()
        return make_facture(client, agence_h, c["id"], statut="envoyee",
                            dateEmission=emission, dateEcheance=echeance)

    def test_list_and_stats(self, client, agence_h):
        older = self._overdue(client, agence_h, 10)
        self._overdue(client, agence_h, 4)
        make_facture(client, agence_h, make_client(client, agence_h)["id"], statut="envoyee")

        r = client.get("/api/creances", headers=agence_h).json()
        assert r["count"] == 2
        assert r["data"][0]["id"] == older["id"]
        assert r["data"][0]["joursRetard"] == 11
        assert r["data"][0]["client"]["telephone"] == "0611111111"

        stats = client.get("/api/creances/stats", headers=agence_h).json()["data"]
        assert stats["totalFactures"] == 2
        assert stats["totalCreances"] == 1441.2
        assert stats["avgDaysLate"] == 8

    def test_reminder_without_email_provider(self, client, agence_h):
        facture = self._overdue(client, agence_h, 3)
        r = client.post(f"/api/creances/{facture['id']}/reminder", headers=agence_h, json={"message": "Merci"})
        assert r.status_code == 200
        body = r.json()
        assert body["emailSent"] is False
        assert body["data"]["lastReminder"]

    def test_reminder_sent(self, client, agence_h, monkeypatch):
        from email_service import email_service
        sent = []
        monkeypatch.setattr(email_service, "_send_email", lambda to, subject, html, sender_name=None: sent.append(to) or True)

        facture = self._overdue(client, agence_h, 3)
        r = client.post(f"/api/creances/{facture['id']}/reminder", headers=agence_h, json={})
        assert r.json()["emailSent"] is True
        assert sent == ["claire.martin@example.com"]

    def test_reminder_on_paid_invoice(self, client, agence_h):
        facture = make_facture(client, agence_h, make_client(client, agence_h)["id"])
        client.put(f"/api/factures/{facture['id']}/pay", headers=agence_h)
        r = client.post(f"/api/creances/{facture['id']}/reminder", headers=agence_h, json={})
        assert r.status_code == 400


# ═══════════════════════════════════════════════════════════════
# 5. CAISSE
# ═══════════════════════════════════════════════════════════════

class TestCaisse:
    def test_solde(self, client, agence_h):
        for type_, montant in [("entree", 1000), ("entree", 250.5), ("sortie", 400)]:
            r = client.post("/api/caisse/operations", headers=agence_h,
                            json={"type": type_, "montant": montant, "description": "Op"})
            assert r.status_code == 201

        solde = client.get("/api/caisse/solde", headers=agence_h).json()["data"]
        assert solde == {"solde": 850.5, "totalEntrees": 1250.5, "totalSorties": 400}

        sorties = client.get("/api/caisse/operations?type=sortie", headers=agence_h).json()
        assert sorties["count"] == 1

    def test_invalid_operation(self, client, agence_h):
        r = client.post("/api/caisse/operations", headers=agence_h,
                        json={"type": "virement", "montant": 10, "description": "Op"})
        assert r.status_code == 400
        r = client.post("/api/caisse/operations", headers=agence_h,
                        json={"type": "entree", "montant": 0, "description": "Op"})
        assert r.status_code == 400

    def test_delete(self, client, agence_h):
        op = client.post("/api/caisse/operations", headers=agence_h,
                         json={"type": "entree", "montant": 10, "description": "Op"}).json()["data"]
        assert client.delete(f"/api/caisse/operations/{op['id']}", headers=agence_h).status_code == 200
        assert client.delete(f"/api/caisse/operations/{op['id']}", headers=agence_h).status_code == 404


# ═══════════════════════════════════════════════════════════════
# 6. AGENT PERMISSIONS ON BILLING
# ═══════════════════════════════════════════════════════════════

class TestAgentAccess:
    def test_read_only_agent(self, client, agence, agence_h):
        c = make_client(client, agence_h)
        agent = make_agent(client, agence, [{"module": "clients", "actions": ["lire"]}])
        h = auth_h(agent["token"])

        assert client.get("/api/clients", headers=h).json()["count"] == 1
        assert client.delete(f"/api/clients/{c['id']}", headers=h).status_code == 403
        r = client.get("/api/factures", headers=h)
        assert r.status_code == 403
        assert r.json()["message"] == "Permission requise: factures.lire"


# ═══════════════════════════════════════════════════════════════
# 7. WEBHOOKS SORTANTS
# ═══════════════════════════════════════════════════════════════

class TestWebhooks:
    def _capture(self, monkeypatch, status="success"):
        import services.webhooks as webhooks
        calls = []

        async def fake_post(url, api_key, payload):
            calls.append({"url": url, "api_key": api_key, "payload": payload})
            return status, 200 if status == "success" else 503

        monkeypatch.setattr(webhooks, "post_webhook", fake_post)
        return calls

    def test_no_url_no_call(self, client, agence_h, monkeypatch):
        calls = self._capture(monkeypatch)
        make_facture(client, agence_h, make_client(client, agence_h)["id"])
        assert calls == []

    def test_facture_events(self, client, agence_h, monkeypatch):
        calls = self._capture(monkeypatch)
        client.put("/api/parametres", headers=agence_h, json={"webhookUrl": "https://hooks.test/samtech"})
        api_key = client.get("/api/parametres", headers=agence_h).json()["data"]["apiKey"]

        facture = make_facture(client, agence_h, make_client(client, agence_h)["id"])
        client.put(f"/api/factures/{facture['id']}/pay", headers=agence_h)

        assert [c["payload"]["event"] for c in calls] == ["facture.creee", "facture.payee"]
        assert calls[0]["url"] == "https://hooks.test/samtech"
        assert calls[0]["api_key"] == api_key
        assert calls[1]["payload"]["data"]["statut"] == "payee"

    def test_failure_is_logged_not_raised(self, client, agence_h, monkeypatch):
        self._capture(monkeypatch, status="server_error")
        client.put("/api/parametres", headers=agence_h, json={"webhookUrl": "https://hooks.test/down"})

        make_facture(client, agence_h, make_client(client, agence_h)["id"])
        logs = client.get("/api/logs?search=webhook", headers=agence_h).json()
        assert logs["count"] == 1
        assert logs["data"][0]["level"] == "warning"
