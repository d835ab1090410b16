"""
SamTech Voyages - pure service tests
Tests: dashboard aggregation, module merging, permissions, agency scope, reports, scheduler rules.
Run: cd backend && pytest tests/test_services_unit.py -v
"""

import pytest
from datetime import datetime, timezone
from fastapi import HTTPException

from services.dashboard import compute_caisse_solde, chiffre_affaire_mois, recent_activities, \
    compute_agency_stats, compute_superadmin_stats
from services.permissions import merge_modules, remove_modules, normalize_permissions, \
    user_has_permission, get_accessible_modules, get_agence_scope, build_agence_filter, \
    enforce_write_agence, ensure_account_active
from services.reports import financial_report, clients_report, destinations_report, rows_to_csv
from scheduler_service import backup_due
from models import compose_adresse, split_adresse, event_color

NOW = datetime(2025, 6, 20, 10, 0, tzinfo=timezone.utc)


class FakeRequest:
    def __init__(self, headers=None):
        self.headers = headers or {}


# ═══════════════════════════════════════════════════════════════
# 1. DASHBOARD
# ═══════════════════════════════════════════════════════════════

class TestDashboard:
    FACTURES = [
        {"id": "f1", "numero": "FAC-2025-001", "statut": "envoyee", "montantTTC": 120.0,
         "dateEmission": "2025-06-02T09:00:00+00:00"},
        {"id": "f2", "numero": "FAC-2025-002", "statut": "en_retard", "montantTTC": 80.0,
         "dateEmission": "2025-05-10T09:00:00+00:00"},
        {"id": "f3", "numero": "FAC-2025-003", "statut": "payee", "montantTTC": 50.5,
         "dateEmission": "2025-06-15T09:00:00+00:00"},
    ]
    OPERATIONS = [
        {"id": "o1", "type": "entree", "montant": 500, "description": "Acompte", "date": "2025-06-18T10:00:00+00:00"},
        {"id": "o2", "type": "sortie", "montant": 125.25, "description": "Loyer", "date": "2025-06-01T10:00:00+00:00"},
    ]
    BONS = [
        {"id": "b1", "numero": "BC-2025-001", "statut": "accepte", "montantTTC": 300, "dateCreation": "2025-06-19T08:00:00+00:00"},
        {"id": "b2", "numero": "BC-2025-002", "statut": "facture", "montantTTC": 100, "dateCreation": "2025-04-01T08:00:00+00:00"},
        {"id": "b3", "numero": "BC-2025-003", "statut": "refuse", "montantTTC": 100, "dateCreation": "2025-04-02T08:00:00+00:00"},
    ]

    def test_solde(self):
        assert compute_caisse_solde(self.OPERATIONS) == {
            "solde": 374.75, "totalEntrees": 500, "totalSorties": 125.25,
        }

    def test_chiffre_affaire_current_month_only(self):
        assert chiffre_affaire_mois(self.FACTURES, NOW) == 170.5

    def test_agency_stats(self):
        stats = compute_agency_stats(4, self.FACTURES, self.OPERATIONS, self.BONS, NOW)
        assert stats["totalClients"] == 4
        assert stats["facturesEnAttente"] == 2
        assert stats["facturesImpayees"] == 1
        assert stats["bonCommandeEnCours"] == 1
        assert stats["soldeCaisse"] == 374.75

    def test_recent_activities_sorted_and_typed(self):
        activities = recent_activities(self.FACTURES, self.OPERATIONS, self.BONS)
        assert activities[0]["id"] == "commande-b1"
        assert activities[0]["description"] == "Bon de commande #BC-2025-001 accepte"
        assert activities[1]["type"] == "paiement"
        types = {a["id"]: a["type"] for a in activities}
        assert types["operation-o2"] == "depense"
        assert types["facture-f1"] == "facture"

    def test_recent_activities_limited_to_ten(self):
        factures = [
            {"id": str(i), "numero": f"FAC-2025-{i:03d}", "dateEmission": f"2025-01-{i + 1:02d}T00:00:00+00:00"}
            for i in range(15)
        ]
        activities = recent_activities(factures, [], [])
        assert len(activities) == 10
        assert activities[0]["description"] == "Facture #FAC-2025-014 créée"

    def test_superadmin_stats(self):
        agences = [
            {"id": "a1", "nom": "A", "statut": "approuve", "dateInscription": "2025-01-01T00:00:00+00:00"},
            {"id": "a2", "nom": "B", "statut": "en_attente", "dateInscription": "2025-02-01T00:00:00+00:00"},
            {"id": "a3", "nom": "C", "statut": "suspendu", "dateInscription": "2025-03-01T00:00:00+00:00"},
        ]
        tickets = [
            {"id": "t1", "agenceId": "a1", "statut": "ouvert", "dateCreation": "2025-03-02T00:00:00+00:00"},
            {"id": "t2", "agenceId": "a2", "statut": "ferme", "dateCreation": "2025-03-03T00:00:00+00:00"},
        ]
        stats = compute_superadmin_stats(agences, tickets)
        assert stats["totalAgences"] == 3
        assert stats["agencesApprouvees"] == 1
        assert stats["agencesEnAttente"] == 1
        assert stats["ticketsOuverts"] == 1
        assert stats["recentAgencies"][0]["id"] == "a3"
        assert stats["recentTickets"][0]["agence"]["nom"] == "B"


# ═══════════════════════════════════════════════════════════════
# 2. MODULES & PERMISSIONS
# ═══════════════════════════════════════════════════════════════

class TestModules:
    def test_merge_preserves_order_without_duplicates(self):
        assert merge_modules(["clients", "factures"], ["caisse", "clients", "billets"]) == [
            "clients", "factures", "caisse", "billets",
        ]

    def test_merge_handles_none(self):
        assert merge_modules(None, ["clients", "clients"]) == ["clients"]

    def test_remove(self):
        assert remove_modules(["clients", "caisse", "billets"], ["caisse"]) == ["clients", "billets"]


class TestPermissions:
    AGENT = {"role": "agent", "permissions": [{"module": "clients", "actions": ["lire", "creer"]}]}

    def test_agent_granular(self):
        assert user_has_permission(self.AGENT, "clients", "lire")
        assert not user_has_permission(self.AGENT, "clients", "supprimer")
        assert not user_has_permission(self.AGENT, "factures", "lire")

    def test_owner_and_superadmin_have_everything(self):
        assert user_has_permission({"role": "agence"}, "factures", "supprimer")
        assert user_has_permission({"role": "superadmin"}, "rapports", "exporter")

    def test_unknown_role_has_nothing(self):
        assert not user_has_permission({"role": "visiteur"}, "clients", "lire")

    def test_normalize_merges_duplicates(self):
        result = normalize_permissions([
            {"module": "clients", "actions": ["lire"]},
            {"module": "clients", "actions": ["creer", "lire"]},
        ])
        assert result == [{"module": "clients", "actions": ["lire", "creer"]}]

    def test_normalize_rejects_unknown_module(self):
        with pytest.raises(ValueError):
            normalize_permissions([{"module": "fusees", "actions": ["lire"]}])

    def test_normalize_rejects_action_outside_module(self):
        with pytest.raises(ValueError):
            normalize_permissions([{"module": "rapports", "actions": ["supprimer"]}])

    def test_accessible_modules(self):
        assert get_accessible_modules(self.AGENT) == ["dashboard", "clients"]
        assert "agences" in get_accessible_modules({"role": "superadmin"})

    def test_pending_account_blocked(self):
        with pytest.raises(HTTPException) as exc:
            ensure_account_active({"role": "agence", "statut": "en_attente"})
        assert exc.value.status_code == 403


class TestAgenceScope:
    def test_non_superadmin_forced_to_own_agency(self):
        user = {"role": "agence", "agenceId": "ag-1"}
        assert get_agence_scope(user, FakeRequest({"x-agence-id": "ag-2"})) == "ag-1"

    def test_superadmin_header(self):
        user = {"role": "superadmin"}
        assert get_agence_scope(user, FakeRequest({"x-agence-id": "ag-2"})) == "ag-2"
        assert get_agence_scope(user, FakeRequest()) is None

    def test_filter(self):
        assert build_agence_filter(None) == {}
        assert build_agence_filter("ag-1") == {"agenceId": "ag-1"}

    def test_superadmin_write_needs_explicit_agency(self):
        user = {"role": "superadmin"}
        with pytest.raises(HTTPException) as exc:
            enforce_write_agence(user, FakeRequest(), None)
        assert exc.value.status_code == 400
        assert enforce_write_agence(user, FakeRequest(), "ag-9") == "ag-9"

    def test_agent_body_agency_ignored(self):
        user = {"role": "agent", "agenceId": "ag-1"}
        assert enforce_write_agence(user, FakeRequest(), "ag-9") == "ag-1"


# ═══════════════════════════════════════════════════════════════
# 3. REPORTS
# ═══════════════════════════════════════════════════════════════

class TestReports:
    def test_financial_by_month(self):
        report = financial_report(
            [
                {"statut": "payee", "montantTTC": 100, "dateEmission": "2025-01-10T00:00:00+00:00"},
                {"statut": "brouillon", "montantTTC": 999, "dateEmission": "2025-01-11T00:00:00+00:00"},
                {"statut": "envoyee", "montantTTC": 50, "dateEmission": "2024-01-11T00:00:00+00:00"},
            ],
            [
                {"type": "entree", "montant": 80, "date": "2025-01-12T00:00:00+00:00"},
                {"type": "sortie", "montant": 30, "date": "2025-02-01T00:00:00+00:00"},
            ],
            2025,
        )
        assert report["mois"][0]["chiffreAffaires"] == 100
        assert report["mois"][0]["encaisse"] == 80
        assert report["mois"][1]["depenses"] == 30
        assert report["totaux"]["resultat"] == 50

    def test_clients_ranked_by_amount(self):
        rows = clients_report(
            [
                {"clientId": "c1", "statut": "payee", "montantTTC": 100},
                {"clientId": "c2", "statut": "envoyee", "montantTTC": 300},
                {"clientId": "c2", "statut": "en_retard", "montantTTC": 50},
            ],
            [{"id": "c1", "nom": "Martin"}, {"id": "c2", "nom": "Durand", "prenom": "Paul"}],
        )
        assert rows[0]["nom"] == "Paul Durand"
        assert rows[0]["impaye"] == 350
        assert rows[0]["nombreFactures"] == 2
        assert rows[1]["impaye"] == 0

    def test_destinations_skip_cancelled(self):
        rows = destinations_report([
            {"destination": "Rome", "statut": "confirmee", "montant": 800, "nombrePersonnes": 2},
            {"destination": "Rome", "statut": "en_attente", "montant": 400, "nombrePersonnes": 1},
            {"destination": "Oslo", "statut": "annulee", "montant": 900, "nombrePersonnes": 3},
        ])
        assert rows == [{"destination": "Rome", "reservations": 2, "voyageurs": 3, "montant": 1200}]

    def test_csv(self):
        content = rows_to_csv([{"a": 1, "b": "x"}, {"a": 2}], ["a", "b"])
        assert content.splitlines() == ["a,b", "1,x", "2,"]


# ═══════════════════════════════════════════════════════════════
# 4. MISC
# ═══════════════════════════════════════════════════════════════

class TestMisc:
    def test_backup_frequencies(self):
        monday = datetime(2025, 6, 16, tzinfo=timezone.utc)
        first = datetime(2025, 7, 1, tzinfo=timezone.utc)
        assert backup_due("quotidienne", NOW)
        assert backup_due("hebdomadaire", monday)
        assert not backup_due("hebdomadaire", NOW)
        assert backup_due("mensuelle", first)
        assert not backup_due("mensuelle", NOW)

    def test_adresse_roundtrip(self):
        full = compose_adresse("12 rue X", "75001", "Paris", "France")
        assert full == "12 rue X, 75001 Paris, France"
        assert split_adresse(full) == {
            "adresse": "12 rue X", "codePostal": "75001", "ville": "Paris", "pays": "France",
        }

    def test_adresse_skips_empty_parts(self):
        assert compose_adresse("12 rue X", "", "Paris", "") == "12 rue X, Paris"

    def test_event_colors(self):
        assert event_color("reservation") == "#3B82F6"
        assert event_color("rendez_vous") == "#10B981"
        assert event_color("autre") == "#6B7280"
