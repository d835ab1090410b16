"""
SamTech Voyages - Billing service unit tests
Tests: totals, numbering, due dates, bon -> facture mapping, créances.
Run: cd backend && pytest tests/test_billing_service.py -v
"""

import uuid
from datetime import datetime, timezone, timedelta

from tests.conftest import _db_op
from config import db
from services.billing import (
    compute_articles, compute_totals, format_document_number, next_document_number,
    due_date_iso, payment_days_from_conditions, build_facture_from_bon,
    is_creance, days_late, creance_stats, mark_overdue_factures,
)

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════════════════
# 1. TOTALS
# ═══════════════════════════════════════════════════════════════

class TestTotals:
    def test_article_amount_rounded(self):
        lines = compute_articles([{"designation": "Nuit", "quantite": 3, "prixUnitaire": 33.333}])
        assert lines[0]["montant"] == 100.0

    def test_totals_with_default_tva(self):
        totals = compute_totals([
            {"designation": "Vol", "quantite": 2, "prixUnitaire": 250},
            {"designation": "Hôtel", "quantite": 1, "prixUnitaire": 100},
        ], 20)
        assert totals["montantHT"] == 600.0
        assert totals["tauxTVA"] == 20
        assert totals["montantTTC"] == 720.0

    def test_totals_with_custom_tva(self):
        totals = compute_totals([{"designation": "Circuit", "quantite": 1, "prixUnitaire": 1000}], 5.5)
        assert totals["montantTTC"] == 1055.0

    def test_empty_articles(self):
        totals = compute_totals([], 20)
        assert totals["montantHT"] == 0
        assert totals["montantTTC"] == 0


# ═══════════════════════════════════════════════════════════════
# 2. NUMBERING
# ═══════════════════════════════════════════════════════════════

class TestNumbering:
    def test_format(self):
        assert format_document_number("FAC", 2025, 7) == "FAC-2025-007"
        assert format_document_number("BC", 2025, 1234) == "BC-2025-1234"

    def test_first_number_of_year(self):
        numero = _db_op(next_document_number(db.factures, "FAC", "ag-1", 2025))
        assert numero == "FAC-2025-001"

    def test_sequence_counts_agency_and_year_only(self):
        _db_op(db.factures.insert_many([
            {"id": str(uuid.uuid4()), "agenceId": "ag-1", "numero": "FAC-2025-001"},
            {"id": str(uuid.uuid4()), "agenceId": "ag-1", "numero": "FAC-2025-002"},
            {"id": str(uuid.uuid4()), "agenceId": "ag-1", "numero": "FAC-2024-009"},
            {"id": str(uuid.uuid4()), "agenceId": "ag-2", "numero": "FAC-2025-001"},
        ]))
        assert _db_op(next_document_number(db.factures, "FAC", "ag-1", 2025)) == "FAC-2025-003"
        assert _db_op(next_document_number(db.factures, "FAC", "ag-2", 2025)) == "FAC-2025-002"

    def test_collision_bumps_sequence(self):
        # Une facture supprimée laisse un trou: le compte retombe sur un numéro existant
        _db_op(db.factures.insert_many([
            {"id": str(uuid.uuid4()), "agenceId": "ag-1", "numero": "FAC-2025-002"},
        ]))
        assert _db_op(next_document_number(db.factures, "FAC", "ag-1", 2025)) == "FAC-2025-003"


# ═══════════════════════════════════════════════════════════════
# 3. DUE DATES
# ═══════════════════════════════════════════════════════════════

class TestDueDates:
    def test_default_thirty_days(self):
        assert due_date_iso(NOW) == (NOW + timedelta(days=30)).isoformat()

    def test_conditions_parsing(self):
        assert payment_days_from_conditions("45 jours") == 45
        assert payment_days_from_conditions("A réception") == 30
        assert payment_days_from_conditions(None) == 30


# ═══════════════════════════════════════════════════════════════
# 4. BON -> FACTURE
# ═══════════════════════════════════════════════════════════════

class TestBonConversion:
    BON = {
        "id": "bon-1",
        "numero": "BC-2025-001",
        "agenceId": "ag-1",
        "clientId": "cl-1",
        "statut": "accepte",
        "articles": [{"designation": "Vol", "quantite": 1, "prixUnitaire": 500, "montant": 500}],
        "montantHT": 500,
        "tauxTVA": 20,
        "montantTTC": 600,
    }

    def test_copies_amounts_and_links(self):
        facture = build_facture_from_bon(self.BON, "FAC-2025-004", "a@b.fr", NOW)
        assert facture["numero"] == "FAC-2025-004"
        assert facture["bonCommandeId"] == "bon-1"
        assert facture["clientId"] == "cl-1"
        assert facture["agenceId"] == "ag-1"
        assert facture["montantHT"] == 500
        assert facture["montantTTC"] == 600
        assert facture["articles"] == self.BON["articles"]

    def test_sent_with_thirty_day_term(self):
        facture = build_facture_from_bon(self.BON, "FAC-2025-004", now=NOW)
        assert facture["statut"] == "envoyee"
        assert facture["dateEmission"] == NOW.isoformat()
        assert facture["dateEcheance"] == (NOW + timedelta(days=30)).isoformat()


# ═══════════════════════════════════════════════════════════════
# 5. CRÉANCES
# ═══════════════════════════════════════════════════════════════

class TestCreances:
    def _facture(self, statut, days_ago, ttc=100.0):
        return {
            "statut": statut,
            "dateEcheance": (NOW - timedelta(days=days_ago)).isoformat(),
            "montantTTC": ttc,
        }

    def test_overdue_sent_invoice_is_creance(self):
        assert is_creance(self._facture("envoyee", 2), NOW)

    def test_sent_invoice_not_due_is_not_creance(self):
        assert not is_creance(self._facture("envoyee", -5), NOW)

    def test_en_retard_always_creance(self):
        assert is_creance(self._facture("en_retard", -5), NOW)

    def test_paid_never_creance(self):
        assert not is_creance(self._facture("payee", 40), NOW)

    def test_days_late_is_ceiled(self):
        facture = {"dateEcheance": (NOW - timedelta(days=2, hours=1)).isoformat()}
        assert days_late(facture, NOW) == 3

    def test_stats(self):
        stats = creance_stats([
            self._facture("envoyee", 10, 200.0),
            self._facture("en_retard", 20, 300.5),
            self._facture("payee", 50, 999.0),
        ], NOW)
        assert stats == {"totalCreances": 500.5, "totalFactures": 2, "avgDaysLate": 15}

    def test_stats_empty(self):
        assert creance_stats([], NOW) == {"totalCreances": 0, "totalFactures": 0, "avgDaysLate": 0}

    def test_mark_overdue(self):
        past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        _db_op(db.factures.insert_many([
            {"id": "f1", "agenceId": "ag-1", "statut": "envoyee", "dateEcheance": past},
            {"id": "f2", "agenceId": "ag-1", "statut": "envoyee", "dateEcheance": future},
            {"id": "f3", "agenceId": "ag-1", "statut": "brouillon", "dateEcheance": past},
        ]))
        assert _db_op(mark_overdue_factures()) == 1
        assert _db_op(db.factures.find_one({"id": "f1"}))["statut"] == "en_retard"
        assert _db_op(db.factures.find_one({"id": "f2"}))["statut"] == "envoyee"
        assert _db_op(db.factures.find_one({"id": "f3"}))["statut"] == "brouillon"
