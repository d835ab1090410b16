"""
SamTech Voyages - Rapports & exports CSV

Agrégations pour /api/rapports et exports CSV (logs, audit, rapports).
"""

import io
import csv
from typing import List, Dict
from datetime import datetime, timezone
from fastapi.responses import Response

from config import parse_iso
from services.billing import UNPAID_STATUSES

MOIS_LABELS = [
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
]


def financial_report(factures: List[Dict], operations: List[Dict], year: int) -> Dict:
    """CA (factures hors brouillon), encaissements et dépenses caisse par mois"""
    months = [
        {"mois": i + 1, "label": MOIS_LABELS[i], "chiffreAffaires": 0.0, "encaisse": 0.0, "depenses": 0.0}
        for i in range(12)
    ]

    for f in factures:
        if f.get("statut") == "brouillon":
            continue
        emission = parse_iso(f.get("dateEmission"))
        if emission and emission.year == year:
            months[emission.month - 1]["chiffreAffaires"] += f.get("montantTTC", 0) or 0

    for op in operations:
        date = parse_iso(op.get("date"))
        if not date or date.year != year:
            continue
        key = "encaisse" if op.get("type") == "entree" else "depenses"
        months[date.month - 1][key] += op.get("montant", 0) or 0

    for m in months:
        for key in ("chiffreAffaires", "encaisse", "depenses"):
            m[key] = round(m[key], 2)

    totals = {
        "chiffreAffaires": round(sum(m["chiffreAffaires"] for m in months), 2),
        "encaisse": round(sum(m["encaisse"] for m in months), 2),
        "depenses": round(sum(m["depenses"] for m in months), 2),
    }
    totals["resultat"] = round(totals["encaisse"] - totals["depenses"], 2)

    return {"annee": year, "mois": months, "totaux": totals}


def clients_report(factures: List[Dict], clients: List[Dict], limit: int = 20) -> List[Dict]:
    by_client: Dict[str, Dict] = {}
    names = {c.get("id"): c for c in clients}

    for f in factures:
        if f.get("statut") == "brouillon":
            continue
        cid = f.get("clientId")
        row = by_client.setdefault(cid, {"totalFacture": 0.0, "nombreFactures": 0, "impaye": 0.0})
        row["totalFacture"] += f.get("montantTTC", 0) or 0
        row["nombreFactures"] += 1
        if f.get("statut") in UNPAID_STATUSES:
            row["impaye"] += f.get("montantTTC", 0) or 0

    result = []
    for cid, row in by_client.items():
        client = names.get(cid, {})
        result.append({
            "clientId": cid,
            "nom": " ".join(p for p in [client.get("prenom"), client.get("nom")] if p) or "Client supprimé",
            "entreprise": client.get("entreprise", ""),
            "totalFacture": round(row["totalFacture"], 2),
            "nombreFactures": row["nombreFactures"],
            "impaye": round(row["impaye"], 2),
        })

    result.sort(key=lambda r: r["totalFacture"], reverse=True)
    return result[:limit]


def destinations_report(reservations: List[Dict]) -> List[Dict]:
    """Réservations non annulées groupées par destination"""
    groups: Dict[str, Dict] = {}
    for r in reservations:
        if r.get("statut") == "annulee":
            continue
        dest = (r.get("destination") or "").strip() or "Non renseignée"
        row = groups.setdefault(dest, {"destination": dest, "reservations": 0, "voyageurs": 0, "montant": 0.0})
        row["reservations"] += 1
        row["voyageurs"] += r.get("nombrePersonnes", 1) or 1
        row["montant"] += r.get("montant", 0) or 0

    result = list(groups.values())
    for row in result:
        row["montant"] = round(row["montant"], 2)
    result.sort(key=lambda r: (r["reservations"], r["montant"]), reverse=True)
    return result


def rows_to_csv(rows: List[Dict], fieldnames: List[str]) -> str:
    """Contenu CSV (colonnes fixes, valeurs absentes -> vide)"""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: row.get(k, "") for k in fieldnames})
    return output.getvalue()


def export_filename(kind: str) -> str:
    """Format: {KIND}_{DATE}.csv"""
    date_str = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{kind}_{date_str}.csv"


def csv_response(content: str, kind: str) -> Response:
    """Fichier CSV téléchargeable"""
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(kind)}"'}
    )
