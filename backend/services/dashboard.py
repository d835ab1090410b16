"""
SamTech Voyages - Dashboard aggregation

Pure functions over documents already loaded from Mongo.
Routes load the collections, these functions filter/reduce.
"""

from typing import List, Dict, Optional
from datetime import datetime, timezone

from config import parse_iso

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def compute_caisse_solde(operations: List[Dict]) -> Dict:
    entrees = sum(op.get("montant", 0) or 0 for op in operations if op.get("type") == "entree")
    sorties = sum(op.get("montant", 0) or 0 for op in operations if op.get("type") == "sortie")
    return {
        "solde": round(entrees - sorties, 2),
        "totalEntrees": round(entrees, 2),
        "totalSorties": round(sorties, 2),
    }


def chiffre_affaire_mois(factures: List[Dict], now: datetime = None) -> float:
    """TTC des factures émises pendant le mois calendaire courant"""
    now = now or datetime.now(timezone.utc)
    total = 0.0
    for f in factures:
        emission = parse_iso(f.get("dateEmission"))
        if emission and emission.year == now.year and emission.month == now.month:
            total += f.get("montantTTC", 0) or 0
    return round(total, 2)


def _sort_key(item: Dict) -> datetime:
    return parse_iso(item.get("date")) or _EPOCH


def recent_activities(
    factures: List[Dict],
    operations: List[Dict],
    bons: List[Dict],
    limit: int = 10
) -> List[Dict]:
    activities = []
    for f in factures:
        activities.append({
            "id": f"facture-{f.get('id')}",
            "type": "facture",
            "description": f"Facture #{f.get('numero')} créée",
            "montant": f.get("montantTTC", 0),
            "date": f.get("dateEmission"),
        })
    for op in operations:
        activities.append({
            "id": f"operation-{op.get('id')}",
            "type": "paiement" if op.get("type") == "entree" else "depense",
            "description": op.get("description", ""),
            "montant": op.get("montant", 0),
            "date": op.get("date"),
        })
    for bc in bons:
        activities.append({
            "id": f"commande-{bc.get('id')}",
            "type": "commande",
            "description": f"Bon de commande #{bc.get('numero')} {bc.get('statut')}",
            "montant": bc.get("montantTTC", 0),
            "date": bc.get("dateCreation"),
        })
    activities.sort(key=_sort_key, reverse=True)
    return activities[:limit]


def compute_agency_stats(
    total_clients: int,
    factures: List[Dict],
    operations: List[Dict],
    bons: List[Dict],
    now: datetime = None
) -> Dict:
    return {
        "totalClients": total_clients,
        "facturesEnAttente": sum(1 for f in factures if f.get("statut") in ("envoyee", "en_retard")),
        "chiffreAffaireMois": chiffre_affaire_mois(factures, now),
        "soldeCaisse": compute_caisse_solde(operations)["solde"],
        "facturesImpayees": sum(1 for f in factures if f.get("statut") == "en_retard"),
        "bonCommandeEnCours": sum(1 for b in bons if b.get("statut") not in ("facture", "refuse")),
        "recentActivities": recent_activities(factures, operations, bons),
    }


def compute_superadmin_stats(
    agences: List[Dict],
    tickets: List[Dict],
    agences_by_id: Optional[Dict[str, Dict]] = None
) -> Dict:
    agences_by_id = agences_by_id or {a.get("id"): a for a in agences}

    recent_agencies = sorted(
        agences, key=lambda a: parse_iso(a.get("dateInscription")) or _EPOCH, reverse=True
    )[:5]

    recent_tickets = []
    for t in sorted(tickets, key=lambda t: parse_iso(t.get("dateCreation")) or _EPOCH, reverse=True)[:5]:
        agence = agences_by_id.get(t.get("agenceId")) or {}
        recent_tickets.append({
            "id": t.get("id"),
            "agenceId": t.get("agenceId"),
            "sujet": t.get("sujet"),
            "description": t.get("description"),
            "statut": t.get("statut"),
            "priorite": t.get("priorite"),
            "dateCreation": t.get("dateCreation"),
            "dateMAJ": t.get("dateMAJ"),
            "agence": {"nom": agence.get("nom", ""), "email": agence.get("email", "")},
        })

    return {
        "totalAgences": len(agences),
        "agencesApprouvees": sum(1 for a in agences if a.get("statut") == "approuve"),
        "agencesEnAttente": sum(1 for a in agences if a.get("statut") == "en_attente"),
        "ticketsOuverts": sum(1 for t in tickets if t.get("statut") == "ouvert"),
        "recentAgencies": recent_agencies,
        "recentTickets": recent_tickets,
    }
