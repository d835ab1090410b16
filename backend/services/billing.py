"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Service Facturation                                       ║
║                                                                              ║
║  - Totaux articles / HT / TTC (TVA de l'agence)                              ║
║  - Numérotation séquentielle par agence: <PREFIXE>-<ANNEE>-<SEQ>             ║
║  - Conversion bon de commande (accepté) -> facture                           ║
║  - Créances: factures en retard ou envoyées échues                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import re
import math
import uuid
import logging
from typing import List, Dict, Optional
from datetime import datetime, timezone, timedelta
from fastapi import HTTPException

from config import db, now_iso, parse_iso

logger = logging.getLogger("billing")

FACTURE_STATUSES = ["brouillon", "envoyee", "payee", "en_retard"]
BON_STATUSES = ["brouillon", "envoye", "accepte", "refuse", "facture"]
UNPAID_STATUSES = ["envoyee", "en_retard"]

BON_PREFIX = "BC"
RESERVATION_PREFIX = "RES"
DEFAULT_PAYMENT_DAYS = 30


# ════════════════════════════════════════════════════════════════════════
# TOTAUX
# ════════════════════════════════════════════════════════════════════════

def compute_articles(articles: List[Dict]) -> List[Dict]:
    """montant = quantite * prixUnitaire, arrondi au centime"""
    result = []
    for art in articles or []:
        quantite = float(art.get("quantite", 0) or 0)
        prix = float(art.get("prixUnitaire", 0) or 0)
        result.append({
            "designation": art.get("designation", ""),
            "quantite": quantite,
            "prixUnitaire": prix,
            "montant": round(quantite * prix, 2),
        })
    return result


def compute_totals(articles: List[Dict], tva_rate: float) -> Dict:
    lines = compute_articles(articles)
    montant_ht = round(sum(a["montant"] for a in lines), 2)
    return {
        "articles": lines,
        "montantHT": montant_ht,
        "tauxTVA": tva_rate,
        "montantTTC": round(montant_ht * (1 + tva_rate / 100), 2),
    }


# ════════════════════════════════════════════════════════════════════════
# NUMÉROTATION
# ════════════════════════════════════════════════════════════════════════

def format_document_number(prefix: str, year: int, seq: int) -> str:
    return f"{prefix}-{year}-{seq:03d}"


async def next_document_number(collection, prefix: str, agence_id: str, year: int = None) -> str:
    """
    Numéro suivant pour l'agence: nombre de documents de l'année + 1.
    Incrémente tant que le numéro existe déjà (suppressions, imports).
    """
    year = year or datetime.now(timezone.utc).year
    stem = f"{prefix}-{year}-"
    count = await collection.count_documents({
        "agenceId": agence_id,
        "numero": {"$regex": f"^{re.escape(stem)}"}
    })
    seq = count + 1
    numero = format_document_number(prefix, year, seq)
    while await collection.find_one({"agenceId": agence_id, "numero": numero}, {"_id": 1}):
        seq += 1
        numero = format_document_number(prefix, year, seq)
    return numero


def due_date_iso(emission: datetime = None, days: int = DEFAULT_PAYMENT_DAYS) -> str:
    emission = emission or datetime.now(timezone.utc)
    return (emission + timedelta(days=days)).isoformat()


def payment_days_from_conditions(conditions: Optional[str]) -> int:
    """'45 jours' -> 45, sinon 30"""
    match = re.search(r"\d+", conditions or "")
    return int(match.group()) if match else DEFAULT_PAYMENT_DAYS


# ════════════════════════════════════════════════════════════════════════
# CONVERSION BON DE COMMANDE -> FACTURE
# ════════════════════════════════════════════════════════════════════════

def build_facture_from_bon(bon: Dict, numero: str, user_email: str = None, now: datetime = None) -> Dict:
    """Facture 'envoyee' reprenant articles, montants, client et agence du bon"""
    now = now or datetime.now(timezone.utc)
    emission = now.isoformat()
    return {
        "id": str(uuid.uuid4()),
        "numero": numero,
        "clientId": bon.get("clientId"),
        "agenceId": bon.get("agenceId"),
        "bonCommandeId": bon.get("id"),
        "dateEmission": emission,
        "dateEcheance": due_date_iso(now),
        "statut": "envoyee",
        "articles": bon.get("articles", []),
        "montantHT": bon.get("montantHT", 0),
        "tauxTVA": bon.get("tauxTVA", 20),
        "montantTTC": bon.get("montantTTC", 0),
        "notes": bon.get("notes", ""),
        "lastReminder": None,
        "datePaiement": None,
        "created_at": emission,
        "created_by": user_email,
    }


async def convert_bon_commande(bon_id: str, scope_filter: dict, user: dict) -> Dict:
    """
    Convertit un bon accepté en facture.
    404 si absent, 400 si le bon n'est pas 'accepte'.
    """
    bon = await db.bons_commande.find_one({"id": bon_id, **scope_filter}, {"_id": 0})
    if not bon:
        raise HTTPException(status_code=404, detail="Bon de commande non trouvé")

    if bon.get("statut") != "accepte":
        raise HTTPException(
            status_code=400,
            detail="Le bon de commande doit être accepté pour être converti en facture"
        )

    from services.settings import get_facture_prefix
    prefix = await get_facture_prefix(bon["agenceId"])
    numero = await next_document_number(db.factures, prefix, bon["agenceId"])

    facture = build_facture_from_bon(bon, numero, user.get("email"))
    await db.factures.insert_one(facture)
    facture.pop("_id", None)

    await db.bons_commande.update_one(
        {"id": bon_id},
        {"$set": {"statut": "facture", "factureId": facture["id"], "updated_at": now_iso()}}
    )

    logger.info(f"[FACTURE] Bon {bon.get('numero')} converti en facture {numero}")
    return facture


# ════════════════════════════════════════════════════════════════════════
# CRÉANCES
# ════════════════════════════════════════════════════════════════════════

def is_creance(facture: Dict, now: datetime = None) -> bool:
    now = now or datetime.now(timezone.utc)
    statut = facture.get("statut")
    if statut == "en_retard":
        return True
    if statut == "envoyee":
        echeance = parse_iso(facture.get("dateEcheance"))
        return echeance is not None and echeance < now
    return False


def days_late(facture: Dict, now: datetime = None) -> int:
    now = now or datetime.now(timezone.utc)
    echeance = parse_iso(facture.get("dateEcheance"))
    if not echeance or echeance >= now:
        return 0
    return math.ceil((now - echeance).total_seconds() / 86400)


def creance_stats(factures: List[Dict], now: datetime = None) -> Dict:
    now = now or datetime.now(timezone.utc)
    creances = [f for f in factures if is_creance(f, now)]
    if not creances:
        return {"totalCreances": 0, "totalFactures": 0, "avgDaysLate": 0}
    total = round(sum(f.get("montantTTC", 0) or 0 for f in creances), 2)
    avg = round(sum(days_late(f, now) for f in creances) / len(creances))
    return {"totalCreances": total, "totalFactures": len(creances), "avgDaysLate": avg}


async def mark_overdue_factures(scope_filter: dict = None) -> int:
    """envoyee + échéance dépassée -> en_retard"""
    result = await db.factures.update_many(
        {**(scope_filter or {}), "statut": "envoyee", "dateEcheance": {"$lt": now_iso()}},
        {"$set": {"statut": "en_retard", "updated_at": now_iso()}}
    )
    return result.modified_count


# ════════════════════════════════════════════════════════════════════════
# CLIENT EMBARQUÉ
# ════════════════════════════════════════════════════════════════════════

def client_ref(client: Optional[Dict], with_phone: bool = False) -> Optional[Dict]:
    if not client:
        return None
    ref = {
        "id": client.get("id"),
        "nom": client.get("nom", ""),
        "prenom": client.get("prenom", ""),
        "entreprise": client.get("entreprise", ""),
        "email": client.get("email", ""),
    }
    if with_phone:
        ref["telephone"] = client.get("telephone", "")
    return ref


async def attach_clients(docs: List[Dict], with_phone: bool = False) -> List[Dict]:
    """Ajoute doc['client'] à partir de doc['clientId'] (une seule requête)"""
    ids = list({d.get("clientId") for d in docs if d.get("clientId")})
    clients = {}
    if ids:
        for c in await db.clients.find({"id": {"$in": ids}}, {"_id": 0}).to_list(len(ids)):
            clients[c["id"]] = c
    for d in docs:
        d["client"] = client_ref(clients.get(d.get("clientId")), with_phone)
    return docs
