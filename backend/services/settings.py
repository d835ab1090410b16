"""
SamTech Voyages - Service Paramètres

Paramètres et vitrine sont stockés dans le document agence:
- agence.parametres: préférences générales, facturation, sécurité, sauvegarde, API
- agence.vitrineConfig: configuration de la vitrine publique

Les valeurs par défaut sont créées à la première lecture.
"""

import uuid
import logging
from typing import Optional, Dict, Any

from config import db, generate_api_key, slugify, now_iso, VITRINE_DOMAIN

logger = logging.getLogger("settings")


DEFAULT_PARAMETRES = {
    # Généraux
    "fuseau": "Europe/Paris",
    "langue": "fr",
    "devise": "EUR",
    # Notifications
    "emailNotifications": True,
    "smsNotifications": False,
    "notificationFactures": True,
    "notificationPaiements": True,
    "notificationRappels": True,
    # Sécurité
    "authentificationDouble": False,
    "sessionTimeout": 30,
    "tentativesConnexion": 5,
    # Facturation
    "numeroFactureAuto": True,
    "prefixeFacture": "FAC",
    "tvaDefaut": 20,
    "conditionsPaiement": "30 jours",
    # Sauvegarde
    "sauvegardeAuto": True,
    "frequenceSauvegarde": "quotidienne",
    "derniereSauvegarde": None,
    # API / intégrations
    "webhookUrl": "",
    "integrationComptable": False,
}

DEFAULT_OPENING_HOURS = "Lun-Ven: 9h-18h, Sam: 9h-12h"


def build_default_parametres(agence: Dict[str, Any]) -> Dict[str, Any]:
    params = dict(DEFAULT_PARAMETRES)
    params["nomAgence"] = agence.get("nom", "")
    params["apiKey"] = generate_api_key()
    return params


def build_default_vitrine(agence: Dict[str, Any]) -> Dict[str, Any]:
    nom = agence.get("nom", "")
    slug = slugify(nom)
    return {
        "isActive": True,
        "domainName": f"{slug}.{VITRINE_DOMAIN}",
        "title": f"{nom} - Votre Agence de Voyage",
        "description": (
            f"Découvrez nos offres de voyage exceptionnelles et partez à la "
            f"découverte du monde avec {nom}."
        ),
        "logo": agence.get("logo", ""),
        "bannerImage": "",
        "primaryColor": "#3B82F6",
        "secondaryColor": "#1E40AF",
        "showPackages": True,
        "showContact": True,
        "showAbout": True,
        "contactInfo": {
            "phone": agence.get("telephone", ""),
            "email": agence.get("email", ""),
            "address": agence.get("adresse", ""),
            "hours": DEFAULT_OPENING_HOURS,
        },
        "aboutText": f"{nom} est votre partenaire de confiance pour tous vos projets de voyage.",
        "socialLinks": {
            "facebook": f"https://facebook.com/{slug}",
            "instagram": f"https://instagram.com/{slug}",
            "twitter": f"https://twitter.com/{slug}",
        },
    }


async def get_agence_parametres(agence_id: str) -> Optional[Dict[str, Any]]:
    """Paramètres de l'agence, créés avec les valeurs par défaut si absents"""
    agence = await db.agences.find_one({"id": agence_id}, {"_id": 0})
    if not agence:
        return None

    params = agence.get("parametres")
    if not params:
        params = build_default_parametres(agence)
        await db.agences.update_one({"id": agence_id}, {"$set": {"parametres": params}})
        logger.info(f"[PARAMETRES] Défauts créés pour agence={agence_id}")
        return params

    # Clés ajoutées après la création de l'agence
    missing = {k: v for k, v in DEFAULT_PARAMETRES.items() if k not in params}
    if missing:
        params = {**missing, **params}
    return params


async def get_tva_rate(agence_id: str) -> float:
    params = await get_agence_parametres(agence_id) or {}
    try:
        return float(params.get("tvaDefaut", DEFAULT_PARAMETRES["tvaDefaut"]))
    except (TypeError, ValueError):
        return float(DEFAULT_PARAMETRES["tvaDefaut"])


async def get_facture_prefix(agence_id: str) -> str:
    params = await get_agence_parametres(agence_id) or {}
    return (params.get("prefixeFacture") or DEFAULT_PARAMETRES["prefixeFacture"]).strip()


async def get_agence_vitrine(agence_id: str) -> Optional[Dict[str, Any]]:
    """Configuration vitrine, créée par défaut si absente"""
    agence = await db.agences.find_one({"id": agence_id}, {"_id": 0})
    if not agence:
        return None

    vitrine = agence.get("vitrineConfig")
    if not vitrine:
        vitrine = build_default_vitrine(agence)
        await db.agences.update_one({"id": agence_id}, {"$set": {"vitrineConfig": vitrine}})
    return vitrine


# ════════════════════════════════════════════════════════════════════════
# SAUVEGARDES
# ════════════════════════════════════════════════════════════════════════

BACKUP_COLLECTIONS = [
    "clients", "fournisseurs", "factures", "bons_commande", "operations",
    "billets", "packages", "reservations", "todos", "events", "documents",
]


async def backup_agence(agence_id: str, trigger: str = "manuel", user_email: str = "system") -> Dict[str, Any]:
    """
    Snapshot des collections de l'agence dans db.backups.
    Retourne les métadonnées (sans le contenu).
    """
    data = {}
    counts = {}
    for name in BACKUP_COLLECTIONS:
        docs = await db[name].find({"agenceId": agence_id}, {"_id": 0}).to_list(100000)
        data[name] = docs
        counts[name] = len(docs)

    now = now_iso()
    backup = {
        "id": str(uuid.uuid4()),
        "agenceId": agence_id,
        "date": now,
        "declencheur": trigger,
        "created_by": user_email,
        "counts": counts,
        "totalDocuments": sum(counts.values()),
        "data": data,
    }
    await db.backups.insert_one(backup)
    await db.agences.update_one({"id": agence_id}, {"$set": {"parametres.derniereSauvegarde": now}})

    logger.info(f"[BACKUP] agence={agence_id} trigger={trigger} documents={backup['totalDocuments']}")
    return {k: v for k, v in backup.items() if k not in ("data", "_id")}
