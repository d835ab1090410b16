"""
SamTech Voyages - Seed démo (dev/staging only)
Superadmin + une agence approuvée avec quelques clients, factures, bons et opérations de caisse.
Run: python scripts/seed_demo.py
Reset: python scripts/seed_demo.py --reset
"""

import asyncio
import sys
import uuid
from pathlib import Path
from datetime import datetime, timezone, timedelta

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import client, db, hash_password  # noqa: E402
from services.billing import compute_totals, format_document_number, due_date_iso  # noqa: E402
from services.permissions import AGENCE_MODULES  # noqa: E402
from services.settings import build_default_parametres, build_default_vitrine  # noqa: E402

DEMO_PASSWORD = "demo123"
SUPERADMIN_EMAIL = "superadmin@samtech.com"
AGENCE_EMAIL = "agence@demo-voyages.fr"

DEMO_CLIENTS = [
    {"nom": "Martin", "prenom": "Claire", "email": "claire.martin@example.com",
     "telephone": "0601020304", "adresse": "3 rue des Lilas, 69001 Lyon", "entreprise": ""},
    {"nom": "Durand", "prenom": "Paul", "email": "paul.durand@example.com",
     "telephone": "0611223344", "adresse": "18 avenue Foch, 75016 Paris", "entreprise": "Durand Conseil"},
    {"nom": "Benali", "prenom": "Sofia", "email": "sofia.benali@example.com",
     "telephone": "0622334455", "adresse": "7 quai du Port, 13002 Marseille", "entreprise": ""},
]

DEMO_ARTICLES = [
    [{"designation": "Séjour Marrakech 7 nuits", "quantite": 2, "prixUnitaire": 640}],
    [{"designation": "Vol Paris - Montréal", "quantite": 1, "prixUnitaire": 720},
     {"designation": "Assurance annulation", "quantite": 1, "prixUnitaire": 45}],
    [{"designation": "Circuit Andalousie", "quantite": 4, "prixUnitaire": 890}],
]


async def reset():
    agence = await db.agences.find_one({"email": AGENCE_EMAIL}, {"_id": 0, "id": 1})
    if agence:
        for name in ("clients", "factures", "bons_commande", "operations", "packages"):
            await db[name].delete_many({"agenceId": agence["id"]})
        await db.agences.delete_one({"id": agence["id"]})
    users = await db.users.find(
        {"email": {"$in": [SUPERADMIN_EMAIL, AGENCE_EMAIL]}}, {"_id": 0, "id": 1}
    ).to_list(10)
    await db.sessions.delete_many({"user_id": {"$in": [u["id"] for u in users]}})
    result = await db.users.delete_many({"email": {"$in": [SUPERADMIN_EMAIL, AGENCE_EMAIL]}})
    print(f"Deleted {result.deleted_count} demo users")


async def seed():
    now = datetime.now(timezone.utc)
    now_str = now.isoformat()

    await db.users.insert_one({
        "id": str(uuid.uuid4()),
        "email": SUPERADMIN_EMAIL,
        "password": hash_password(DEMO_PASSWORD),
        "nom": "Admin",
        "prenom": "Super",
        "role": "superadmin",
        "statut": "actif",
        "agenceId": None,
        "agences": [],
        "permissions": [],
        "created_at": now_str,
    })
    print(f"  Created: {SUPERADMIN_EMAIL} (superadmin)")

    agence = {
        "id": str(uuid.uuid4()),
        "nom": "Demo Voyages",
        "email": AGENCE_EMAIL,
        "telephone": "0145678900",
        "adresse": "10 rue de la Paix, 75002 Paris, France",
        "statut": "approuve",
        "dateInscription": now_str,
        "dateApprobation": now_str,
        "modulesActifs": list(AGENCE_MODULES),
        "modulesChoisis": [],
        "modulesDemandes": [],
        "typeActivite": "agence-voyage",
        "siret": "12345678900012",
        "logo": "",
        "created_at": now_str,
    }
    agence["vitrineConfig"] = build_default_vitrine(agence)
    agence["parametres"] = build_default_parametres(agence)
    await db.agences.insert_one(agence)

    await db.users.insert_one({
        "id": str(uuid.uuid4()),
        "email": AGENCE_EMAIL,
        "password": hash_password(DEMO_PASSWORD),
        "nom": agence["nom"],
        "prenom": "",
        "role": "agence",
        "statut": "actif",
        "agenceId": agence["id"],
        "agences": [],
        "permissions": [],
        "created_at": now_str,
    })
    print(f"  Created: {AGENCE_EMAIL} (agence {agence['nom']})")

    clients = []
    for c in DEMO_CLIENTS:
        doc = {"id": str(uuid.uuid4()), "agenceId": agence["id"], **c, "solde": 0, "dateCreation": now_str}
        await db.clients.insert_one(doc)
        clients.append(doc)

    statuts = ["payee", "envoyee", "brouillon"]
    for i, (client_doc, articles) in enumerate(zip(clients, DEMO_ARTICLES)):
        emission = now - timedelta(days=40 - i * 15)
        await db.factures.insert_one({
            "id": str(uuid.uuid4()),
            "numero": format_document_number("FAC", emission.year, i + 1),
            "agenceId": agence["id"],
            "clientId": client_doc["id"],
            "dateEmission": emission.isoformat(),
            "dateEcheance": due_date_iso(emission),
            "statut": statuts[i],
            **compute_totals(articles, 20),
            "notes": "",
            "lastReminder": None,
            "datePaiement": now_str if statuts[i] == "payee" else None,
            "bonCommandeId": None,
            "created_at": emission.isoformat(),
        })

    for i, statut in enumerate(["accepte", "envoye"]):
        await db.bons_commande.insert_one({
            "id": str(uuid.uuid4()),
            "numero": format_document_number("BC", now.year, i + 1),
            "agenceId": agence["id"],
            "clientId": clients[i]["id"],
            "dateCreation": now_str,
            "statut": statut,
            **compute_totals(DEMO_ARTICLES[i], 20),
            "notes": "",
            "factureId": None,
        })

    operations = [
        ("entree", 1536.0, "Règlement facture Martin", "paiement"),
        ("sortie", 320.0, "Fournitures bureau", "fonctionnement"),
        ("entree", 450.0, "Acompte circuit Andalousie", "acompte"),
    ]
    for type_, montant, description, categorie in operations:
        await db.operations.insert_one({
            "id": str(uuid.uuid4()),
            "agenceId": agence["id"],
            "type": type_,
            "montant": montant,
            "description": description,
            "categorie": categorie,
            "reference": "",
            "date": now_str,
        })

    await db.packages.insert_one({
        "id": str(uuid.uuid4()),
        "agenceId": agence["id"],
        "nom": "Escapade à Marrakech",
        "description": "7 nuits en riad, vols inclus",
        "prix": 1290,
        "duree": "8 jours / 7 nuits",
        "inclusions": ["Vols A/R", "Riad 4*", "Petit-déjeuner"],
        "visible": True,
        "image": "",
        "destination": "Marrakech",
        "dateCreation": now_str,
    })


async def main():
    if "--reset" in sys.argv:
        await reset()
        print("Reset complete. Run without --reset to re-seed.")
    else:
        await reset()
        await seed()
        print(f"\nDemo data seeded. Password for all demo accounts: {DEMO_PASSWORD}")

    client.close()


if __name__ == "__main__":
    asyncio.run(main())
