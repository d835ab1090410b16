"""
Configuration et utilitaires partagés
"""

import os
import re
import hashlib
import secrets
import unicodedata
from datetime import datetime, timezone
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'samtech_voyages')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# Application
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
SESSION_DAYS = int(os.environ.get('SESSION_DAYS', '7'))
SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'false').lower() == 'true'
VITRINE_DOMAIN = os.environ.get('VITRINE_DOMAIN', 'samtech.fr')


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """Hash un mot de passe avec SHA256"""
    return hashlib.sha256(password.encode()).hexdigest()

def generate_token() -> str:
    """Génère un token de session sécurisé"""
    return secrets.token_urlsafe(32)

def generate_api_key() -> str:
    """Génère une clé API agence"""
    return f"sk_live_{secrets.token_hex(12)}"

def generate_password() -> str:
    """Mot de passe temporaire pour les agents"""
    return secrets.token_urlsafe(9)

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()

def parse_iso(value) -> Optional[datetime]:
    """
    Parse une date ISO venant du front ou de la base.
    Accepte le suffixe Z, les dates seules (YYYY-MM-DD) et les valeurs naïves (UTC).
    Retourne None si la valeur est vide ou illisible.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc_iso(value) -> Optional[str]:
    """Date ISO normalisée en UTC (comparable en chaîne avec now_iso), None si illisible"""
    dt = parse_iso(value)
    return dt.astimezone(timezone.utc).isoformat() if dt else None


def slugify(text: str) -> str:
    """'Voyages Évasion' -> 'voyages-evasion'"""
    normalized = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode()
    return re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
