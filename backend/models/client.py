"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Modèles Client & Fournisseur                              ║
║                                                                              ║
║  Client: nom, email, telephone, adresse obligatoires                         ║
║  Fournisseur: idem + entreprise obligatoire                                  ║
║  Toujours rattachés à une agence (agenceId)                                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional
from pydantic import BaseModel, field_validator
import re


def is_valid_email_format(email: str) -> bool:
    """Vérifie le format email basique"""
    if not email:
        return False
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


class ClientCreate(BaseModel):
    nom: str
    prenom: Optional[str] = ""
    entreprise: Optional[str] = ""
    email: str
    telephone: str
    adresse: str
    agenceId: Optional[str] = None  # superadmin uniquement

    @field_validator("nom", "telephone", "adresse")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Champ obligatoire")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        v = (v or "").strip().lower()
        if not is_valid_email_format(v):
            raise ValueError(f"Email invalide: {v}")
        return v


class ClientUpdate(BaseModel):
    nom: Optional[str] = None
    prenom: Optional[str] = None
    entreprise: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None
    adresse: Optional[str] = None
    solde: Optional[float] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if not is_valid_email_format(v):
            raise ValueError(f"Email invalide: {v}")
        return v


class FournisseurCreate(ClientCreate):
    entreprise: str

    @field_validator("entreprise")
    @classmethod
    def entreprise_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Champ obligatoire")
        return v.strip()


class FournisseurUpdate(ClientUpdate):
    pass
