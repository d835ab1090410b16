"""
SamTech Voyages - Modèles Auth & Inscription
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List


class UserLogin(BaseModel):
    # Champs vides acceptés ici: le message "Email et mot de passe requis" est renvoyé par la route
    email: Optional[str] = ""
    password: Optional[str] = ""


class RegisterRequest(BaseModel):
    """Inscription d'une agence (compte en attente d'approbation)"""
    nomAgence: str
    email: str
    password: str
    telephone: Optional[str] = ""
    adresse: Optional[str] = ""
    ville: Optional[str] = ""
    codePostal: Optional[str] = ""
    pays: Optional[str] = ""
    siret: Optional[str] = ""
    typeActivite: Optional[str] = "agence-voyage"
    modulesChoisis: List[str] = []

    @field_validator("nomAgence", "email")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Champ obligatoire")
        return v.strip()

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_length(cls, v):
        if not v or len(v) < 6:
            raise ValueError("Le mot de passe doit contenir au moins 6 caractères")
        return v
