"""
SamTech Voyages - Modèles Agents
Un agent = employé d'agence, lié à un user role=agent.
Permissions: [{module, actions}] validées contre le catalogue de modules.
"""

from typing import Optional, List
from pydantic import BaseModel, field_validator

AGENT_STATUSES = ["actif", "suspendu"]


class PermissionEntry(BaseModel):
    module: str
    actions: List[str] = []


class AgentCreate(BaseModel):
    nom: str
    prenom: str
    email: str
    telephone: Optional[str] = ""
    password: Optional[str] = None
    permissions: List[PermissionEntry] = []

    @field_validator("nom", "prenom", "email")
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
        if v is not None and len(v) < 6:
            raise ValueError("Le mot de passe doit contenir au moins 6 caractères")
        return v


class AgentUpdate(BaseModel):
    nom: Optional[str] = None
    prenom: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None
    statut: Optional[str] = None

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        if v is not None and v not in AGENT_STATUSES:
            raise ValueError(f"Statut invalide: {v}. Valides: {AGENT_STATUSES}")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.strip().lower() if v else v


class AgentPermissionsUpdate(BaseModel):
    permissions: List[PermissionEntry]


class AgentAgenciesUpdate(BaseModel):
    agences: List[str]


class UserModulesUpdate(BaseModel):
    modules: List[PermissionEntry]
