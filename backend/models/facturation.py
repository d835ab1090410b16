"""
SamTech Voyages - Modèles Factures, Bons de commande, Créances
"""

from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from services.billing import FACTURE_STATUSES, BON_STATUSES


class Article(BaseModel):
    designation: str
    quantite: float = Field(1, gt=0)
    prixUnitaire: float = Field(0, ge=0)

    @field_validator("designation")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Désignation obligatoire")
        return v.strip()


class FactureCreate(BaseModel):
    clientId: str
    articles: List[Article] = Field(..., min_length=1)
    dateEmission: Optional[str] = None
    dateEcheance: Optional[str] = None
    statut: str = "brouillon"
    notes: Optional[str] = ""
    agenceId: Optional[str] = None  # superadmin uniquement

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        if v not in ("brouillon", "envoyee"):
            raise ValueError("Une facture est créée en brouillon ou envoyée")
        return v


class FactureUpdate(BaseModel):
    clientId: Optional[str] = None
    articles: Optional[List[Article]] = None
    dateEmission: Optional[str] = None
    dateEcheance: Optional[str] = None
    statut: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        if v is not None and v not in FACTURE_STATUSES:
            raise ValueError(f"Statut invalide: {v}. Valides: {FACTURE_STATUSES}")
        return v

    @field_validator("articles")
    @classmethod
    def not_empty(cls, v):
        if v is not None and not v:
            raise ValueError("Au moins un article requis")
        return v


class BonCommandeCreate(BaseModel):
    clientId: str
    articles: List[Article] = Field(..., min_length=1)
    statut: str = "brouillon"
    notes: Optional[str] = ""
    agenceId: Optional[str] = None

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        if v not in BON_STATUSES or v == "facture":
            raise ValueError(f"Statut invalide à la création: {v}")
        return v


class BonCommandeUpdate(BaseModel):
    clientId: Optional[str] = None
    articles: Optional[List[Article]] = None
    notes: Optional[str] = None

    @field_validator("articles")
    @classmethod
    def not_empty(cls, v):
        if v is not None and not v:
            raise ValueError("Au moins un article requis")
        return v


class StatutUpdate(BaseModel):
    statut: str


class ReminderRequest(BaseModel):
    message: Optional[str] = ""
