"""
SamTech Voyages - Modèles Billets, Packages, Réservations
"""

from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

BILLET_STATUSES = ["confirme", "annule", "en_attente"]
RESERVATION_TYPES = ["vol", "hotel", "package", "transport"]
RESERVATION_STATUSES = ["en_attente", "confirmee", "annulee", "terminee"]


def _check(value, allowed, label):
    if value is not None and value not in allowed:
        raise ValueError(f"{label} invalide: {value}. Valides: {allowed}")
    return value


# ==================== BILLETS ====================

class BilletCreate(BaseModel):
    numeroVol: str
    compagnie: str
    dateDepart: str
    dateArrivee: Optional[str] = None
    origine: str
    destination: str
    passager: str
    prix: float = Field(..., ge=0)
    statut: str = "en_attente"
    clientId: Optional[str] = None
    agenceId: Optional[str] = None

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        return _check(v, BILLET_STATUSES, "Statut")


class BilletUpdate(BaseModel):
    numeroVol: Optional[str] = None
    compagnie: Optional[str] = None
    dateDepart: Optional[str] = None
    dateArrivee: Optional[str] = None
    origine: Optional[str] = None
    destination: Optional[str] = None
    passager: Optional[str] = None
    prix: Optional[float] = Field(None, ge=0)
    statut: Optional[str] = None
    clientId: Optional[str] = None

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        return _check(v, BILLET_STATUSES, "Statut")


# ==================== PACKAGES ====================

class PackageCreate(BaseModel):
    nom: str
    description: Optional[str] = ""
    prix: float = Field(..., ge=0)
    duree: Optional[str] = ""
    inclusions: List[str] = []
    visible: bool = True
    image: Optional[str] = ""
    destination: Optional[str] = ""
    agenceId: Optional[str] = None


class PackageUpdate(BaseModel):
    nom: Optional[str] = None
    description: Optional[str] = None
    prix: Optional[float] = Field(None, ge=0)
    duree: Optional[str] = None
    inclusions: Optional[List[str]] = None
    visible: Optional[bool] = None
    image: Optional[str] = None
    destination: Optional[str] = None


# ==================== RÉSERVATIONS ====================

class ReservationCreate(BaseModel):
    clientId: str
    type: str
    destination: str
    dateDepart: str
    dateRetour: Optional[str] = None
    nombrePersonnes: int = Field(1, ge=1)
    montant: float = Field(0, ge=0)
    statut: str = "en_attente"
    notes: Optional[str] = ""
    agenceId: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, RESERVATION_TYPES, "Type")

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        return _check(v, RESERVATION_STATUSES, "Statut")


class ReservationUpdate(BaseModel):
    clientId: Optional[str] = None
    type: Optional[str] = None
    destination: Optional[str] = None
    dateDepart: Optional[str] = None
    dateRetour: Optional[str] = None
    nombrePersonnes: Optional[int] = Field(None, ge=1)
    montant: Optional[float] = Field(None, ge=0)
    statut: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, RESERVATION_TYPES, "Type")

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        return _check(v, RESERVATION_STATUSES, "Statut")
