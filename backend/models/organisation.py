"""
SamTech Voyages - Modèles Tickets support, Tâches, Calendrier, Documents, Notifications
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator

TICKET_STATUSES = ["ouvert", "en_cours", "ferme"]
TICKET_PRIORITIES = ["faible", "normale", "haute", "urgente"]

TODO_STATUSES = ["en_attente", "en_cours", "termine"]
TODO_PRIORITIES = ["basse", "normale", "haute"]
TODO_TYPES = ["rappel", "tache", "suivi"]

EVENT_TYPES = ["reservation", "rappel", "rendez_vous", "tache", "autre"]
EVENT_COLORS = {
    "reservation": "#3B82F6",
    "rendez_vous": "#10B981",
    "rappel": "#F59E0B",
    "tache": "#8B5CF6",
}
DEFAULT_EVENT_COLOR = "#6B7280"

DOCUMENT_TYPES = ["pdf", "doc", "excel", "image", "autre"]
DOCUMENT_CATEGORIES = ["contrat", "facture", "devis", "photo", "passeport", "autre"]

NOTIFICATION_TYPES = ["email", "sms", "push"]
NOTIFICATION_PRIORITIES = ["basse", "normale", "haute", "urgente"]
NOTIFICATION_STATUSES = ["envoye", "en_attente", "echec", "lu"]


def _check(value, allowed, label):
    if value is not None and value not in allowed:
        raise ValueError(f"{label} invalide: {value}. Valides: {allowed}")
    return value


def event_color(event_type: str) -> str:
    return EVENT_COLORS.get(event_type, DEFAULT_EVENT_COLOR)


# ==================== TICKETS ====================

class TicketCreate(BaseModel):
    sujet: str
    description: str
    priorite: str = "normale"

    @field_validator("sujet", "description")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Champ obligatoire")
        return v.strip()

    @field_validator("priorite")
    @classmethod
    def validate_priorite(cls, v):
        return _check(v, TICKET_PRIORITIES, "Priorité")


class TicketUpdate(BaseModel):
    sujet: Optional[str] = None
    description: Optional[str] = None
    priorite: Optional[str] = None

    @field_validator("priorite")
    @classmethod
    def validate_priorite(cls, v):
        return _check(v, TICKET_PRIORITIES, "Priorité")


class TicketStatusUpdate(BaseModel):
    statut: str

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        return _check(v, TICKET_STATUSES, "Statut")


class TicketReponseCreate(BaseModel):
    message: str

    @field_validator("message")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Message obligatoire")
        return v.strip()


# ==================== TODOS ====================

class TodoCreate(BaseModel):
    titre: str
    description: Optional[str] = ""
    clientId: Optional[str] = None
    dateEcheance: Optional[str] = None
    priorite: str = "normale"
    statut: str = "en_attente"
    type: str = "tache"
    assigneA: Optional[str] = ""
    agenceId: Optional[str] = None

    @field_validator("titre")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Titre obligatoire")
        return v.strip()

    @field_validator("priorite")
    @classmethod
    def validate_priorite(cls, v):
        return _check(v, TODO_PRIORITIES, "Priorité")

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        return _check(v, TODO_STATUSES, "Statut")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, TODO_TYPES, "Type")


class TodoUpdate(BaseModel):
    titre: Optional[str] = None
    description: Optional[str] = None
    clientId: Optional[str] = None
    dateEcheance: Optional[str] = None
    priorite: Optional[str] = None
    statut: Optional[str] = None
    type: Optional[str] = None
    assigneA: Optional[str] = None

    @field_validator("priorite")
    @classmethod
    def validate_priorite(cls, v):
        return _check(v, TODO_PRIORITIES, "Priorité")

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        return _check(v, TODO_STATUSES, "Statut")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, TODO_TYPES, "Type")


# ==================== CALENDRIER ====================

class EventCreate(BaseModel):
    title: str
    start: str
    end: Optional[str] = None
    allDay: bool = False
    type: str = "autre"
    clientId: Optional[str] = None
    description: Optional[str] = ""
    location: Optional[str] = ""
    color: Optional[str] = None
    agenceId: Optional[str] = None

    @field_validator("title")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Titre obligatoire")
        return v.strip()

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, EVENT_TYPES, "Type")


class EventUpdate(BaseModel):
    title: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    allDay: Optional[bool] = None
    type: Optional[str] = None
    clientId: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    color: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, EVENT_TYPES, "Type")


# ==================== DOCUMENTS ====================

class DocumentCreate(BaseModel):
    nom: str
    type: str = "autre"
    taille: Optional[int] = Field(0, ge=0)
    clientId: Optional[str] = None
    categorie: str = "autre"
    url: Optional[str] = ""
    description: Optional[str] = ""
    agenceId: Optional[str] = None

    @field_validator("nom")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Nom obligatoire")
        return v.strip()

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, DOCUMENT_TYPES, "Type")

    @field_validator("categorie")
    @classmethod
    def validate_categorie(cls, v):
        return _check(v, DOCUMENT_CATEGORIES, "Catégorie")


class DocumentUpdate(BaseModel):
    nom: Optional[str] = None
    type: Optional[str] = None
    taille: Optional[int] = Field(None, ge=0)
    clientId: Optional[str] = None
    categorie: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, DOCUMENT_TYPES, "Type")

    @field_validator("categorie")
    @classmethod
    def validate_categorie(cls, v):
        return _check(v, DOCUMENT_CATEGORIES, "Catégorie")


# ==================== NOTIFICATIONS ====================

class NotificationCreate(BaseModel):
    type: str = "email"
    titre: str
    message: str
    destinataire: str
    priorite: str = "normale"
    sendNow: bool = True

    @field_validator("titre", "message", "destinataire")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Champ obligatoire")
        return v.strip()

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return _check(v, NOTIFICATION_TYPES, "Type")

    @field_validator("priorite")
    @classmethod
    def validate_priorite(cls, v):
        return _check(v, NOTIFICATION_PRIORITIES, "Priorité")
