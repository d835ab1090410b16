"""
SamTech Voyages - Modèle Opération de caisse
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator

OPERATION_TYPES = ["entree", "sortie"]


class OperationCreate(BaseModel):
    type: str
    montant: float = Field(..., gt=0)
    description: str
    date: Optional[str] = None
    categorie: Optional[str] = "autre"
    reference: Optional[str] = ""
    agenceId: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in OPERATION_TYPES:
            raise ValueError("Type invalide: entree ou sortie")
        return v

    @field_validator("description")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Description obligatoire")
        return v.strip()
