"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Modèles Agence                                            ║
║                                                                              ║
║  Agence = tenant. Statuts: en_attente -> approuve | rejete | suspendu        ║
║  Modules: modulesActifs (activés par le superadmin)                          ║
║           modulesDemandes (demandes en cours, union sans doublon)            ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, field_validator

AGENCE_STATUSES = ["en_attente", "approuve", "rejete", "suspendu"]
MODULE_REQUEST_STATUSES = ["en_attente", "approuve", "rejete"]
BACKUP_FREQUENCIES = ["quotidienne", "hebdomadaire", "mensuelle"]

# agence.statut -> statut du compte propriétaire
AGENCE_TO_USER_STATUS = {
    "approuve": "actif",
    "rejete": "rejete",
    "suspendu": "suspendu",
}


def compose_adresse(adresse: str = "", code_postal: str = "", ville: str = "", pays: str = "") -> str:
    """'12 rue X', '75001', 'Paris', 'France' -> '12 rue X, 75001 Paris, France'"""
    localite = " ".join(p for p in [code_postal or "", ville or ""] if p).strip()
    return ", ".join(p for p in [adresse or "", localite, pays or ""] if p)


def split_adresse(full: str) -> Dict[str, str]:
    """Inverse de compose_adresse (meilleur effort)"""
    parts = [p.strip() for p in (full or "").split(",")]
    result = {"adresse": "", "codePostal": "", "ville": "", "pays": ""}
    if not parts or not parts[0]:
        return result
    result["adresse"] = parts[0]
    if len(parts) > 1:
        localite = parts[1].split(" ", 1)
        if localite[0].isdigit():
            result["codePostal"] = localite[0]
            result["ville"] = localite[1] if len(localite) > 1 else ""
        else:
            result["ville"] = parts[1]
    if len(parts) > 2:
        result["pays"] = ", ".join(parts[2:])
    return result


class AgenceModulesUpdate(BaseModel):
    modules: Any = None


class ModuleRequestCreate(BaseModel):
    modules: Optional[List[str]] = None
    message: Optional[str] = None


class ModuleRequestProcess(BaseModel):
    statut: str
    commentaireAdmin: Optional[str] = ""

    @field_validator("statut")
    @classmethod
    def validate_statut(cls, v):
        if v not in ("approuve", "rejete"):
            raise ValueError("Statut invalide: approuve ou rejete")
        return v


class ProfileUpdate(BaseModel):
    nom: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None
    adresse: Optional[str] = None
    ville: Optional[str] = None
    codePostal: Optional[str] = None
    pays: Optional[str] = None
    siret: Optional[str] = None
    typeActivite: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.strip().lower() if v else v


class LogoUpdate(BaseModel):
    logo: str


class ParametresUpdate(BaseModel):
    nomAgence: Optional[str] = None
    fuseau: Optional[str] = None
    langue: Optional[str] = None
    devise: Optional[str] = None
    emailNotifications: Optional[bool] = None
    smsNotifications: Optional[bool] = None
    notificationFactures: Optional[bool] = None
    notificationPaiements: Optional[bool] = None
    notificationRappels: Optional[bool] = None
    authentificationDouble: Optional[bool] = None
    sessionTimeout: Optional[int] = None
    tentativesConnexion: Optional[int] = None
    numeroFactureAuto: Optional[bool] = None
    prefixeFacture: Optional[str] = None
    tvaDefaut: Optional[float] = None
    conditionsPaiement: Optional[str] = None
    sauvegardeAuto: Optional[bool] = None
    frequenceSauvegarde: Optional[str] = None
    webhookUrl: Optional[str] = None
    integrationComptable: Optional[bool] = None

    @field_validator("tvaDefaut")
    @classmethod
    def validate_tva(cls, v):
        if v is not None and not 0 <= v <= 100:
            raise ValueError("TVA entre 0 et 100")
        return v

    @field_validator("frequenceSauvegarde")
    @classmethod
    def validate_frequence(cls, v):
        if v is not None and v not in BACKUP_FREQUENCIES:
            raise ValueError(f"Fréquence invalide: {', '.join(BACKUP_FREQUENCIES)}")
        return v

    @field_validator("prefixeFacture")
    @classmethod
    def validate_prefixe(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Préfixe de facture vide")
        return v.strip() if v else v

    @field_validator("sessionTimeout", "tentativesConnexion")
    @classmethod
    def positive(cls, v):
        if v is not None and v < 1:
            raise ValueError("Valeur strictement positive requise")
        return v


class ContactInfo(BaseModel):
    phone: Optional[str] = ""
    email: Optional[str] = ""
    address: Optional[str] = ""
    hours: Optional[str] = ""


class SocialLinks(BaseModel):
    facebook: Optional[str] = ""
    instagram: Optional[str] = ""
    twitter: Optional[str] = ""


class VitrineUpdate(BaseModel):
    isActive: Optional[bool] = None
    domainName: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    bannerImage: Optional[str] = None
    primaryColor: Optional[str] = None
    secondaryColor: Optional[str] = None
    showPackages: Optional[bool] = None
    showContact: Optional[bool] = None
    showAbout: Optional[bool] = None
    contactInfo: Optional[ContactInfo] = None
    aboutText: Optional[str] = None
    socialLinks: Optional[SocialLinks] = None
