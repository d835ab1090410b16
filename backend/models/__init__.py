"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SamTech Voyages - Models Package                                            ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from models import ClientCreate, FactureCreate, TicketCreate, etc.          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from .auth import UserLogin, RegisterRequest
from .agence import (
    AGENCE_STATUSES,
    MODULE_REQUEST_STATUSES,
    AGENCE_TO_USER_STATUS,
    compose_adresse,
    split_adresse,
    AgenceModulesUpdate,
    ModuleRequestCreate,
    ModuleRequestProcess,
    ProfileUpdate,
    LogoUpdate,
    ParametresUpdate,
    VitrineUpdate,
)
from .agent import (
    AGENT_STATUSES,
    PermissionEntry,
    AgentCreate,
    AgentUpdate,
    AgentPermissionsUpdate,
    AgentAgenciesUpdate,
    UserModulesUpdate,
)
from .client import (
    is_valid_email_format,
    ClientCreate,
    ClientUpdate,
    FournisseurCreate,
    FournisseurUpdate,
)
from .facturation import (
    Article,
    FactureCreate,
    FactureUpdate,
    BonCommandeCreate,
    BonCommandeUpdate,
    StatutUpdate,
    ReminderRequest,
)
from .caisse import OPERATION_TYPES, OperationCreate
from .voyage import (
    BILLET_STATUSES,
    RESERVATION_TYPES,
    RESERVATION_STATUSES,
    BilletCreate,
    BilletUpdate,
    PackageCreate,
    PackageUpdate,
    ReservationCreate,
    ReservationUpdate,
)
from .organisation import (
    TICKET_STATUSES,
    TICKET_PRIORITIES,
    TODO_STATUSES,
    EVENT_TYPES,
    NOTIFICATION_STATUSES,
    NOTIFICATION_TYPES,
    event_color,
    TicketCreate,
    TicketUpdate,
    TicketStatusUpdate,
    TicketReponseCreate,
    TodoCreate,
    TodoUpdate,
    EventCreate,
    EventUpdate,
    DocumentCreate,
    DocumentUpdate,
    NotificationCreate,
)
