# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, SessionLocal
from .enums import (
    AccountStatus,
    DocumentationStatus,
    DocumentStatus,
    EmploymentStatus,
    PartyRole,
)
from .models import Account, Document, Dossier, Party

__all__ = [
    "Base",
    "SessionLocal",
    "__version__",
    # Enums
    "AccountStatus",
    "DocumentationStatus",
    "DocumentStatus",
    "EmploymentStatus",
    "PartyRole",
    # Models
    "Account",
    "Document",
    "Dossier",
    "Party",
]
