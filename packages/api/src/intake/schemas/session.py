# This project was developed with assistance from AI tools.
"""Response schemas for an open intake session."""

from pydantic import BaseModel

from .document import DocumentRequirement
from .dossier import Dossier
from .progress import DossierProgress


class DossierView(BaseModel):
    """Everything the intake form renders: state, score and save badge."""

    dossier: Dossier
    progress: DossierProgress
    save_state: str


class PartyRequirements(BaseModel):
    local_id: str
    requirements: list[DocumentRequirement]
