# This project was developed with assistance from AI tools.
"""Progress score schemas."""

from pydantic import BaseModel, computed_field


class PartyProgress(BaseModel):
    """Completion of one party's form and required documents (percentages)."""

    form_percent: int
    doc_percent: int
    overall_percent: int

    @computed_field
    @property
    def is_form_complete(self) -> bool:
        return self.form_percent == 100

    @computed_field
    @property
    def is_docs_complete(self) -> bool:
        return self.doc_percent == 100


class DossierProgress(BaseModel):
    """Aggregate score plus the per-party reports it was computed from."""

    percent: int
    has_bid: bool
    parties: dict[str, PartyProgress]
