# This project was developed with assistance from AI tools.
"""Dossier and party schemas (in-memory domain state plus request bodies)."""

from datetime import date
from decimal import Decimal
from typing import Literal

from intake_db.enums import EmploymentStatus, PartyRole
from pydantic import BaseModel, ConfigDict, Field

from .document import DocumentSlot, MultiSlot, SingleSlot

MonthsAdvance = Literal[0, 1, 2, 3, 6, 12]

MOTIVATION_MAX_LENGTH = 500


class PropertyConditions(BaseModel):
    """Rental conditions as shown to the applicant when the dossier was opened."""

    monthly_rent: int = 0
    deposit: int = 0
    service_costs: str = "-"
    available_from: str = "-"
    min_bid: int = 0
    max_bid: int = 0


class PropertyReference(BaseModel):
    address: str = ""
    conditions: PropertyConditions = PropertyConditions()


class Party(BaseModel):
    """One person on the dossier."""

    model_config = ConfigDict(validate_assignment=True)

    local_id: str
    durable_id: int | None = None
    role: PartyRole
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    postcode: str = ""
    city: str = ""
    employment_status: EmploymentStatus | None = None
    income: Decimal | None = None
    account_id: int | None = None
    # Local id of the tenant/co-tenant this guarantor vouches for.
    guarantees: str | None = None
    slots: list[DocumentSlot] = []

    @property
    def is_materialized(self) -> bool:
        return self.durable_id is not None

    def get_slot(self, doc_type: str) -> SingleSlot | MultiSlot | None:
        for slot in self.slots:
            if slot.doc_type == doc_type:
                return slot
        return None

    def put_slot(self, slot: SingleSlot | MultiSlot) -> None:
        """Replace the slot of the same type in place, or append a new one."""
        slots = list(self.slots)
        for idx, existing in enumerate(slots):
            if existing.doc_type == slot.doc_type:
                slots[idx] = slot
                break
        else:
            slots.append(slot)
        self.slots = slots

    def drop_slot(self, doc_type: str) -> None:
        self.slots = [s for s in self.slots if s.doc_type != doc_type]


class Dossier(BaseModel):
    """The rental application case file."""

    model_config = ConfigDict(validate_assignment=True)

    id: int
    bid_amount: int = Field(default=0, ge=0)
    start_date: date | None = None
    motivation: str = Field(default="", max_length=MOTIVATION_MAX_LENGTH)
    months_advance: MonthsAdvance = 0
    listing: PropertyReference = PropertyReference()
    parties: list[Party] = []
    is_complete: bool = False
    account_id: int | None = None

    @property
    def has_bid(self) -> bool:
        return self.bid_amount > 0 and self.start_date is not None

    @property
    def primary_tenant(self) -> Party | None:
        for party in self.parties:
            if party.role == PartyRole.PRIMARY_TENANT:
                return party
        return None

    def get_party(self, local_id: str) -> Party | None:
        for party in self.parties:
            if party.local_id == local_id:
                return party
        return None

    def parties_with_role(self, role: PartyRole) -> list[Party]:
        return [p for p in self.parties if p.role == role]


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class BidUpdate(BaseModel):
    bid_amount: int | None = Field(default=None, ge=0)
    start_date: date | None = None
    motivation: str | None = Field(default=None, max_length=MOTIVATION_MAX_LENGTH)
    months_advance: MonthsAdvance | None = None


class PartyUpdate(BaseModel):
    """Form edits for one party. Only fields that were sent are applied."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    postcode: str | None = None
    city: str | None = None
    employment_status: EmploymentStatus | None = None
    income: str | None = None


class AddPartyRequest(BaseModel):
    role: PartyRole
    name: str = ""
    phone: str = ""
    guarantees: str | None = None


class OpenSessionRequest(BaseModel):
    phone_number: str | None = None
    listing: PropertyReference | None = None
