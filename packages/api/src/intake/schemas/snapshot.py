# This project was developed with assistance from AI tools.
"""Persisted snapshot shapes returned by the relational store.

These mirror the stored rows one-to-one; slot reconstruction (grouping
documents by type, single vs multi) happens in the persistence service.
"""

from datetime import date, datetime
from decimal import Decimal

from intake_db.enums import EmploymentStatus, PartyRole
from pydantic import BaseModel, ConfigDict


class StoredDocument(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doc_type: str
    filename: str
    storage_path: str
    uploaded_at: datetime | None = None


class StoredParty(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: PartyRole
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    postcode: str | None = None
    city: str | None = None
    employment_status: EmploymentStatus | None = None
    gross_monthly_income: Decimal | None = None
    account_id: int | None = None
    guarantees_party_id: int | None = None
    documents: list[StoredDocument] = []


class StoredDossier(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bid_amount: int = 0
    start_date: date | None = None
    motivation: str | None = None
    months_advance: int = 0
    property_address: str | None = None
    property_conditions: dict | None = None
    is_complete: bool = False
    account_id: int | None = None
    parties: list[StoredParty] = []
