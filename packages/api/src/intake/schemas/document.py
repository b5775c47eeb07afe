# This project was developed with assistance from AI tools.
"""Document requirement, evidence and slot schemas.

A slot is a tagged variant: ``SingleSlot`` holds exactly one evidence record,
``MultiSlot`` an ordered list. Status is always derived from the evidence.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Literal

from intake_db.enums import DocumentStatus
from pydantic import BaseModel, Field, computed_field


class DocumentRequirement(BaseModel):
    """One document a party must (or may) provide."""

    doc_type: str
    label: str
    description: str = ""
    required: bool = True
    multi_file: bool = False
    min_files: int = 1
    max_files: int = 1


class EvidenceRecord(BaseModel):
    """An already-uploaded file."""

    id: int | str
    filename: str
    storage_path: str
    uploaded_at: datetime | None = None


@dataclass
class NewPayload:
    """A file that has not been uploaded yet."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class SingleSlot(BaseModel):
    kind: Literal["single"] = "single"
    doc_type: str
    evidence: EvidenceRecord

    @property
    def files(self) -> list[EvidenceRecord]:
        return [self.evidence]

    @computed_field
    @property
    def status(self) -> DocumentStatus:
        return DocumentStatus.RECEIVED


class MultiSlot(BaseModel):
    kind: Literal["multi"] = "multi"
    doc_type: str
    evidence: list[EvidenceRecord] = []

    @property
    def files(self) -> list[EvidenceRecord]:
        return list(self.evidence)

    @computed_field
    @property
    def status(self) -> DocumentStatus:
        return DocumentStatus.RECEIVED if self.evidence else DocumentStatus.MISSING


DocumentSlot = Annotated[SingleSlot | MultiSlot, Field(discriminator="kind")]


class UploadResult(BaseModel):
    """Response after attaching files to a slot."""

    party_local_id: str
    durable_id: int | None = None
    slot: DocumentSlot
    uploaded: list[EvidenceRecord]
