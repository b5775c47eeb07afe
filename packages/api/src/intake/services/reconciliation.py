# This project was developed with assistance from AI tools.
"""Document slot reconciliation.

Merges a batch of incoming items (new payloads and/or evidence records that
were already uploaded) into a party's slot for one document type, and decides
whether the slot is single- or multi-file.

Multi-file rule (shared with snapshot hydration): a slot is multi-file when
the requirement declares it, when the batch holds more than one item, or when
the slot already was multi-file. A single-file slot keeps only the most
recent upload.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

from ..schemas.document import (
    DocumentRequirement,
    EvidenceRecord,
    MultiSlot,
    NewPayload,
    SingleSlot,
)
from ..schemas.snapshot import StoredDocument
from .requirements import is_multi_file_type

logger = logging.getLogger(__name__)

# (payload, file_index) -> stored evidence; file_index is None for single-file slots
Uploader = Callable[[NewPayload, int | None], Awaitable[EvidenceRecord]]


class UploadFailedError(Exception):
    """Raised when one file of a batch could not be stored.

    ``uploaded`` lists the files of the same batch that did make it, so the
    caller can carry them over when retrying the remainder.
    """

    def __init__(
        self,
        filename: str,
        index: int,
        uploaded: list[EvidenceRecord],
        reason: str = "",
    ):
        self.filename = filename
        self.index = index
        self.uploaded = uploaded
        self.reason = reason
        message = f"Upload failed for {filename}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


@dataclass
class ReconcileOutcome:
    slot: SingleSlot | MultiSlot | None
    uploaded: list[EvidenceRecord]


def partition(
    items: Iterable[NewPayload | EvidenceRecord],
) -> tuple[list[NewPayload], list[EvidenceRecord]]:
    """Split a batch into new payloads and carried-over evidence, keeping order."""
    new_payloads: list[NewPayload] = []
    carried_over: list[EvidenceRecord] = []
    for item in items:
        if isinstance(item, NewPayload):
            new_payloads.append(item)
        elif isinstance(item, EvidenceRecord):
            carried_over.append(item)
        else:
            raise TypeError(f"Unsupported upload item: {type(item).__name__}")
    return new_payloads, carried_over


def is_multi_file(
    requirement: DocumentRequirement | None,
    existing: SingleSlot | MultiSlot | None,
    batch_size: int,
) -> bool:
    if requirement is not None and requirement.multi_file:
        return True
    if batch_size > 1:
        return True
    return isinstance(existing, MultiSlot)


def build_slot(
    doc_type: str,
    existing: SingleSlot | MultiSlot | None,
    carried_over: Sequence[EvidenceRecord],
    uploaded: Sequence[EvidenceRecord],
    *,
    multi: bool,
) -> SingleSlot | MultiSlot | None:
    """Compute the slot that results from a fully successful batch."""
    if multi:
        return MultiSlot(doc_type=doc_type, evidence=[*carried_over, *uploaded])
    if uploaded:
        return SingleSlot(doc_type=doc_type, evidence=uploaded[-1])
    if carried_over:
        return SingleSlot(doc_type=doc_type, evidence=carried_over[-1])
    return existing


async def reconcile(
    existing: SingleSlot | MultiSlot | None,
    items: Sequence[NewPayload | EvidenceRecord],
    *,
    doc_type: str,
    requirement: DocumentRequirement | None,
    upload: Uploader,
) -> ReconcileOutcome:
    """Upload the batch's new payloads one by one and rebuild the slot.

    Raises UploadFailedError on the first failing payload; the slot is then
    left as it was and the error carries the files already stored.
    """
    new_payloads, carried_over = partition(items)
    multi = is_multi_file(requirement, existing, len(new_payloads) + len(carried_over))

    uploaded: list[EvidenceRecord] = []
    for i, payload in enumerate(new_payloads):
        file_index = len(carried_over) + i if multi else None
        try:
            record = await upload(payload, file_index)
        except Exception as exc:
            logger.warning(
                "Upload %d/%d for %s failed", i + 1, len(new_payloads), doc_type, exc_info=True
            )
            raise UploadFailedError(payload.filename, i, uploaded, str(exc)) from exc
        uploaded.append(record)

    slot = build_slot(doc_type, existing, carried_over, uploaded, multi=multi)
    return ReconcileOutcome(slot=slot, uploaded=uploaded)


def remove_from_slot(
    slot: SingleSlot | MultiSlot,
    index: int | None,
) -> tuple[SingleSlot | MultiSlot | None, list[EvidenceRecord]]:
    """Remove one file (multi) or the whole slot (single, or index None).

    Returns the remaining slot (None when the slot is gone) and the removed
    evidence records. An emptied multi-file slot stays, with status Missing.
    """
    if isinstance(slot, SingleSlot) or index is None:
        return None, slot.files
    if index < 0 or index >= len(slot.evidence):
        raise IndexError(f"No file at position {index} in {slot.doc_type}")
    remaining = [e for i, e in enumerate(slot.evidence) if i != index]
    return MultiSlot(doc_type=slot.doc_type, evidence=remaining), [slot.evidence[index]]


def group_documents(documents: Iterable[StoredDocument]) -> list[SingleSlot | MultiSlot]:
    """Rebuild a party's slots from stored document rows.

    Rows are grouped by type in first-seen order; each group becomes a
    multi-file slot when its type is configured multi-file or it holds more
    than one row.
    """
    grouped: dict[str, list[EvidenceRecord]] = {}
    for doc in documents:
        grouped.setdefault(doc.doc_type, []).append(
            EvidenceRecord(
                id=doc.id,
                filename=doc.filename,
                storage_path=doc.storage_path,
                uploaded_at=doc.uploaded_at,
            )
        )

    slots: list[SingleSlot | MultiSlot] = []
    for doc_type, records in grouped.items():
        if is_multi_file_type(doc_type) or len(records) > 1:
            slots.append(MultiSlot(doc_type=doc_type, evidence=records))
        else:
            slots.append(SingleSlot(doc_type=doc_type, evidence=records[0]))
    return slots
