# This project was developed with assistance from AI tools.
"""Attaching evidence files to a party's document slots.

Each new file is stored as a blob under a key no other evidence uses, then
recorded as a metadata row. If the row cannot be written the blob is removed
again, so no unreferenced blobs are left behind and the files already in the
slot stay intact. Files a batch replaces are removed only once it succeeded.
"""

import logging
from collections.abc import Collection, Iterable, Sequence

from ..schemas.document import (
    DocumentRequirement,
    EvidenceRecord,
    MultiSlot,
    NewPayload,
    SingleSlot,
)
from ..schemas.dossier import Dossier, Party
from .notifications import notify_documents_uploaded
from .reconciliation import ReconcileOutcome, partition, reconcile, remove_from_slot
from .requirements import find_requirement
from .storage import StorageService
from .validation import UploadValidationError, validate_file_count, validate_payloads

logger = logging.getLogger(__name__)


class SlotNotFoundError(LookupError):
    def __init__(self, doc_type: str, index: int | None = None):
        self.doc_type = doc_type
        self.index = index
        detail = f"No {doc_type} document" if index is None else f"No {doc_type} file {index}"
        super().__init__(detail)


def owner_phone(dossier: Dossier, party: Party) -> str:
    """Phone number whose folder holds the dossier's files (the main tenant's)."""
    primary = dossier.primary_tenant
    if primary is not None and primary.phone.strip():
        return primary.phone
    return party.phone


async def _discard(store, storage, record: EvidenceRecord) -> None:
    """Best-effort removal of an evidence record's blob and metadata row."""
    try:
        await storage.delete_blob(record.storage_path)
    except Exception:
        logger.warning("Could not delete blob for evidence %s", record.id, exc_info=True)
    if isinstance(record.id, int):
        try:
            await store.delete_document_metadata(record.id)
        except Exception:
            logger.warning("Could not delete metadata row %s", record.id, exc_info=True)


async def discard_evidence(records: Iterable[EvidenceRecord], *, store, storage) -> None:
    """Remove stored files nothing refers to any more (removed parties, dropped retries)."""
    for record in records:
        await _discard(store, storage, record)


def check_batch(
    dossier: Dossier,
    party: Party,
    doc_type: str,
    new_payloads: Sequence[NewPayload],
    carried_over: Sequence[EvidenceRecord],
) -> DocumentRequirement:
    """Reject a batch before anything is stored or materialized.

    Returns the requirement the batch is for.
    """
    if not new_payloads and not carried_over:
        raise UploadValidationError("No files were sent")
    requirement = find_requirement(party.employment_status, party.role, doc_type)
    if requirement is None:
        if party.employment_status is None:
            raise UploadValidationError("Choose an employment status before uploading documents")
        raise UploadValidationError(f"{doc_type} is not one of this party's documents")
    validate_payloads(new_payloads)
    validate_file_count(requirement, len(carried_over), len(new_payloads))
    if new_payloads and not owner_phone(dossier, party).strip("+ "):
        raise UploadValidationError("Fill in the tenant's phone number before uploading documents")
    return requirement


async def attach_documents(
    dossier: Dossier,
    party: Party,
    doc_type: str,
    items: Sequence[NewPayload | EvidenceRecord],
    *,
    store,
    storage: StorageService,
    dispatcher,
    requirement: DocumentRequirement | None = None,
    reserved_paths: Collection[str] = (),
) -> ReconcileOutcome:
    """Validate, upload and reconcile one batch for a materialized party.

    The whole batch is rejected before any upload when a file has the wrong
    type or size, or when the slot would hold more files than allowed. A
    caller that already ran check_batch passes its ``requirement``.
    ``reserved_paths`` are keys held by stored files outside the slot, which
    new files must not overwrite either. Evidence that was in the slot but
    is not carried over is removed from storage afterwards.
    """
    if party.durable_id is None:
        raise ValueError(f"Party {party.local_id} must be materialized before uploading")

    new_payloads, carried_over = partition(items)
    if requirement is None:
        requirement = check_batch(dossier, party, doc_type, new_payloads, carried_over)
    phone = owner_phone(dossier, party)
    existing = party.get_slot(doc_type)

    taken_paths = {e.storage_path for e in carried_over}
    taken_paths.update(e.storage_path for e in (existing.files if existing else []))
    taken_paths.update(reserved_paths)

    def free_key(payload: NewPayload, file_index: int | None) -> str:
        revision = 0
        while True:
            key = storage.build_object_key(
                phone,
                party.role,
                doc_type,
                payload.filename,
                file_index,
                party_id=party.durable_id,
                revision=revision,
            )
            if key not in taken_paths:
                return key
            # Numbering may have gaps after removals
            if file_index is None:
                revision += 1
            else:
                file_index += 1

    async def upload(payload: NewPayload, file_index: int | None) -> EvidenceRecord:
        key = free_key(payload, file_index)
        taken_paths.add(key)
        await storage.upload_blob(key, payload.data, payload.content_type)
        try:
            doc = await store.insert_document_metadata(
                party.durable_id,
                doc_type=doc_type,
                filename=payload.filename,
                storage_path=key,
                phone_number=phone,
            )
        except Exception:
            logger.warning("Metadata insert failed for %s, removing blob", doc_type)
            try:
                await storage.delete_blob(key)
            except Exception:
                logger.warning("Could not remove blob after failed insert", exc_info=True)
            raise
        return EvidenceRecord(
            id=doc.id,
            filename=doc.filename,
            storage_path=doc.storage_path,
            uploaded_at=doc.uploaded_at,
        )

    outcome = await reconcile(
        existing,
        items,
        doc_type=doc_type,
        requirement=requirement,
        upload=upload,
    )
    if outcome.slot is not None:
        party.put_slot(outcome.slot)

    if existing is not None and outcome.slot is not None:
        kept_ids = {e.id for e in outcome.slot.files}
        await discard_evidence(
            [r for r in existing.files if r.id not in kept_ids], store=store, storage=storage
        )

    logger.info(
        "Party %s: %d file(s) stored for %s (%d carried over)",
        party.durable_id,
        len(outcome.uploaded),
        doc_type,
        len(carried_over),
    )
    notify_documents_uploaded(dispatcher, party.durable_id, doc_type, new_payloads)
    return outcome


async def remove_evidence(
    party: Party,
    doc_type: str,
    index: int | None = None,
    *,
    store,
    storage: StorageService,
) -> SingleSlot | MultiSlot | None:
    """Remove one file (multi-file slot) or the whole slot and its stored files.

    Returns the remaining slot, or None when the slot is gone.
    """
    slot = party.get_slot(doc_type)
    if slot is None:
        raise SlotNotFoundError(doc_type)
    try:
        remaining, removed = remove_from_slot(slot, index)
    except IndexError as exc:
        raise SlotNotFoundError(doc_type, index) from exc

    for record in removed:
        await _discard(store, storage, record)

    if remaining is None:
        party.drop_slot(doc_type)
    else:
        party.put_slot(remaining)
    logger.info("Party %s: removed %d file(s) from %s", party.durable_id, len(removed), doc_type)
    return remaining
