# This project was developed with assistance from AI tools.
"""Tests for the intake session and the session registry."""

from datetime import date

import pytest
from factories import FailingDispatcher, FakeCrm, FakeStorage, make_payload
from intake_db.enums import DocumentationStatus, EmploymentStatus, PartyRole

from intake.schemas.dossier import AddPartyRequest, BidUpdate, OpenSessionRequest, PartyUpdate
from intake.services.intake import (
    DossierNotFoundError,
    IntakeSession,
    SessionRegistry,
    SubmissionError,
)
from intake.services.notifications import EventType
from intake.services.persistence import PersistenceError
from intake.services.reconciliation import UploadFailedError
from intake.services.roster import MaterializeError
from intake.services.validation import IntakeValidationError, UploadValidationError

PHONE = "+31612345678"


async def _open(store, crm, storage, dispatcher, scheduler, phone=PHONE):
    return await IntakeSession.open(
        42,
        store=store,
        crm=crm,
        storage=storage,
        dispatcher=dispatcher,
        phone_number=phone,
        scheduler=scheduler,
    )


def _fill_primary(session, status=EmploymentStatus.EMPLOYEE):
    session.update_party(
        session.dossier.parties[0].local_id,
        PartyUpdate(name="Jan de Vries", email="jan@example.com", employment_status=status),
    )
    return session.dossier.parties[0]


# ---------------------------------------------------------------------------
# Opening a session
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_open_prefills_phone_and_announces_login(store, storage, dispatcher, scheduler):
    crm = FakeCrm(accounts={PHONE: 7})
    session = await _open(store, crm, storage, dispatcher, scheduler)

    primary = session.dossier.primary_tenant
    assert primary.phone == PHONE
    assert session.dossier.account_id == 7
    assert primary.account_id == 7
    assert session.reports == {}
    [login] = dispatcher.of_type(EventType.LOGIN)
    assert login == {"phoneNumber": PHONE, "dossierId": 42}
    # Opening never writes
    assert store.calls == [("load_snapshot", 42)]


@pytest.mark.asyncio
async def test_crm_outage_does_not_block_open(store, crm, storage, dispatcher, scheduler):
    crm.fail = True
    session = await _open(store, crm, storage, dispatcher, scheduler)
    assert session.dossier.account_id is None
    assert len(dispatcher.of_type(EventType.LOGIN)) == 1


@pytest.mark.asyncio
async def test_reopen_reports_materialized_parties(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session)
    await session.materialize(primary.local_id)

    reopened = await _open(store, crm, storage, dispatcher, scheduler)
    [local_id] = reopened.reports
    assert local_id == f"p{primary.durable_id}"


# ---------------------------------------------------------------------------
# Form edits
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_party_normalizes_and_schedules_save(
    store, crm, storage, dispatcher, scheduler
):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    local_id = session.dossier.parties[0].local_id
    party = session.update_party(
        local_id, PartyUpdate(email=" Jan@Example.COM ", income="€ 3,500")
    )
    assert party.email == "jan@example.com"
    assert str(party.income) == "3500.00"
    assert session.reports[local_id].form_percent == 60
    assert session.persistence.save_pending is True


@pytest.mark.asyncio
async def test_invalid_field_rejects_whole_update(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    local_id = session.dossier.parties[0].local_id
    with pytest.raises(IntakeValidationError, match="email"):
        session.update_party(local_id, PartyUpdate(name="Jan", email="not-an-email"))
    assert session.dossier.parties[0].name == ""
    assert session.persistence.save_pending is False


@pytest.mark.asyncio
async def test_income_can_be_cleared(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    local_id = session.dossier.parties[0].local_id
    session.update_party(local_id, PartyUpdate(income="2500"))
    session.update_party(local_id, PartyUpdate(income=None, name=None))
    assert session.dossier.parties[0].income is None


@pytest.mark.asyncio
async def test_update_bid(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    session.update_bid(BidUpdate(bid_amount=1600, start_date=date(2026, 12, 1), months_advance=2))
    assert session.dossier.has_bid is True
    assert session.progress().percent == 30

    session.update_bid(BidUpdate(bid_amount=None, start_date=None))
    assert session.dossier.bid_amount == 1600
    assert session.dossier.start_date is None
    assert session.persistence.save_pending is True


@pytest.mark.asyncio
async def test_requirements_follow_role_and_status(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    guarantor = await session.add_party(AddPartyRequest(role=PartyRole.GUARANTOR))
    session.update_party(
        guarantor.local_id, PartyUpdate(employment_status=EmploymentStatus.RETIRED)
    )
    doc_types = [r.doc_type for r in session.requirements(guarantor.local_id)]
    assert doc_types[:3] == ["id_document", "pension_proof", "bank_statement"]
    assert "landlord_reference" not in doc_types


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_add_party_links_crm_account(store, storage, dispatcher, scheduler):
    crm = FakeCrm(accounts={PHONE: 7})
    session = await _open(store, crm, storage, dispatcher, scheduler)
    co_tenant = await session.add_party(
        AddPartyRequest(role=PartyRole.CO_TENANT, name="Eva Jansen", phone="0687654321")
    )
    assert co_tenant.account_id == 900
    assert crm.links[7][0]["role"] == "co_tenant"
    assert session.persistence.save_pending is True


@pytest.mark.asyncio
async def test_removed_materialized_party_is_deleted_on_save(
    store, crm, storage, dispatcher, scheduler
):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    co_tenant = await session.add_party(
        AddPartyRequest(role=PartyRole.CO_TENANT, name="Eva Jansen", phone="0687654321")
    )
    session.update_party(co_tenant.local_id, PartyUpdate(email="eva@example.com"))
    await session.materialize(co_tenant.local_id)
    durable_id = co_tenant.durable_id

    await session.remove_party(co_tenant.local_id)
    assert co_tenant.local_id not in session.reports
    assert await session.persistence.flush() is True
    assert ("delete_party", durable_id) in store.calls
    assert durable_id not in store.parties


@pytest.mark.asyncio
async def test_removing_party_discards_its_files(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    co_tenant = await session.add_party(
        AddPartyRequest(role=PartyRole.CO_TENANT, name="Eva Jansen", phone="0687654321")
    )
    session.update_party(
        co_tenant.local_id,
        PartyUpdate(email="eva@example.com", employment_status=EmploymentStatus.EMPLOYEE),
    )
    await session.upload(co_tenant.local_id, "id_document", [make_payload()])
    storage.fail_on.add(b"feb")
    with pytest.raises(UploadFailedError):
        await session.upload(
            co_tenant.local_id,
            "payslips",
            [make_payload("jan.pdf", data=b"jan"), make_payload("feb.pdf", data=b"feb")],
        )
    assert len(storage.blobs) == 2

    await session.remove_party(co_tenant.local_id)

    assert storage.blobs == {}
    assert store.documents == {}


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_first_upload_materializes_party(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session)

    await session.upload(primary.local_id, "id_document", [make_payload()])

    assert primary.durable_id is not None
    writes = [c[0] for c in store.calls if c[0] != "load_snapshot"]
    assert writes == ["upsert_dossier", "upsert_party", "insert_document_metadata"]
    assert session.reports[primary.local_id].doc_percent == 33


@pytest.mark.asyncio
async def test_upload_for_incomplete_party_is_rejected(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    local_id = session.dossier.parties[0].local_id
    session.update_party(local_id, PartyUpdate(employment_status=EmploymentStatus.EMPLOYEE))
    with pytest.raises(MaterializeError) as exc_info:
        await session.upload(local_id, "id_document", [make_payload()])
    assert exc_info.value.missing == ["name", "email"]
    assert storage.uploads == []
    assert session.dossier.parties[0].durable_id is None


@pytest.mark.asyncio
async def test_invalid_batch_is_rejected_before_materializing(
    store, crm, storage, dispatcher, scheduler
):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session)
    with pytest.raises(UploadValidationError):
        await session.upload(
            primary.local_id, "id_document", [make_payload("a.exe", "application/x-msdownload")]
        )
    assert primary.durable_id is None


@pytest.mark.asyncio
async def test_documentation_status_follows_completeness(
    store, storage, dispatcher, scheduler
):
    crm = FakeCrm(accounts={PHONE: 7})
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session, EmploymentStatus.RETIRED)

    await session.upload(primary.local_id, "id_document", [make_payload()])
    assert crm.statuses[7] == DocumentationStatus.PENDING

    await session.upload(primary.local_id, "pension_proof", [make_payload()])
    await session.upload(primary.local_id, "bank_statement", [make_payload()])
    assert crm.statuses[7] == DocumentationStatus.COMPLETE
    assert session.progress().parties[primary.local_id].doc_percent == 100

    await session.remove_evidence(primary.local_id, "bank_statement")
    assert crm.statuses[7] == DocumentationStatus.PENDING


@pytest.mark.asyncio
async def test_retry_carries_over_files_from_failed_batch(store, crm, dispatcher, scheduler):
    storage = FakeStorage(fail_on={b"feb"})
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session)
    batch = [
        make_payload("jan.pdf", data=b"jan"),
        make_payload("feb.pdf", data=b"feb"),
        make_payload("mar.pdf", data=b"mar"),
    ]
    with pytest.raises(UploadFailedError) as exc_info:
        await session.upload(primary.local_id, "payslips", batch)
    [jan] = exc_info.value.uploaded
    assert primary.get_slot("payslips") is None

    storage.fail_on.clear()
    outcome = await session.upload(
        primary.local_id, "payslips", batch[1:], carried_over_ids=[str(jan.id)]
    )
    assert [e.filename for e in outcome.slot.evidence] == ["jan.pdf", "feb.pdf", "mar.pdf"]
    assert [e.storage_path for e in outcome.slot.evidence] == [
        "31612345678/payslips_1.pdf",
        "31612345678/payslips_2.pdf",
        "31612345678/payslips_3.pdf",
    ]
    [event] = dispatcher.of_type(EventType.MULTIPLE_DOCUMENTS_UPLOAD)
    assert event["fileCount"] == 2


@pytest.mark.asyncio
async def test_unknown_carried_over_id_is_rejected(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session)
    with pytest.raises(UploadValidationError, match="Unknown"):
        await session.upload(primary.local_id, "payslips", [], carried_over_ids=["999"])


@pytest.mark.asyncio
async def test_retry_without_carry_over_discards_failed_batch_files(
    store, crm, dispatcher, scheduler
):
    storage = FakeStorage(fail_on={b"feb"})
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session)
    with pytest.raises(UploadFailedError) as exc_info:
        await session.upload(
            primary.local_id,
            "payslips",
            [make_payload("jan.pdf", data=b"jan"), make_payload("feb.pdf", data=b"feb")],
        )
    [jan] = exc_info.value.uploaded

    storage.fail_on.clear()
    outcome = await session.upload(
        primary.local_id,
        "payslips",
        [make_payload("jan2.pdf", data=b"jan2"), make_payload("feb.pdf", data=b"feb")],
    )
    paths = [e.storage_path for e in outcome.slot.evidence]
    assert jan.storage_path not in paths
    assert jan.id not in store.documents
    assert set(storage.blobs) == set(paths)


@pytest.mark.asyncio
async def test_upload_before_choosing_status_is_rejected(
    store, crm, storage, dispatcher, scheduler
):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session, status=None)
    with pytest.raises(UploadValidationError, match="employment status"):
        await session.upload(primary.local_id, "id_document", [make_payload()])
    assert primary.durable_id is None


# ---------------------------------------------------------------------------
# Notification failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_operations_succeed_when_dispatcher_raises(store, crm, storage, scheduler):
    dispatcher = FailingDispatcher()
    session = await _open(store, crm, storage, dispatcher, scheduler)
    primary = _fill_primary(session)

    outcome = await session.upload(primary.local_id, "id_document", [make_payload()])
    assert outcome.slot is not None
    assert await session.persistence.save_now() is True

    session.update_bid(BidUpdate(bid_amount=1500, start_date=date(2026, 12, 1)))
    dossier = await session.submit()
    assert store.dossiers[42]["bid_amount"] == 1500
    assert dossier.id == 42
    kinds = {kind for kind, _payload in dispatcher.events}
    assert {EventType.LOGIN, EventType.DOCUMENT_UPLOAD, EventType.APPLICATION_SUBMIT} <= kinds


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submit_requires_bid(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    with pytest.raises(SubmissionError):
        await session.submit()
    assert dispatcher.of_type(EventType.APPLICATION_SUBMIT) == []


@pytest.mark.asyncio
async def test_submit_saves_and_notifies(store, storage, dispatcher, scheduler):
    crm = FakeCrm(accounts={PHONE: 7})
    session = await _open(store, crm, storage, dispatcher, scheduler)
    _fill_primary(session)
    session.update_bid(BidUpdate(bid_amount=1500, start_date=date(2026, 12, 1)))

    dossier = await session.submit()

    assert dossier.is_complete is False
    assert store.dossiers[42]["bid_amount"] == 1500
    assert session.persistence.save_pending is False
    assert crm.statuses[7] == DocumentationStatus.COMPLETE
    [submitted] = dispatcher.of_type(EventType.APPLICATION_SUBMIT)
    assert submitted["data"]["id"] == 42


@pytest.mark.asyncio
async def test_submit_fails_when_save_fails(store, crm, storage, dispatcher, scheduler):
    session = await _open(store, crm, storage, dispatcher, scheduler)
    session.update_bid(BidUpdate(bid_amount=1500, start_date=date(2026, 12, 1)))
    store.fail_saves = True
    with pytest.raises(PersistenceError):
        await session.submit()
    assert dispatcher.of_type(EventType.APPLICATION_SUBMIT) == []


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def _registry(store, crm, storage, dispatcher, scheduler):
    return SessionRegistry(
        store=store, crm=crm, storage=storage, dispatcher=dispatcher, scheduler=scheduler
    )


@pytest.mark.asyncio
async def test_registry_reuses_open_session(store, crm, storage, dispatcher, scheduler):
    registry = _registry(store, crm, storage, dispatcher, scheduler)
    first = await registry.open(42, OpenSessionRequest(phone_number=PHONE))
    second = await registry.open(42, OpenSessionRequest(phone_number=PHONE))
    assert first is second
    assert registry.get(42) is first
    assert len(dispatcher.of_type(EventType.LOGIN)) == 2
    assert store.calls.count(("load_snapshot", 42)) == 1


@pytest.mark.asyncio
async def test_registry_get_unknown_dossier(store, crm, storage, dispatcher, scheduler):
    registry = _registry(store, crm, storage, dispatcher, scheduler)
    with pytest.raises(DossierNotFoundError):
        registry.get(7)


@pytest.mark.asyncio
async def test_close_all_flushes_pending_edits(store, crm, storage, dispatcher, scheduler):
    registry = _registry(store, crm, storage, dispatcher, scheduler)
    session = await registry.open(42)
    session.update_bid(BidUpdate(bid_amount=1500))

    await registry.close_all()

    assert store.dossiers[42]["bid_amount"] == 1500
    with pytest.raises(DossierNotFoundError):
        registry.get(42)
