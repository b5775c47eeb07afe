# This project was developed with assistance from AI tools.
"""Fire-and-forget event delivery to the automation webhook.

``dispatch()`` returns immediately; delivery runs as a background task.
Delivery is at-most-once and best-effort: network errors and non-2xx
responses are logged, never raised, and never retried. When no webhook URL is
configured every dispatch is a logged no-op.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import secrets
import string
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import httpx

from ..core.config import Settings
from ..schemas.document import NewPayload
from ..schemas.dossier import Dossier, Party

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class EventType(str, enum.Enum):
    LOGIN = "login"
    TENANT_DATA = "tenant_data"
    DOCUMENT_UPLOAD = "document_upload"
    MULTIPLE_DOCUMENTS_UPLOAD = "multiple_documents_upload"
    APPLICATION_SUBMIT = "application_submit"


def generate_event_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"evt_{int(time.time() * 1000)}_{suffix}"


def build_envelope(event_type: EventType | str, payload: dict[str, Any] | None = None) -> dict:
    """Wrap a payload in the ``{eventId, eventType, timestamp, ...}`` envelope."""
    return {
        "eventId": generate_event_id(),
        "eventType": EventType(event_type).value,
        "timestamp": datetime.now(UTC).isoformat(),
        **(payload or {}),
    }


class NotificationDispatcher:
    """Posts event envelopes to a single webhook endpoint."""

    def __init__(
        self,
        webhook_url: str | None,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._url = webhook_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        # Track background deliveries so exceptions aren't silently lost
        self._tasks: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def dispatch(self, event_type: EventType | str, payload: dict[str, Any] | None = None) -> None:
        """Schedule delivery of one event and return immediately."""
        if not self.enabled:
            logger.debug("Notification endpoint not configured, %s event dropped", event_type)
            return
        try:
            envelope = build_envelope(event_type, payload)
            task = asyncio.get_running_loop().create_task(
                self._deliver(envelope),
                name=f"notify-{envelope['eventType']}",
            )
        except Exception:
            logger.warning("Could not schedule %s event", event_type, exc_info=True)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, envelope: dict) -> None:
        event_type = envelope["eventType"]
        try:
            if self._client is None:
                self._client = httpx.AsyncClient()
            response = await self._client.post(self._url, json=envelope, timeout=self._timeout)
            if response.is_success:
                logger.info("Delivered %s event %s", event_type, envelope["eventId"])
            else:
                logger.warning(
                    "Failed to deliver %s event %s: HTTP %s",
                    event_type,
                    envelope["eventId"],
                    response.status_code,
                )
        except httpx.HTTPError as exc:
            logger.warning("Failed to deliver %s event: %s", event_type, exc)
        except Exception:
            logger.warning("Unexpected error delivering %s event", event_type, exc_info=True)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


# ---------------------------------------------------------------------------
# Domain events
# ---------------------------------------------------------------------------


def _renamed(filename: str, doc_type: str, index: int | None = None) -> str:
    base, ext = os.path.splitext(filename)
    suffix = f"_{doc_type}" if index is None else f"_{doc_type}_{index + 1}"
    return f"{base}{suffix}{ext}"


def _file_info(payload: NewPayload, doc_type: str, index: int | None = None) -> dict[str, Any]:
    return {
        "fileName": _renamed(payload.filename, doc_type, index),
        "originalFileName": payload.filename,
        "fileType": payload.content_type,
        "fileSize": payload.size,
    }


def _emit(dispatcher, event_type: EventType, payload: dict[str, Any]) -> None:
    """Hand one event to the dispatcher; a dispatcher that raises never fails the caller."""
    try:
        dispatcher.dispatch(event_type, payload)
    except Exception:
        logger.warning("Dispatcher rejected %s event", event_type.value, exc_info=True)


def notify_login(dispatcher, phone_number: str | None, dossier_id: int) -> None:
    _emit(dispatcher, EventType.LOGIN, {"phoneNumber": phone_number, "dossierId": dossier_id})


def notify_party_saved(dispatcher, party: Party) -> None:
    _emit(
        dispatcher,
        EventType.TENANT_DATA,
        {
            "data": {
                "personId": party.durable_id or party.local_id,
                "name": party.name,
                "email": party.email,
                "address": party.address,
                "postcode": party.postcode,
                "city": party.city,
                "income": str(party.income) if party.income is not None else "",
                "workStatus": party.employment_status.value if party.employment_status else None,
                "role": party.role.value,
                "phone": party.phone,
            }
        },
    )


def notify_documents_uploaded(
    dispatcher,
    person_id: int | str,
    doc_type: str,
    payloads: Sequence[NewPayload],
) -> None:
    """One event per batch: single-file uploads and multi-file batches differ in type."""
    if not payloads:
        return
    common = {"personId": person_id, "documentType": doc_type, "status": "received"}
    if len(payloads) == 1:
        _emit(
            dispatcher,
            EventType.DOCUMENT_UPLOAD,
            {**common, **_file_info(payloads[0], doc_type)},
        )
        return
    _emit(
        dispatcher,
        EventType.MULTIPLE_DOCUMENTS_UPLOAD,
        {
            **common,
            "fileCount": len(payloads),
            "files": [_file_info(p, doc_type, i) for i, p in enumerate(payloads)],
        },
    )


def notify_submitted(dispatcher, dossier: Dossier) -> None:
    _emit(
        dispatcher,
        EventType.APPLICATION_SUBMIT,
        {"data": dossier.model_dump(mode="json")},
    )


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_dispatcher: NotificationDispatcher | None = None


def init_notification_dispatcher(cfg: Settings) -> NotificationDispatcher:
    """Initialise the singleton (called once from app lifespan)."""
    global _dispatcher  # noqa: PLW0603
    _dispatcher = NotificationDispatcher(
        cfg.NOTIFICATION_WEBHOOK_URL,
        timeout=cfg.NOTIFICATION_TIMEOUT_SECONDS,
    )
    return _dispatcher


def log_notification_status(cfg: Settings) -> None:
    """Log whether event delivery is active. Call at startup."""
    if cfg.NOTIFICATION_WEBHOOK_URL:
        logger.warning("Intake notifications: ACTIVE")
    else:
        logger.warning("Intake notifications: DISABLED (NOTIFICATION_WEBHOOK_URL not set)")
