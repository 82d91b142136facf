# This project was developed with assistance from AI tools.
"""Audit event service.

Writes append-only audit trail entries with a SHA-256 hash chain for tamper
evidence. On PostgreSQL an advisory lock serializes hash computation across
concurrent writers.
"""

import hashlib
import json
import logging

from db import AuditEvent
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Fixed advisory lock key for audit trail serialization.
AUDIT_LOCK_KEY = 900_001


def _compute_hash(event_id: int, event_type: str, event_data: dict | None) -> str:
    """Compute SHA-256 hash of an audit event's key fields."""
    payload = f"{event_id}|{event_type}|{json.dumps(event_data, sort_keys=True, default=str)}"
    return hashlib.sha256(payload.encode()).hexdigest()


async def write_audit_event(
    session: AsyncSession,
    *,
    event_type: str,
    vendor_id: int | None = None,
    checklist_id: int | None = None,
    question_id: int | None = None,
    event_data: dict | None = None,
) -> AuditEvent:
    """Write a single audit event with hash chain linkage.

    The event is flushed, not committed; it lands with the caller's
    transaction.

    Args:
        session: Database session.
        event_type: Event category (e.g. 'checklist_created', 'submission_sent').
        vendor_id: Owning vendor, if any.
        checklist_id: Related checklist, if any.
        question_id: Related question, if any.
        event_data: Arbitrary JSON-serializable event payload.

    Returns:
        The created AuditEvent row (with prev_hash set).
    """
    if session.get_bind().dialect.name == "postgresql":
        # Released automatically when the transaction commits or rolls back.
        await session.execute(text(f"SELECT pg_advisory_xact_lock({AUDIT_LOCK_KEY})"))

    latest_stmt = select(AuditEvent).order_by(AuditEvent.id.desc()).limit(1)
    result = await session.execute(latest_stmt)
    prev_event = result.scalar_one_or_none()

    if prev_event is not None:
        prev_hash = _compute_hash(prev_event.id, prev_event.event_type, prev_event.event_data)
    else:
        prev_hash = "genesis"

    audit = AuditEvent(
        event_type=event_type,
        vendor_id=vendor_id,
        checklist_id=checklist_id,
        question_id=question_id,
        event_data=event_data,
        prev_hash=prev_hash,
    )
    session.add(audit)
    await session.flush()
    return audit


async def verify_audit_chain(session: AsyncSession) -> dict:
    """Verify the integrity of the audit event hash chain.

    Returns:
        {"status": "OK", "events_checked": N} on success, or
        {"status": "TAMPERED", "first_break_id": id, "events_checked": N}
        if a mismatch is found.
    """
    stmt = select(AuditEvent).order_by(AuditEvent.id.asc())
    result = await session.execute(stmt)
    events = list(result.scalars().all())

    for i, event in enumerate(events):
        if i == 0:
            expected = "genesis"
        else:
            prev = events[i - 1]
            expected = _compute_hash(prev.id, prev.event_type, prev.event_data)

        if event.prev_hash != expected:
            logger.warning("Audit chain broken at event %s", event.id)
            return {
                "status": "TAMPERED",
                "first_break_id": event.id,
                "events_checked": i + 1,
            }

    return {"status": "OK", "events_checked": len(events)}


async def get_audit_chain_length(session: AsyncSession) -> int:
    """Return the total number of audit events."""
    result = await session.execute(select(func.count(AuditEvent.id)))
    return result.scalar_one()


async def get_events_for_checklist(
    session: AsyncSession,
    vendor_id: int,
    checklist_id: int,
) -> list[AuditEvent]:
    """Return the audit trail for one checklist, oldest first."""
    stmt = (
        select(AuditEvent)
        .where(
            AuditEvent.vendor_id == vendor_id,
            AuditEvent.checklist_id == checklist_id,
        )
        .order_by(AuditEvent.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
