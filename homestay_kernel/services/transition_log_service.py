"""
TransitionLogService -- append and read the transition log.

Responsibility:
    Writes one TransitionLogEntry per committed workflow move, inside the
    caller's transaction, and reads a record's history back in order.

Architecture position:
    Kernel > Services.  Called by the workflow executor and the service
    request router; never commits.

Invariants enforced:
    - Append-only: this service only ever INSERTs.
    - Entries are ordered by a monotonic ``seq`` from SequenceService.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from homestay_kernel.logging_config import get_logger
from homestay_kernel.models.transition_log import TransitionLogEntry
from homestay_kernel.services.sequence_service import SequenceService

logger = get_logger("services.transition_log")


@dataclass(frozen=True)
class TransitionRecord:
    """Read-side view of one log entry."""

    seq: int
    record_id: UUID
    record_type: str
    action: str
    from_status: str | None
    to_status: str | None
    actor_role: str
    actor_id: str | None
    remark: str | None
    override: bool
    occurred_at: datetime
    details: dict[str, Any] | None


class TransitionLogService:
    def __init__(self, session: Session):
        self._session = session
        self._sequences = SequenceService(session)

    def append(
        self,
        *,
        record_id: UUID,
        record_type: str,
        action: str,
        from_status: str | None,
        to_status: str | None,
        actor_role: str,
        occurred_at: datetime,
        actor_id: str | None = None,
        remark: str | None = None,
        override: bool = False,
        details: dict[str, Any] | None = None,
    ) -> TransitionLogEntry:
        entry = TransitionLogEntry(
            seq=self._sequences.next_value(SequenceService.TRANSITION_LOG),
            record_id=record_id,
            record_type=record_type,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor_role=actor_role,
            actor_id=actor_id,
            remark=remark,
            override=override,
            occurred_at=occurred_at,
            details=details,
        )
        self._session.add(entry)
        logger.debug(
            "transition_logged",
            extra={"seq": entry.seq, "record_id": str(record_id), "action": action},
        )
        return entry

    def history(self, record_id: UUID) -> list[TransitionRecord]:
        rows = self._session.execute(
            select(TransitionLogEntry)
            .where(TransitionLogEntry.record_id == record_id)
            .order_by(TransitionLogEntry.seq)
        ).scalars()
        return [
            TransitionRecord(
                seq=r.seq,
                record_id=r.record_id,
                record_type=r.record_type,
                action=r.action,
                from_status=r.from_status,
                to_status=r.to_status,
                actor_role=r.actor_role,
                actor_id=r.actor_id,
                remark=r.remark,
                override=r.override,
                occurred_at=r.occurred_at,
                details=r.details,
            )
            for r in rows
        ]
