"""
Module: homestay_kernel.models.transition_log
Responsibility: Append-only log of every committed workflow move.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py listeners).
    - ``seq`` is allocated from the ``transition_log`` sequence and is
      unique, giving a total order across all records.

Audit relevance:
    Answers "who moved this record from where to where, when, and why":
    timestamp, actor, from/to status, remark, and whether an
    administrative override bypassed the role gate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from homestay_kernel.db.base import Base, UUIDString


class TransitionLogEntry(Base):
    """One committed transition (or record-level action such as discard)."""

    __tablename__ = "transition_log"

    __table_args__ = (
        Index("ix_transition_log_record", "record_id", "seq"),
    )

    seq: Mapped[int] = mapped_column(nullable=False, unique=True)
    record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    record_type: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    actor_role: Mapped[str] = mapped_column(String(40), nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TransitionLogEntry #{self.seq} {self.record_type}:{self.record_id} "
            f"{self.from_status}->{self.to_status} via {self.action}>"
        )
