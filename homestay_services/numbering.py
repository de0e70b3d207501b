"""
Record numbering -- application and certificate numbers.

Application numbers are allocated at first submission and certificate
numbers at approval, both from per-year counters in ``sequence_counters``
so that numbers are gap-tolerant but never reused:

    HP-HS-2025-KUL-000042     application (district code from the district)
    HP-SR-2025-KUL-000007     service request
    HP-HST-2025-00042         certificate

Certificate expiry is the issue date plus the validity period; an issue
date of 29 February expires on 28 February.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from sqlalchemy.orm import Session

from homestay_kernel.services.sequence_service import SequenceService

_NON_LETTERS = re.compile(r"[^A-Z]")


def district_code(district: str | None) -> str:
    """First three letters of the district, upper-cased; ``GEN`` when unknown."""
    letters = _NON_LETTERS.sub("", (district or "").upper())
    return letters[:3] if letters else "GEN"


def add_years(start: date, years: int) -> date:
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        # 29 February into a non-leap year
        return start.replace(year=start.year + years, day=28)


class RecordNumbering:
    """Allocates numbers inside the caller's transaction."""

    def __init__(self, session: Session):
        self._sequences = SequenceService(session)

    def application_number(self, district: str | None, at: datetime) -> str:
        seq = self._sequences.next_value(f"application_number:{at.year}")
        return f"HP-HS-{at.year}-{district_code(district)}-{seq:06d}"

    def service_request_number(self, district: str | None, at: datetime) -> str:
        seq = self._sequences.next_value(f"service_request_number:{at.year}")
        return f"HP-SR-{at.year}-{district_code(district)}-{seq:06d}"

    def certificate_number(self, at: datetime) -> str:
        seq = self._sequences.next_value(f"certificate_number:{at.year}")
        return f"HP-HST-{at.year}-{seq:05d}"
