"""
Room Limits.

Pure functions with deterministic behavior. No I/O.

Checks a room configuration against the limits of its category
(HP Homestay Rules 2025 defaults: at most 6 rooms, 12 beds in total and
6 beds in any one room; at least 1 room).
"""

from __future__ import annotations

from homestay_kernel.domain.rules import RoomLimits
from homestay_kernel.domain.values import RoomConfiguration
from homestay_kernel.exceptions import ValidationError


def room_limit_violations(rooms: RoomConfiguration, limits: RoomLimits) -> list[str]:
    """Human-readable violations; empty when the configuration is acceptable."""
    violations: list[str] = []
    if rooms.total_rooms < limits.min_rooms:
        violations.append(f"at least {limits.min_rooms} room(s) required")
    if rooms.total_rooms > limits.max_rooms:
        violations.append(
            f"{rooms.total_rooms} rooms exceeds the maximum of {limits.max_rooms}"
        )
    if rooms.total_beds > limits.max_beds:
        violations.append(
            f"{rooms.total_beds} beds exceeds the maximum of {limits.max_beds}"
        )
    if rooms.max_beds_in_a_room > limits.max_beds_per_room:
        violations.append(
            f"{rooms.max_beds_in_a_room} beds in one room exceeds the maximum of "
            f"{limits.max_beds_per_room}"
        )
    return violations


def ensure_within_limits(rooms: RoomConfiguration, limits: RoomLimits) -> None:
    """Raise ValidationError naming the first violated limit."""
    violations = room_limit_violations(rooms, limits)
    if violations:
        raise ValidationError("rooms", "; ".join(violations))
