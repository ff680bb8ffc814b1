"""Capacity tiers for schedule slots.

Tier boundaries are absolute attendee counts. The configurable class
capacity is only the denominator of the displayed ratio ("3/10") and does
not move the boundaries: a studio configured for 20 still shows a class of
10 as high.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class CapacityTier(StrEnum):
    EMPTY = "empty"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class TierThresholds:
    """Inclusive upper bounds of the low and medium tiers."""

    low_max: int = 5
    medium_max: int = 9


TIER_THRESHOLDS = TierThresholds()


def classify(attendee_count: int, capacity: int | None = None, thresholds: TierThresholds = TIER_THRESHOLDS) -> CapacityTier:
    """Map an attendee count to a presentation tier.

    Args:
        attendee_count: Number of attendees booked in the class
        capacity: Configured class capacity. Accepted for call-site symmetry
            with occupancy_label(); it does not affect the tier.
        thresholds: Tier boundaries

    Returns:
        empty for 0, low for 1-5, medium for 6-9, high for 10 and above
    """
    if attendee_count <= 0:
        return CapacityTier.EMPTY
    if attendee_count <= thresholds.low_max:
        return CapacityTier.LOW
    if attendee_count <= thresholds.medium_max:
        return CapacityTier.MEDIUM
    return CapacityTier.HIGH


def occupancy_label(attendee_count: int, capacity: int) -> str:
    """Displayed ratio, e.g. "3/10"."""
    return f"{max(attendee_count, 0)}/{capacity}"


def is_full(attendee_count: int, capacity: int) -> bool:
    """Whether a class has reached the configured capacity."""
    return attendee_count >= capacity
