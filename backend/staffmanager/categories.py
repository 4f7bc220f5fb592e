"""Activity categories, their day buckets and the hours to days conversion."""

from __future__ import annotations

import enum
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional

import structlog

from .config import settings

logger = structlog.get_logger(__name__)

DAYS_QUANTUM = Decimal("0.001")


class ActivityCategory(str, enum.Enum):
    JOUR_TRAVAILLE = "JOUR_TRAVAILLE"
    HEURE_SUPPLEMENTAIRE = "HEURE_SUPPLEMENTAIRE"
    ASTREINTE = "ASTREINTE"
    FORMATION = "FORMATION"
    INTERCONTRAT = "INTERCONTRAT"
    RTT = "RTT"
    CONGE_PAYE = "CONGE_PAYE"
    CONGE_SANS_SOLDE = "CONGE_SANS_SOLDE"
    MALADIE = "MALADIE"
    ABSENCE_EXCEPTIONNELLE = "ABSENCE_EXCEPTIONNELLE"


class CategoryBucket(str, enum.Enum):
    DECLARED = "declared"
    BILLED = "billed"
    RTT_REDEMPTION = "rtt_redemption"
    ABSENCE = "absence"
    EXTRA_HOURS = "extra_hours"
    ON_CALL = "on_call"


BUCKET_CATEGORIES: Mapping[CategoryBucket, frozenset[ActivityCategory]] = {
    CategoryBucket.DECLARED: frozenset({ActivityCategory.FORMATION, ActivityCategory.INTERCONTRAT}),
    CategoryBucket.BILLED: frozenset({ActivityCategory.JOUR_TRAVAILLE}),
    CategoryBucket.RTT_REDEMPTION: frozenset({ActivityCategory.RTT}),
    CategoryBucket.ABSENCE: frozenset(
        {
            ActivityCategory.CONGE_PAYE,
            ActivityCategory.CONGE_SANS_SOLDE,
            ActivityCategory.MALADIE,
            ActivityCategory.ABSENCE_EXCEPTIONNELLE,
        }
    ),
    CategoryBucket.EXTRA_HOURS: frozenset({ActivityCategory.HEURE_SUPPLEMENTAIRE}),
    CategoryBucket.ON_CALL: frozenset({ActivityCategory.ASTREINTE}),
}

# Only these categories are ever attached to a mission.
MISSION_ELIGIBLE_CATEGORIES: frozenset[ActivityCategory] = frozenset(
    {
        ActivityCategory.JOUR_TRAVAILLE,
        ActivityCategory.HEURE_SUPPLEMENTAIRE,
        ActivityCategory.ASTREINTE,
    }
)


def check_bucket_partition(table: Mapping[CategoryBucket, frozenset[ActivityCategory]]) -> None:
    """Raise ``ValueError`` unless ``table`` partitions every category into exactly one bucket."""
    missing_buckets = set(CategoryBucket) - set(table)
    if missing_buckets:
        raise ValueError(f"Buckets without categories: {sorted(b.value for b in missing_buckets)}")
    seen: dict[ActivityCategory, CategoryBucket] = {}
    for bucket, categories in table.items():
        for category in categories:
            if category in seen:
                raise ValueError(
                    f"{category.value} is assigned to both {seen[category].value} and {bucket.value}"
                )
            seen[category] = bucket
    unassigned = set(ActivityCategory) - set(seen)
    if unassigned:
        raise ValueError(f"Categories without bucket: {sorted(c.value for c in unassigned)}")


check_bucket_partition(BUCKET_CATEGORIES)


def hours_to_days(hours: int, hours_per_day: Optional[int] = None) -> Decimal:
    if hours < 0:
        raise ValueError("hours must not be negative")
    ratio = settings.hours_per_day if hours_per_day is None else hours_per_day
    if ratio <= 0:
        raise ValueError("hours_per_day must be positive")
    days = (Decimal(hours) / Decimal(ratio)).quantize(DAYS_QUANTUM, rounding=ROUND_HALF_UP)
    logger.debug("hours_to_days", hours=hours, days=str(days))
    return days


def sum_days_by_category(activities: Iterable, categories: Iterable[ActivityCategory]) -> Decimal:
    """Sum the hours of the activities in ``categories`` and convert the total to days."""
    wanted = frozenset(categories)
    total_hours = sum(activity.quantity for activity in activities if activity.category in wanted)
    return hours_to_days(total_hours)


def sum_days_by_bucket(activities: Iterable, bucket: CategoryBucket) -> Decimal:
    return sum_days_by_category(activities, BUCKET_CATEGORIES[bucket])
