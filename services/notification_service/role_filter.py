"""
Role-based visibility for notifications.
Pure functions over record sequences; the same input always gives the same view.
"""
from typing import Iterable, List, Optional, Sequence, Set

from shared.models import Audience, NotificationRecord, NotificationType, UserRole

# Vendor-side outcomes that mean a booking request has been handled
RESOLUTION_TYPES = {
    NotificationType.BOOKING_CONFIRMED.value,
    NotificationType.BOOKING_CANCELLED.value,
}


def is_visible(record: NotificationRecord, role: Optional[UserRole]) -> bool:
    """A record is visible to a role when it is a broadcast or addressed to that role."""
    if role is None:
        return False
    return record.audience == Audience.BROADCAST or record.audience == role.audience


def filter_by_role(records: Iterable[NotificationRecord], role: Optional[UserRole]) -> List[NotificationRecord]:
    if role is None:
        return []
    return [record for record in records if is_visible(record, role)]


def _resolved_booking_ids(source: Iterable[NotificationRecord]) -> Set[str]:
    resolved = set()
    for record in source:
        if (
            record.type in RESOLUTION_TYPES
            and record.audience == Audience.VENDOR
            and record.booking_id
        ):
            resolved.add(record.booking_id)
    return resolved


def suppress_processed(
    records: Iterable[NotificationRecord],
    role: Optional[UserRole],
    source: Optional[Sequence[NotificationRecord]] = None,
) -> List[NotificationRecord]:
    """
    Hide review-required booking requests the vendor has already handled.

    A requires-review booking_created record is dropped when the source holds a
    vendor-audience confirmed/cancelled record for the same booking. Customers
    see everything that passed the role filter.

    Args:
        records: Records to prune
        role: Viewer role
        source: Records to look for resolutions in (defaults to records)
    """
    records = list(records)
    if role is not UserRole.VENDOR:
        return records
    resolved = _resolved_booking_ids(records if source is None else source)
    if not resolved:
        return records
    return [
        record for record in records
        if not (record.requires_review and record.booking_id in resolved)
    ]


def apply_role_view(records: Sequence[NotificationRecord], role: Optional[UserRole]) -> List[NotificationRecord]:
    """Role filter plus suppression, both evaluated against the same unfiltered source."""
    return suppress_processed(filter_by_role(records, role), role, source=records)
