"""Turn a completed donation into stock and supply whatever it can.

The "already processed" guard is deliberately coarse: a donation is skipped
when any match references it, or when *any* inventory row already exists
for its blood type and component. That second condition also skips
legitimate re-stocking once a row exists; it is kept as-is until product
decides how completed donations should be keyed.
"""
import enum
import logging
from dataclasses import dataclass, field

from flask import current_app

from bloodbank.extensions import db
from bloodbank.models.blood_inventory_model import BloodInventory
from bloodbank.models.blood_request_inventory_model import BloodRequestInventory
from bloodbank.models.blood_request_model import BloodRequest
from bloodbank.models.donation_request_model import DonationRequest
from bloodbank.models.enums import (
    BloodRequestStatus, DonationRequestStatus, FulfilledSource, MatchStatus, MatchType, NotificationType
)
from bloodbank.models.request_match_model import RequestMatch
from bloodbank.services.notification_service import queue_notification
from bloodbank.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class IntakeOutcome(str, enum.Enum):
    STOCKED = 'stocked'
    SKIPPED = 'skipped'


@dataclass
class IntakeResult:
    donation_request_id: int
    outcome: IntakeOutcome
    inventory_id: int = None
    fulfilled_request_ids: list = field(default_factory=list)
    remaining_quantity: int = 0

    def to_dict(self):
        return {
            'donation_request_id': self.donation_request_id,
            'outcome': self.outcome.value,
            'inventory_id': self.inventory_id,
            'fulfilled_request_ids': list(self.fulfilled_request_ids),
            'remaining_quantity': self.remaining_quantity,
        }


def already_processed(donation):
    has_matches = db.session.query(
        RequestMatch.query.filter_by(donation_request_id=donation.id).exists()
    ).scalar()
    has_inventory = db.session.query(
        BloodInventory.query.filter_by(
            blood_type_id=donation.blood_type_id,
            blood_component_id=donation.blood_component_id,
        ).exists()
    ).scalar()
    return has_matches or has_inventory


def pending_requests_for(blood_type_id, blood_component_id):
    """Unfulfilled, non-cancelled requests in supply order: emergencies, then oldest."""
    return (
        BloodRequest.query
        .filter(
            BloodRequest.blood_type_id == blood_type_id,
            BloodRequest.blood_component_id == blood_component_id,
            BloodRequest.status != BloodRequestStatus.CANCELLED,
            BloodRequest.fulfilled.is_(False),
        )
        .order_by(BloodRequest.is_emergency.desc(), BloodRequest.created_at.asc(), BloodRequest.id.asc())
        .with_for_update()
        .all()
    )


def process_completed_donation(donation_request_id):
    """Stock one completed donation; commits or rolls back its own transaction."""
    try:
        result = _process(donation_request_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return result


def _process(donation_request_id):
    donation = db.session.get(DonationRequest, donation_request_id, with_for_update=True, populate_existing=True)
    if donation is None or donation.status != DonationRequestStatus.COMPLETED:
        return IntakeResult(donation_request_id, IntakeOutcome.SKIPPED)
    if already_processed(donation):
        logger.debug("DonationRequest %s already processed, skipped", donation_request_id)
        return IntakeResult(donation_request_id, IntakeOutcome.SKIPPED)

    now = utcnow()
    inventory = (
        BloodInventory.query
        .filter_by(blood_type_id=donation.blood_type_id, blood_component_id=donation.blood_component_id)
        .order_by(BloodInventory.id.asc())
        .with_for_update()
        .first()
    )
    if inventory is None:
        inventory = BloodInventory(
            blood_type_id=donation.blood_type_id,
            blood_component_id=donation.blood_component_id,
            quantity=0,
            unit=current_app.config.get('DEFAULT_INVENTORY_UNIT', 'mL'),
            location=current_app.config.get('DEFAULT_INVENTORY_LOCATION', 'Default Location'),
            last_updated=now,
        )
        db.session.add(inventory)
        db.session.flush()
        logger.info(
            "Created BloodInventory %s for blood_type_id=%s, blood_component_id=%s",
            inventory.id, inventory.blood_type_id, inventory.blood_component_id,
        )

    inventory.quantity += donation.quantity
    inventory.last_updated = now
    remaining = donation.quantity

    fulfilled_ids = []
    for blood_request in pending_requests_for(donation.blood_type_id, donation.blood_component_id):
        if remaining < blood_request.quantity:
            continue

        inventory.quantity -= blood_request.quantity
        remaining -= blood_request.quantity
        blood_request.mark_fulfilled(FulfilledSource.DONATION)

        db.session.add(BloodRequestInventory(
            blood_request_id=blood_request.id,
            inventory_id=inventory.id,
            quantity_allocated=blood_request.quantity,
            allocated_at=now,
        ))
        db.session.add(RequestMatch(
            blood_request_id=blood_request.id,
            donation_request_id=donation.id,
            match_status=MatchStatus.COMPLETED,
            scheduled_date=now.date(),
            notes='Fulfilled by completed donation',
            type=MatchType.AUTO,
        ))
        queue_notification(
            blood_request.user_id,
            f"Your blood request #{blood_request.id} has been fulfilled by a completed donation.",
            NotificationType.BLOOD_REQUEST,
        )
        fulfilled_ids.append(blood_request.id)

    logger.info(
        "DonationRequest %s stocked into inventory %s: fulfilled %d request(s), %d unit(s) left over",
        donation.id, inventory.id, len(fulfilled_ids), remaining,
    )
    return IntakeResult(
        donation.id,
        IntakeOutcome.STOCKED,
        inventory_id=inventory.id,
        fulfilled_request_ids=fulfilled_ids,
        remaining_quantity=remaining,
    )
