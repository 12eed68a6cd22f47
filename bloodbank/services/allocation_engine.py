"""Fulfil one blood request from stock, or line up donors when stock is short.

``attempt_fulfillment`` is the only entry point. The status-change endpoint
calls it directly and the reconciliation sweep calls it for every eligible
request, so both triggers share one transactional path:

* the request and candidate inventory rows are read with ``FOR UPDATE``;
* both tables carry a ``version_id`` column, so a writer that lost a race
  gets ``StaleDataError`` on flush instead of applying a stale decrement;
* the loser rolls back, re-reads and tries again (bounded), otherwise the
  request is left for the next sweep.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from bloodbank.exceptions import InventoryInvariantError
from bloodbank.extensions import db
from bloodbank.models.blood_inventory_model import BloodInventory
from bloodbank.models.blood_request_inventory_model import BloodRequestInventory
from bloodbank.models.blood_request_model import BloodRequest
from bloodbank.models.donation_request_model import DonationRequest
from bloodbank.models.enums import (
    DonationRequestStatus, FulfilledSource, MatchStatus, MatchType, NotificationType
)
from bloodbank.models.request_match_model import RequestMatch
from bloodbank.services.location_scorer import select_best_inventory
from bloodbank.services.notification_service import queue_notification
from bloodbank.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class FulfillmentOutcome(str, enum.Enum):
    ALLOCATED = 'allocated'
    DONORS_MATCHED = 'donors_matched'
    NO_MATCH = 'no_match'
    SKIPPED = 'skipped'
    CONFLICT = 'conflict'


@dataclass
class FulfillmentResult:
    blood_request_id: int
    outcome: FulfillmentOutcome
    inventory_id: int = None
    match_ids: list = field(default_factory=list)

    def to_dict(self):
        return {
            'blood_request_id': self.blood_request_id,
            'outcome': self.outcome.value,
            'inventory_id': self.inventory_id,
            'match_ids': list(self.match_ids),
        }


def attempt_fulfillment(blood_request_id, allocated_by=None):
    """Try to satisfy one blood request; commits or rolls back its own transaction."""
    retries = current_app.config.get('FULFILLMENT_CONFLICT_RETRIES', 1)
    attempt = 0
    while True:
        try:
            result = _fulfill(blood_request_id, allocated_by)
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            attempt += 1
            if attempt > retries:
                logger.warning(
                    "BloodRequest %s lost %d concurrent update(s), left for the next sweep",
                    blood_request_id, attempt,
                )
                return FulfillmentResult(blood_request_id, FulfillmentOutcome.CONFLICT)
            logger.info("BloodRequest %s hit a concurrent update, retrying on fresh state", blood_request_id)
            continue
        except Exception:
            db.session.rollback()
            raise

        if result.outcome is FulfillmentOutcome.ALLOCATED:
            logger.info("BloodRequest %s fulfilled from inventory %s", blood_request_id, result.inventory_id)
        return result


def _fulfill(blood_request_id, allocated_by):
    blood_request = db.session.get(
        BloodRequest, blood_request_id, with_for_update=True, populate_existing=True
    )
    if blood_request is None:
        logger.warning("BloodRequest %s not found, nothing to fulfil", blood_request_id)
        return FulfillmentResult(blood_request_id, FulfillmentOutcome.SKIPPED)
    if not blood_request.is_eligible:
        logger.debug(
            "BloodRequest %s not eligible (status=%s, fulfilled=%s)",
            blood_request_id, blood_request.status, blood_request.fulfilled,
        )
        return FulfillmentResult(blood_request_id, FulfillmentOutcome.SKIPPED)

    candidates = (
        BloodInventory.query
        .filter(
            BloodInventory.blood_type_id == blood_request.blood_type_id,
            BloodInventory.blood_component_id == blood_request.blood_component_id,
            BloodInventory.quantity >= blood_request.quantity,
        )
        .order_by(BloodInventory.last_updated.asc(), BloodInventory.id.asc())
        .with_for_update()
        .populate_existing()
        .yield_per(current_app.config.get('INVENTORY_SCAN_BATCH_SIZE', 100))
    )
    inventory = select_best_inventory(blood_request.location, candidates)

    if inventory is None:
        return match_donors(blood_request)
    return allocate_from_inventory(blood_request, inventory, allocated_by)


def allocate_from_inventory(blood_request, inventory, allocated_by=None):
    """Move ``blood_request.quantity`` units out of ``inventory`` onto the request."""
    if inventory.quantity - blood_request.quantity < 0:
        raise InventoryInvariantError(inventory.id, inventory.quantity, blood_request.quantity)

    now = utcnow()
    inventory.quantity -= blood_request.quantity
    inventory.last_updated = now
    blood_request.mark_fulfilled(FulfilledSource.INVENTORY)

    db.session.add(BloodRequestInventory(
        blood_request_id=blood_request.id,
        inventory_id=inventory.id,
        quantity_allocated=blood_request.quantity,
        allocated_at=now,
        allocated_by=allocated_by,
    ))
    queue_notification(
        blood_request.user_id,
        f"Your blood request #{blood_request.id} has been fulfilled from inventory "
        f"({blood_request.quantity} {inventory.unit}).",
        NotificationType.BLOOD_REQUEST,
    )
    return FulfillmentResult(blood_request.id, FulfillmentOutcome.ALLOCATED, inventory_id=inventory.id)


def match_donors(blood_request):
    """Pair an unsupplied request with every confirmed donation of the same blood.

    A pair that already has a Pending match is left alone, so repeated sweeps
    add nothing. The request stays unfulfilled until a donation completes.
    """
    donations = (
        DonationRequest.query
        .filter(
            DonationRequest.blood_type_id == blood_request.blood_type_id,
            DonationRequest.blood_component_id == blood_request.blood_component_id,
            DonationRequest.status == DonationRequestStatus.CONFIRMED,
        )
        .order_by(DonationRequest.id.asc())
        .all()
    )
    if not donations:
        logger.info(
            "No match found for BloodRequest %s: no inventory and no confirmed donations "
            "(blood_type_id=%s, blood_component_id=%s)",
            blood_request.id, blood_request.blood_type_id, blood_request.blood_component_id,
        )
        return FulfillmentResult(blood_request.id, FulfillmentOutcome.NO_MATCH)

    offset = current_app.config.get('MATCH_SCHEDULE_OFFSET_DAYS', 1)
    scheduled_date = utcnow().date() + timedelta(days=offset)
    new_matches = []
    for donation in donations:
        already_matched = db.session.query(
            RequestMatch.query.filter_by(
                blood_request_id=blood_request.id,
                donation_request_id=donation.id,
                match_status=MatchStatus.PENDING,
            ).exists()
        ).scalar()
        if already_matched:
            continue

        match = RequestMatch(
            blood_request_id=blood_request.id,
            donation_request_id=donation.id,
            match_status=MatchStatus.PENDING,
            scheduled_date=scheduled_date,
            notes='Auto-matched: no inventory available for this request',
            type=MatchType.AUTO,
        )
        db.session.add(match)
        new_matches.append(match)

    if not new_matches:
        return FulfillmentResult(blood_request.id, FulfillmentOutcome.DONORS_MATCHED)

    db.session.flush()
    logger.info("BloodRequest %s matched with %d new donor(s)", blood_request.id, len(new_matches))
    queue_notification(
        blood_request.user_id,
        f"No stock is currently available for your blood request #{blood_request.id}. "
        f"We have matched it with {len(new_matches)} donor(s) and will notify you once it is fulfilled.",
        NotificationType.BLOOD_REQUEST,
    )
    return FulfillmentResult(
        blood_request.id,
        FulfillmentOutcome.DONORS_MATCHED,
        match_ids=[match.id for match in new_matches],
    )
