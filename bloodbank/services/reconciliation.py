import logging
import threading
from dataclasses import dataclass

from bloodbank.extensions import db, scheduler
from bloodbank.models.blood_request_model import BloodRequest
from bloodbank.models.donation_request_model import DonationRequest
from bloodbank.models.enums import BloodRequestStatus, DonationRequestStatus
from bloodbank.services.allocation_engine import FulfillmentOutcome, attempt_fulfillment
from bloodbank.services.donation_intake import IntakeOutcome, process_completed_donation

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    requests_seen: int = 0
    allocated: int = 0
    donors_matched: int = 0
    no_match: int = 0
    conflicts: int = 0
    donations_seen: int = 0
    donations_stocked: int = 0
    failures: int = 0
    cancelled: bool = False

    def to_dict(self):
        return dict(self.__dict__)


def eligible_request_ids():
    """Approved, unfulfilled requests: emergencies first, then by age"""
    rows = (
        db.session.query(BloodRequest.id)
        .filter(
            BloodRequest.status == BloodRequestStatus.SUCCESSFUL,
            BloodRequest.fulfilled.is_(False),
        )
        .order_by(BloodRequest.is_emergency.desc(), BloodRequest.created_at.asc(), BloodRequest.id.asc())
        .all()
    )
    return [row.id for row in rows]


def completed_donation_ids():
    rows = (
        db.session.query(DonationRequest.id)
        .filter(DonationRequest.status == DonationRequestStatus.COMPLETED)
        .order_by(DonationRequest.id.asc())
        .all()
    )
    return [row.id for row in rows]


class ReconciliationScheduler:
    """Periodically reconcile blood requests and completed donations.

    Owns the Flask app (and through it the session factory) and registers
    one interval job on Flask-APScheduler. Every request or donation is
    handled in its own transaction; a failure rolls back that item only.
    ``stop()`` is cooperative: items already in flight finish, no further
    items or sweeps start.
    """

    JOB_ID = 'blood-request-reconciliation'

    def __init__(self, app=None):
        self.app = None
        self._stop_event = threading.Event()
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions['reconciliation'] = self

    @property
    def interval_seconds(self):
        return self.app.config.get('FULFILLMENT_SWEEP_INTERVAL_SECONDS', 30)

    @property
    def stopping(self):
        return self._stop_event.is_set()

    def start(self):
        self._stop_event.clear()
        scheduler.add_job(
            id=self.JOB_ID,
            func=self.run_sweep,
            trigger='interval',
            seconds=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not scheduler.running:
            scheduler.start()
        logger.info("Reconciliation scheduler started, sweeping every %ss", self.interval_seconds)

    def stop(self, wait=True):
        self._stop_event.set()
        if scheduler.running:
            scheduler.shutdown(wait=wait)
            logger.info("Reconciliation scheduler stopped")

    def run_sweep(self):
        with self.app.app_context():
            report = SweepReport()
            try:
                self._sweep_requests(report)
                if not report.cancelled:
                    self._sweep_donations(report)
            finally:
                db.session.remove()

        logger.info("Reconciliation sweep finished: %s", report.to_dict())
        return report

    def _sweep_requests(self, report):
        for request_id in eligible_request_ids():
            if self.stopping:
                report.cancelled = True
                return
            report.requests_seen += 1
            try:
                result = attempt_fulfillment(request_id)
            except Exception:
                db.session.rollback()
                report.failures += 1
                logger.exception("Error processing BloodRequest %s", request_id)
                continue

            if result.outcome is FulfillmentOutcome.ALLOCATED:
                report.allocated += 1
            elif result.outcome is FulfillmentOutcome.DONORS_MATCHED:
                report.donors_matched += 1
            elif result.outcome is FulfillmentOutcome.NO_MATCH:
                report.no_match += 1
            elif result.outcome is FulfillmentOutcome.CONFLICT:
                report.conflicts += 1

    def _sweep_donations(self, report):
        for donation_id in completed_donation_ids():
            if self.stopping:
                report.cancelled = True
                return
            report.donations_seen += 1
            try:
                result = process_completed_donation(donation_id)
            except Exception:
                db.session.rollback()
                report.failures += 1
                logger.exception("Error processing DonationRequest %s", donation_id)
                continue

            if result.outcome is IntakeOutcome.STOCKED:
                report.donations_stocked += 1
