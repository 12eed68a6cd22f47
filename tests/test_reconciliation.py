import atexit
import logging

import pytest

from bloodbank import create_app, start_background_jobs
from bloodbank.config import TestingConfig
from bloodbank.extensions import db, scheduler
from bloodbank.models import BloodInventory, BloodRequest, RequestMatch
from bloodbank.models.enums import BloodRequestStatus, DonationRequestStatus
from bloodbank.services import reconciliation
from bloodbank.services.reconciliation import ReconciliationScheduler, eligible_request_ids
from tests.factories import A_NEG, make_donation, make_inventory, make_request, row_counts


@pytest.fixture
def reconciler(app):
    return app.extensions['reconciliation']


def test_app_factory_registers_scheduler_without_starting_it(app, reconciler):
    assert isinstance(reconciler, ReconciliationScheduler)
    assert reconciler.app is app
    assert reconciler.interval_seconds == 30
    assert scheduler.get_job(ReconciliationScheduler.JOB_ID) is None


def test_eligible_requests_emergency_first_then_oldest(app):
    old = make_request()
    urgent = make_request(is_emergency=True)
    new = make_request()
    make_request(status=BloodRequestStatus.PENDING)
    make_request(fulfilled=True, fulfilled_source='Inventory')

    assert eligible_request_ids() == [urgent.id, old.id, new.id]


def test_sweep_fulfils_matches_and_stocks(app, reconciler):
    make_inventory(quantity=10)
    from_stock = make_request(quantity=4, user_id=1)
    make_donation(blood_type_id=A_NEG)
    needs_donor = make_request(quantity=4, blood_type_id=A_NEG, user_id=2)
    nothing = make_request(quantity=4, blood_type_id=3)
    donation = make_donation(quantity=6, blood_type_id=5, status=DonationRequestStatus.COMPLETED)

    report = reconciler.run_sweep()

    assert report.requests_seen == 3
    assert report.allocated == 1
    assert report.donors_matched == 1
    assert report.no_match == 1
    assert report.donations_seen == 1
    assert report.donations_stocked == 1
    assert report.failures == 0

    db.session.expire_all()
    assert db.session.get(BloodRequest, from_stock.id).fulfilled is True
    assert db.session.get(BloodRequest, needs_donor.id).fulfilled is False
    assert db.session.get(BloodRequest, nothing.id).fulfilled is False
    assert RequestMatch.query.filter_by(blood_request_id=needs_donor.id).count() == 1
    assert BloodInventory.query.filter_by(blood_type_id=donation.blood_type_id).one().quantity == 6


def test_second_sweep_adds_nothing(app, reconciler):
    make_inventory(quantity=10)
    make_request(quantity=4)
    make_donation(blood_type_id=A_NEG)
    make_request(quantity=4, blood_type_id=A_NEG)
    make_request(quantity=2, blood_type_id=5)
    make_donation(quantity=6, blood_type_id=5, status=DonationRequestStatus.COMPLETED)

    reconciler.run_sweep()
    db.session.expire_all()
    before = row_counts()
    stock = sorted(row.quantity for row in BloodInventory.query.all())

    report = reconciler.run_sweep()

    db.session.expire_all()
    assert report.allocated == 0
    assert report.donations_stocked == 0
    assert row_counts() == before
    assert sorted(row.quantity for row in BloodInventory.query.all()) == stock


def test_one_failing_request_does_not_stop_the_sweep(app, reconciler, monkeypatch, caplog):
    caplog.set_level(logging.ERROR, logger='bloodbank')
    make_inventory(quantity=20)
    broken = make_request(quantity=4)
    healthy = make_request(quantity=4)
    original = reconciliation.attempt_fulfillment

    def flaky(request_id):
        if request_id == broken.id:
            raise RuntimeError('lock wait timeout')
        return original(request_id)

    monkeypatch.setattr(reconciliation, 'attempt_fulfillment', flaky)

    report = reconciler.run_sweep()

    assert report.failures == 1
    assert report.allocated == 1
    db.session.expire_all()
    assert db.session.get(BloodRequest, broken.id).fulfilled is False
    assert db.session.get(BloodRequest, healthy.id).fulfilled is True
    assert any(f'BloodRequest {broken.id}' in r.getMessage() for r in caplog.records)


def test_one_failing_donation_does_not_stop_the_sweep(app, reconciler, monkeypatch):
    bad = make_donation(quantity=5, status=DonationRequestStatus.COMPLETED)
    good = make_donation(quantity=5, blood_type_id=A_NEG, status=DonationRequestStatus.COMPLETED)
    original = reconciliation.process_completed_donation

    def flaky(donation_id):
        if donation_id == bad.id:
            raise RuntimeError('deadlock detected')
        return original(donation_id)

    monkeypatch.setattr(reconciliation, 'process_completed_donation', flaky)

    report = reconciler.run_sweep()

    assert report.failures == 1
    assert report.donations_stocked == 1
    db.session.expire_all()
    assert BloodInventory.query.filter_by(blood_type_id=good.blood_type_id).count() == 1
    assert BloodInventory.query.filter_by(blood_type_id=bad.blood_type_id).count() == 0


def test_stop_signal_halts_between_items(app, reconciler, monkeypatch):
    make_inventory(quantity=20)
    first = make_request(quantity=4)
    second = make_request(quantity=4)
    original = reconciliation.attempt_fulfillment

    def stop_after_first(request_id):
        result = original(request_id)
        reconciler.stop()
        return result

    monkeypatch.setattr(reconciliation, 'attempt_fulfillment', stop_after_first)

    report = reconciler.run_sweep()

    assert report.cancelled is True
    assert report.requests_seen == 1
    db.session.expire_all()
    assert db.session.get(BloodRequest, first.id).fulfilled is True
    assert db.session.get(BloodRequest, second.id).fulfilled is False


def test_start_registers_interval_job_and_stop_shuts_down(app, reconciler, monkeypatch):
    calls = {}
    monkeypatch.setattr(scheduler, 'add_job', lambda **kwargs: calls.setdefault('job', kwargs))
    monkeypatch.setattr(scheduler, 'start', lambda *a, **kw: calls.setdefault('started', True))

    app.config['FULFILLMENT_SWEEP_INTERVAL_SECONDS'] = 5
    reconciler.start()

    job = calls['job']
    assert job['id'] == ReconciliationScheduler.JOB_ID
    assert job['func'] == reconciler.run_sweep
    assert job['trigger'] == 'interval'
    assert job['seconds'] == 5
    assert job['max_instances'] == 1
    assert calls['started'] is True
    assert reconciler.stopping is False

    reconciler.stop()
    assert reconciler.stopping is True


def test_cli_sweep_prints_report(app):
    make_inventory(quantity=10)
    make_request(quantity=3)

    result = app.test_cli_runner().invoke(args=['fulfillment', 'sweep'])

    assert result.exit_code == 0
    assert 'allocated: 1' in result.output
    assert 'failures: 0' in result.output


def test_cli_fulfill_single_request(app):
    make_inventory(quantity=10)
    blood_request = make_request(quantity=3)

    result = app.test_cli_runner().invoke(args=['fulfillment', 'fulfill', str(blood_request.id)])

    assert result.exit_code == 0
    assert 'outcome: allocated' in result.output


@pytest.fixture
def recorded_scheduler(monkeypatch):
    calls = []
    monkeypatch.setattr(scheduler, 'add_job', lambda **kwargs: calls.append(kwargs['id']))
    monkeypatch.setattr(scheduler, 'start', lambda *a, **kw: calls.append('started'))
    monkeypatch.setattr(atexit, 'register', lambda func: calls.append('atexit'))
    return calls


def test_app_factory_never_starts_the_sweeper(recorded_scheduler):
    app = create_app(TestingConfig, FULFILLMENT_SCHEDULER_AUTOSTART=True)

    with app.app_context():
        db.create_all()
        result = app.test_cli_runner().invoke(args=['fulfillment', 'sweep'])
        db.drop_all()

    assert result.exit_code == 0
    assert recorded_scheduler == []


def test_serving_entry_point_starts_the_sweeper(recorded_scheduler):
    app = create_app(TestingConfig, FULFILLMENT_SCHEDULER_AUTOSTART=True)

    assert start_background_jobs(app) is True
    assert recorded_scheduler == [ReconciliationScheduler.JOB_ID, 'started', 'atexit']


def test_serving_entry_point_respects_autostart_off(recorded_scheduler):
    app = create_app(TestingConfig)

    assert start_background_jobs(app) is False
    assert recorded_scheduler == []
