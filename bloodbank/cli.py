import click
from flask import current_app
from flask.cli import AppGroup

from bloodbank.services.allocation_engine import attempt_fulfillment

fulfillment_cli = AppGroup('fulfillment', help='Blood request fulfillment commands.')


def _echo_fields(fields):
    for key, value in fields.items():
        click.echo(f'{key}: {value}')


@fulfillment_cli.command('sweep')
def sweep_command():
    """Run one reconciliation sweep now and print its report."""
    report = current_app.extensions['reconciliation'].run_sweep()
    _echo_fields(report.to_dict())


@fulfillment_cli.command('fulfill')
@click.argument('blood_request_id', type=int)
def fulfill_command(blood_request_id):
    """Attempt fulfillment for a single blood request."""
    result = attempt_fulfillment(blood_request_id)
    _echo_fields(result.to_dict())
