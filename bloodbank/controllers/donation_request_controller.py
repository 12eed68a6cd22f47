from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import BadRequest, NotFound

from bloodbank.extensions import db
from bloodbank.models.donation_request_model import DonationRequest
from bloodbank.models.enums import DonationRequestStatus, NotificationType
from bloodbank.services.notification_service import queue_notification

donation_request_bp = Blueprint('donation_request_bp', __name__, url_prefix='/api/v1/donationrequests')

STATUS_MESSAGES = {
    DonationRequestStatus.SUCCESSFUL: 'Your donation request has been approved.',
    DonationRequestStatus.CANCELLED: 'Your donation request has been cancelled.',
    DonationRequestStatus.PENDING: 'Your donation request is pending review.',
    DonationRequestStatus.DONE: 'Thank you for your donation! Your blood has been successfully donated at the hospital.',
}


# PATCH a donation request status; completion is stocked by the next sweep
@donation_request_bp.route('/<int:id>/status', methods=['PATCH'])
def update_donation_request_status(id):
    try:
        data = request.get_json(silent=True)
        if not data or 'status' not in data:
            raise BadRequest('Missing required field: status')
        try:
            new_status = DonationRequestStatus(int(data['status']))
        except (TypeError, ValueError):
            raise BadRequest('Invalid status value')

        donation = db.session.get(DonationRequest, id)
        if not donation:
            raise NotFound('Donation request not found')

        donation.status = new_status
        message = STATUS_MESSAGES.get(new_status)
        if message:
            queue_notification(donation.user_id, message, NotificationType.DONATION_REQUEST)

        db.session.commit()
        current_app.logger.info("DonationRequest %s status set to %s", id, new_status.name)
        return jsonify(donation.to_dict()), 200
    except BadRequest as e:
        return jsonify({'error': e.description}), 400
    except NotFound as e:
        return jsonify({'error': e.description}), 404
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error updating DonationRequest %s", id)
        return jsonify({'error': 'Database error occurred'}), 500
