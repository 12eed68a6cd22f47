from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import BadRequest, NotFound

from bloodbank.exceptions import BloodBankError
from bloodbank.extensions import db
from bloodbank.models.blood_request_model import BloodRequest
from bloodbank.models.enums import BloodRequestStatus
from bloodbank.services.allocation_engine import attempt_fulfillment

blood_request_bp = Blueprint('blood_request_bp', __name__, url_prefix='/api/v1/bloodrequests')


def _parse_status(data):
    if not data or 'status' not in data:
        raise BadRequest('Missing required field: status')
    try:
        return BloodRequestStatus(int(data['status']))
    except (TypeError, ValueError):
        raise BadRequest('Invalid status value')


# PATCH a blood request status; approval triggers fulfillment immediately
@blood_request_bp.route('/<int:id>/status', methods=['PATCH'])
def update_blood_request_status(id):
    try:
        new_status = _parse_status(request.get_json(silent=True))

        blood_request = db.session.get(BloodRequest, id)
        if not blood_request:
            raise NotFound('Blood request not found')
        # A donation may supply a request before staff approve it; approval stays open
        if blood_request.fulfilled and new_status not in (blood_request.status, BloodRequestStatus.SUCCESSFUL):
            raise BadRequest('Fulfilled blood requests cannot change status')

        blood_request.status = new_status
        db.session.commit()
        current_app.logger.info("BloodRequest %s status set to %s", id, new_status.name)

        response = {'blood_request': blood_request.to_dict(), 'fulfillment': None}
        if new_status == BloodRequestStatus.SUCCESSFUL:
            result = attempt_fulfillment(id)
            response['fulfillment'] = result.to_dict()
            response['blood_request'] = db.session.get(BloodRequest, id).to_dict()

        return jsonify(response), 200
    except BadRequest as e:
        return jsonify({'error': e.description}), 400
    except NotFound as e:
        return jsonify({'error': e.description}), 404
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error updating BloodRequest %s", id)
        return jsonify({'error': 'Database error occurred'}), 500
    except BloodBankError:
        current_app.logger.exception("Fulfillment failed for BloodRequest %s", id)
        return jsonify({'error': 'Blood request could not be fulfilled'}), 500


# POST an explicit fulfillment attempt for an approved request
@blood_request_bp.route('/<int:id>/fulfill', methods=['POST'])
def fulfill_blood_request(id):
    try:
        blood_request = db.session.get(BloodRequest, id)
        if not blood_request:
            raise NotFound('Blood request not found')

        allocated_by = (request.get_json(silent=True) or {}).get('allocated_by')
        result = attempt_fulfillment(id, allocated_by=allocated_by)
        return jsonify({
            'blood_request': db.session.get(BloodRequest, id).to_dict(),
            'fulfillment': result.to_dict(),
        }), 200
    except NotFound as e:
        return jsonify({'error': e.description}), 404
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error fulfilling BloodRequest %s", id)
        return jsonify({'error': 'Database error occurred'}), 500
    except BloodBankError:
        current_app.logger.exception("Fulfillment failed for BloodRequest %s", id)
        return jsonify({'error': 'Blood request could not be fulfilled'}), 500


# DELETE (soft cancel) a blood request
@blood_request_bp.route('/<int:id>', methods=['DELETE'])
def cancel_blood_request(id):
    try:
        blood_request = db.session.get(BloodRequest, id)
        if not blood_request:
            raise NotFound('Blood request not found')
        if blood_request.fulfilled:
            raise BadRequest('Fulfilled blood requests cannot be cancelled')

        blood_request.status = BloodRequestStatus.CANCELLED
        db.session.commit()
        current_app.logger.info("BloodRequest %s cancelled", id)
        return jsonify({'message': 'Blood request cancelled successfully'}), 200
    except BadRequest as e:
        return jsonify({'error': e.description}), 400
    except NotFound as e:
        return jsonify({'error': e.description}), 404
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error cancelling BloodRequest %s", id)
        return jsonify({'error': 'Database error occurred'}), 500
