from bloodbank.extensions import db
from bloodbank.models.enums import DonationRequestStatus
from bloodbank.models.types import IntEnumType
from bloodbank.utils.timeutils import utcnow


class DonationRequest(db.Model):
    __tablename__ = 'donation_request'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # donor, optional
    blood_type_id = db.Column(db.Integer, nullable=False, index=True)
    blood_component_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    location = db.Column(db.String(255))
    status = db.Column(IntEnumType(DonationRequestStatus), nullable=False, default=DonationRequestStatus.PENDING, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'blood_type_id': self.blood_type_id,
            'blood_component_id': self.blood_component_id,
            'quantity': self.quantity,
            'location': self.location,
            'status': DonationRequestStatus(self.status).name.title(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<DonationRequest {self.id} type={self.blood_type_id} qty={self.quantity}>'
