from bloodbank.extensions import db
from bloodbank.models.enums import BloodRequestStatus
from bloodbank.models.types import IntEnumType
from bloodbank.utils.timeutils import utcnow


class BloodRequest(db.Model):
    __tablename__ = 'blood_request'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # requester, optional
    blood_type_id = db.Column(db.Integer, nullable=False, index=True)
    blood_component_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    location = db.Column(db.String(255))  # province_district_ward
    is_emergency = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(IntEnumType(BloodRequestStatus), nullable=False, default=BloodRequestStatus.PENDING, index=True)
    fulfilled = db.Column(db.Boolean, nullable=False, default=False, index=True)
    fulfilled_source = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_blood_request_quantity_positive'),
    )
    __mapper_args__ = {'version_id_col': version_id}

    @property
    def is_eligible(self):
        """Approved by staff and not yet supplied"""
        return self.status == BloodRequestStatus.SUCCESSFUL and not self.fulfilled

    def mark_fulfilled(self, source):
        self.fulfilled = True
        self.fulfilled_source = source

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'blood_type_id': self.blood_type_id,
            'blood_component_id': self.blood_component_id,
            'quantity': self.quantity,
            'location': self.location,
            'is_emergency': self.is_emergency,
            'status': BloodRequestStatus(self.status).name.title(),
            'fulfilled': self.fulfilled,
            'fulfilled_source': self.fulfilled_source,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<BloodRequest {self.id} type={self.blood_type_id} qty={self.quantity}>'
