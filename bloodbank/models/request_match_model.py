from bloodbank.extensions import db
from bloodbank.models.enums import MatchStatus, MatchType


class RequestMatch(db.Model):
    __tablename__ = 'request_match'

    id = db.Column(db.Integer, primary_key=True)
    blood_request_id = db.Column(db.Integer, db.ForeignKey('blood_request.id'), nullable=False, index=True)
    donation_request_id = db.Column(db.Integer, db.ForeignKey('donation_request.id'), nullable=False, index=True)
    match_status = db.Column(
        db.Enum(MatchStatus.PENDING, MatchStatus.COMPLETED, name='match_status'),
        nullable=False,
        default=MatchStatus.PENDING,
    )
    scheduled_date = db.Column(db.Date)
    notes = db.Column(db.String(255))
    type = db.Column(db.String(20), nullable=False, default=MatchType.AUTO)

    __table_args__ = (
        db.UniqueConstraint('blood_request_id', 'donation_request_id', 'match_status',
                            name='uq_request_match_pair_status'),
    )

    blood_request = db.relationship('BloodRequest', backref='matches')
    donation_request = db.relationship('DonationRequest', backref='matches')

    def to_dict(self):
        return {
            'id': self.id,
            'blood_request_id': self.blood_request_id,
            'donation_request_id': self.donation_request_id,
            'match_status': self.match_status,
            'scheduled_date': self.scheduled_date.isoformat() if self.scheduled_date else None,
            'notes': self.notes,
            'type': self.type,
        }
