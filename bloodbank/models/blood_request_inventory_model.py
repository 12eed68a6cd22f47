from bloodbank.extensions import db
from bloodbank.utils.timeutils import utcnow


class BloodRequestInventory(db.Model):
    """Allocation ledger: which inventory row supplied which request"""
    __tablename__ = 'blood_request_inventory'

    id = db.Column(db.Integer, primary_key=True)
    blood_request_id = db.Column(db.Integer, db.ForeignKey('blood_request.id'), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey('blood_inventory.id'), nullable=False, index=True)
    quantity_allocated = db.Column(db.Integer, nullable=False)
    allocated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    allocated_by = db.Column(db.Integer, nullable=True)

    blood_request = db.relationship('BloodRequest', backref='allocations')
    inventory = db.relationship('BloodInventory', backref='allocations')

    def to_dict(self):
        return {
            'id': self.id,
            'blood_request_id': self.blood_request_id,
            'inventory_id': self.inventory_id,
            'quantity_allocated': self.quantity_allocated,
            'allocated_at': self.allocated_at.isoformat() if self.allocated_at else None,
            'allocated_by': self.allocated_by,
        }
