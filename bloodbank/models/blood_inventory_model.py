from bloodbank.extensions import db
from bloodbank.utils.timeutils import utcnow


class BloodInventory(db.Model):
    __tablename__ = 'blood_inventory'

    id = db.Column(db.Integer, primary_key=True)
    blood_type_id = db.Column(db.Integer, nullable=False)
    blood_component_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(20), nullable=False, default='mL')
    location = db.Column(db.String(255))
    last_updated = db.Column(db.DateTime, nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __table_args__ = (
        db.CheckConstraint('quantity >= 0', name='ck_blood_inventory_quantity_non_negative'),
        db.Index('ix_blood_inventory_type_component', 'blood_type_id', 'blood_component_id'),
    )
    # Concurrent writers are detected on flush (StaleDataError)
    __mapper_args__ = {'version_id_col': version_id}

    def to_dict(self):
        return {
            'id': self.id,
            'blood_type_id': self.blood_type_id,
            'blood_component_id': self.blood_component_id,
            'quantity': self.quantity,
            'unit': self.unit,
            'location': self.location,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
        }

    def __repr__(self):
        return f'<BloodInventory {self.id} type={self.blood_type_id} qty={self.quantity}>'
