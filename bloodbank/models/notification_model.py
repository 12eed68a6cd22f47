from bloodbank.extensions import db
from bloodbank.models.enums import NotificationStatus
from bloodbank.utils.timeutils import local_now


class Notification(db.Model):
    __tablename__ = 'notification'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), nullable=False)
    status = db.Column(
        db.Enum(NotificationStatus.UNREAD, NotificationStatus.READ, name='notification_status'),
        nullable=False,
        default=NotificationStatus.UNREAD,
    )
    sent_at = db.Column(db.DateTime, nullable=False, default=local_now)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'message': self.message,
            'type': self.type,
            'status': self.status,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
        }
