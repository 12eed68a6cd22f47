from bloodbank.models.blood_inventory_model import BloodInventory
from bloodbank.models.blood_request_inventory_model import BloodRequestInventory
from bloodbank.models.blood_request_model import BloodRequest
from bloodbank.models.donation_request_model import DonationRequest
from bloodbank.models.notification_model import Notification
from bloodbank.models.request_match_model import RequestMatch

__all__ = [
    'BloodInventory',
    'BloodRequest',
    'BloodRequestInventory',
    'DonationRequest',
    'Notification',
    'RequestMatch',
]
