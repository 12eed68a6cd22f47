from enum import IntEnum


class BloodRequestStatus(IntEnum):
    PENDING = 0
    SUCCESSFUL = 1
    CANCELLED = 2


class DonationRequestStatus(IntEnum):
    PENDING = 0
    SUCCESSFUL = 1  # confirmed by staff, candidate for donor matching
    CANCELLED = 2
    DONE = 3        # blood collected, consumed by donation intake
    STOCKED = 4

    CONFIRMED = 1
    COMPLETED = 3


class FulfilledSource:
    INVENTORY = 'Inventory'
    DONATION = 'Donation'


class MatchStatus:
    PENDING = 'Pending'
    COMPLETED = 'Completed'


class MatchType:
    AUTO = 'Auto'


class NotificationStatus:
    UNREAD = 'Unread'
    READ = 'Read'


class NotificationType:
    BLOOD_REQUEST = 'BloodRequest'
    DONATION_REQUEST = 'DonationRequest'
