class BloodBankError(Exception):
    """Base class for errors raised by the fulfillment core"""


class InventoryInvariantError(BloodBankError):
    """An allocation would have driven an inventory row below zero.

    The candidate query only returns rows holding at least the requested
    quantity, so reaching this means a defect, not a recoverable condition.
    """

    def __init__(self, inventory_id, available, requested):
        self.inventory_id = inventory_id
        self.available = available
        self.requested = requested
        super().__init__(
            f'Inventory {inventory_id} holds {available} unit(s), cannot allocate {requested}'
        )
