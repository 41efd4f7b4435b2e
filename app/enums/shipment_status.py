from enum import Enum


class ShipmentStatus(str, Enum):
    pending = "pending"
    created = "created"
    in_transit = "in_transit"
    delivered = "delivered"
    cancelled = "cancelled"
