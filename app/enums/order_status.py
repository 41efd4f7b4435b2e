from enum import Enum


class OrderStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    shipped = "shipped"
    cancelled = "cancelled"


class OrderType(str, Enum):
    auction = "auction"
    buy_now = "buy_now"
