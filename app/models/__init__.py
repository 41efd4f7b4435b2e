from .user import User
from .product import Product
from .auction import Auction
from .bid import Bid
from .order import Order
from .shipment import Shipment

__all__ = ["User", "Product", "Auction", "Bid", "Order", "Shipment"]
