from enum import Enum


class AuctionStatus(str, Enum):
    open = "open"
    ended = "ended"
