from enum import Enum


class BidRejectionReason(str, Enum):
    auction_not_open = "auction_not_open"
    auction_ended = "auction_ended"
    invalid_amount = "invalid_amount"
    bad_increment = "bad_increment"
    below_minimum = "below_minimum"
    conflict = "conflict"
