"""
Bid acceptance rules.

Everything here is pure: the caller supplies the auction state, the proposed
amount, the increment and the current time, and gets a decision back. No
database access, no clock reads, so the same inputs always give the same
decision.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from app.enums.auction_status import AuctionStatus
from app.enums.bid_rejection import BidRejectionReason
from app.utils.money import format_cents, is_multiple_of, to_cents
from app.utils.timeutils import has_passed


@dataclass(frozen=True)
class AuctionSnapshot:
    """The slice of auction state the validator looks at."""
    status: AuctionStatus
    end_time: datetime
    starting_bid: int
    current_bid: Optional[int] = None

    @classmethod
    def of(cls, auction: Any) -> "AuctionSnapshot":
        if isinstance(auction, cls):
            return auction
        return cls(
            status=AuctionStatus(auction.status),
            end_time=auction.end_time,
            starting_bid=auction.starting_bid,
            current_bid=auction.current_bid,
        )


@dataclass(frozen=True)
class BidDecision:
    accepted: bool
    amount: Optional[int] = None
    reason: Optional[BidRejectionReason] = None
    minimum_next: Optional[int] = None
    message: str = ""

    @classmethod
    def accept(cls, amount: int) -> "BidDecision":
        return cls(accepted=True, amount=amount, message="Bid accepted")

    @classmethod
    def reject(
        cls,
        reason: BidRejectionReason,
        message: str,
        minimum_next: Optional[int] = None,
    ) -> "BidDecision":
        return cls(accepted=False, reason=reason, minimum_next=minimum_next, message=message)


def minimum_next_bid(auction: Union[AuctionSnapshot, Any], increment: int) -> int:
    snapshot = AuctionSnapshot.of(auction)
    return max(snapshot.starting_bid, snapshot.current_bid or 0) + increment


def is_auction_expired(auction: Union[AuctionSnapshot, Any], now: datetime) -> bool:
    """Single source of truth for "is this auction over by the clock"."""
    return has_passed(AuctionSnapshot.of(auction).end_time, now)


def validate_bid(
    auction: Union[AuctionSnapshot, Any],
    proposed_amount: Any,
    now: datetime,
    increment: int,
) -> BidDecision:
    """Check a proposed bid against auction state.

    Rules are applied in a fixed order; the first failing rule decides the
    rejection reason:

    1. auction must be open
    2. auction end time must not have been reached
    3. amount must be a positive whole number of cents
    4. amount must be a multiple of ``increment``
    5. amount must be at least ``max(starting_bid, current_bid) + increment``
    """
    if increment <= 0:
        raise ValueError("Bid increment must be a positive number of cents")

    snapshot = AuctionSnapshot.of(auction)

    if snapshot.status != AuctionStatus.open:
        return BidDecision.reject(
            BidRejectionReason.auction_not_open,
            f"Auction is not open (status: {snapshot.status.value})",
        )

    if is_auction_expired(snapshot, now):
        return BidDecision.reject(BidRejectionReason.auction_ended, "Auction ended")

    amount = to_cents(proposed_amount)
    if amount is None:
        return BidDecision.reject(
            BidRejectionReason.invalid_amount,
            "Bid amount must be a positive whole number of cents",
        )

    if not is_multiple_of(amount, increment):
        return BidDecision.reject(
            BidRejectionReason.bad_increment,
            f"Bids must be in increments of {format_cents(increment)}",
        )

    minimum = minimum_next_bid(snapshot, increment)
    if amount < minimum:
        return BidDecision.reject(
            BidRejectionReason.below_minimum,
            f"Minimum next bid is {format_cents(minimum)}",
            minimum_next=minimum,
        )

    return BidDecision.accept(amount)
