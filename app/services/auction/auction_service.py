from uuid import UUID
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union
from loguru import logger
from tortoise.transactions import in_transaction

from app.core.config import settings
from app.enums.auction_status import AuctionStatus
from app.enums.bid_rejection import BidRejectionReason
from app.models.auction import Auction
from app.models.bid import Bid
from app.models.product import Product
from app.services.auction.bid_validator import BidDecision, is_auction_expired, validate_bid
from app.utils.money import to_cents
from app.utils.timeutils import utcnow


class AuctionNotFound(ValueError):
    def __init__(self, auction_id: int):
        super().__init__(f"Auction {auction_id} not found")
        self.auction_id = auction_id


class _BidConflict(Exception):
    """The auction row changed between validation and update."""


@dataclass
class BidOutcome:
    decision: BidDecision
    bid: Optional[Bid] = None

    @property
    def accepted(self) -> bool:
        return self.decision.accepted

    @property
    def reason(self) -> Optional[BidRejectionReason]:
        return self.decision.reason


@dataclass(frozen=True)
class WinningBid:
    auction_id: int
    user_id: UUID
    amount: int
    bid_id: Optional[int]


class AuctionService:
    @staticmethod
    async def create_auction(
        product_id: int,
        starting_bid: int,
        duration_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Auction:
        """Open an auction for a product, starting now"""
        product = await Product.get_or_none(id=product_id)
        if not product:
            raise ValueError(f"Product {product_id} not found")

        cents = to_cents(starting_bid)
        if cents is None:
            raise ValueError("Starting bid must be a positive whole number of cents")

        days = duration_days if duration_days is not None else settings.auction_duration_days
        if days <= 0:
            raise ValueError("Auction duration must be at least one day")

        start = now or utcnow()
        auction = await Auction.create(
            product=product,
            start_time=start,
            end_time=start + timedelta(days=days),
            starting_bid=cents,
            status=AuctionStatus.open
        )
        logger.info(f"Auction {auction.id} opened for product {product_id}, ends {auction.end_time.isoformat()}")
        return auction

    @staticmethod
    async def refresh_status(auction: Auction, now: Optional[datetime] = None) -> bool:
        """Apply the lazy open -> ended transition. Returns True if it fired."""
        if auction.status != AuctionStatus.open or not is_auction_expired(auction, now or utcnow()):
            return False

        await Auction.filter(id=auction.id, status=AuctionStatus.open).update(status=AuctionStatus.ended)
        auction.status = AuctionStatus.ended
        logger.info(f"Auction {auction.id} ended (end time {auction.end_time.isoformat()} passed)")
        return True

    @staticmethod
    async def get_auction(auction_id: int, now: Optional[datetime] = None) -> Auction:
        auction = await Auction.get_or_none(id=auction_id)
        if not auction:
            raise AuctionNotFound(auction_id)
        await AuctionService.refresh_status(auction, now)
        return auction

    @staticmethod
    async def end_auction(auction_id: int) -> Auction:
        """Admin "end now". Ending an already ended auction is a no-op."""
        auction = await Auction.get_or_none(id=auction_id)
        if not auction:
            raise AuctionNotFound(auction_id)

        if auction.status == AuctionStatus.open:
            auction.status = AuctionStatus.ended
            await auction.save(update_fields=["status"])
            logger.info(f"Auction {auction_id} ended by admin")
        return auction

    @staticmethod
    async def close_expired_auctions(now: Optional[datetime] = None) -> int:
        """Bulk-end every open auction past its end time"""
        closed = await Auction.filter(
            status=AuctionStatus.open,
            end_time__lte=now or utcnow()
        ).update(status=AuctionStatus.ended)
        if closed:
            logger.info(f"Closed {closed} expired auction(s)")
        return closed

    @staticmethod
    async def accept_bid(
        auction_id: int,
        user_id: Union[UUID, str],
        amount,
        now: Optional[datetime] = None,
        increment: Optional[int] = None,
        retry_on_conflict: bool = True
    ) -> BidOutcome:
        """Validate and record a bid.

        Expected rejections come back as a rejected ``BidOutcome``; only
        unexpected storage errors raise. A lost race is reported as
        ``BidRejectionReason.conflict`` after one silent retry.
        """
        now = now or utcnow()
        increment = increment or settings.bid_increment

        attempts = 2 if retry_on_conflict else 1
        for attempt in range(1, attempts + 1):
            try:
                return await AuctionService._accept_bid_once(auction_id, user_id, amount, now, increment)
            except _BidConflict:
                logger.warning(f"Bid conflict on auction {auction_id} (attempt {attempt}/{attempts})")

        return BidOutcome(
            decision=BidDecision.reject(
                BidRejectionReason.conflict,
                "Another bid was accepted at the same time, please check the current bid and retry"
            )
        )

    @staticmethod
    async def _accept_bid_once(
        auction_id: int,
        user_id: Union[UUID, str],
        amount,
        now: datetime,
        increment: int
    ) -> BidOutcome:
        async with in_transaction():
            # Row lock on the auction for the whole validate-then-update sequence
            auction = await Auction.filter(id=auction_id).select_for_update().first()
            if not auction:
                raise AuctionNotFound(auction_id)

            decision = validate_bid(auction, amount, now, increment)

            if not decision.accepted:
                if decision.reason == BidRejectionReason.auction_ended and auction.status == AuctionStatus.open:
                    auction.status = AuctionStatus.ended
                    await auction.save(update_fields=["status"])
                    logger.info(f"Auction {auction_id} ended (observed on bid attempt)")
                logger.warning(f"Bid of {amount} on auction {auction_id} rejected: {decision.reason.value}")
                return BidOutcome(decision=decision)

            bid = await Bid.create(
                auction_id=auction.id,
                user_id=user_id,
                amount=decision.amount,
                created_at=now
            )

            expected = (
                {"current_bid__isnull": True}
                if auction.current_bid is None
                else {"current_bid": auction.current_bid}
            )
            updated = await Auction.filter(
                id=auction.id,
                status=AuctionStatus.open,
                **expected
            ).update(current_bid=decision.amount, current_bid_user_id=user_id)

            if not updated:
                # rolls back the bid insert
                raise _BidConflict()

        logger.info(f"Bid {bid.id} of {decision.amount} accepted on auction {auction_id} for user {user_id}")
        return BidOutcome(decision=decision, bid=bid)

    @staticmethod
    async def determine_winner(auction_id: int, now: Optional[datetime] = None) -> Optional[WinningBid]:
        """Winner of an ended auction, or None if nobody bid"""
        auction = await AuctionService.get_auction(auction_id, now)
        if auction.status != AuctionStatus.ended:
            raise ValueError(f"Auction {auction_id} is still open")

        if auction.current_bid is None or auction.current_bid_user_id is None:
            return None

        bid = await Bid.filter(
            auction_id=auction_id,
            user_id=auction.current_bid_user_id,
            amount=auction.current_bid
        ).order_by("-created_at", "-id").first()

        return WinningBid(
            auction_id=auction_id,
            user_id=auction.current_bid_user_id,
            amount=auction.current_bid,
            bid_id=bid.id if bid else None
        )

    @staticmethod
    async def get_bids(auction_id: int, limit: int = 100) -> list[Bid]:
        """Bids for an auction, newest first"""
        return await Bid.filter(auction_id=auction_id).order_by("-created_at", "-id").limit(limit)
