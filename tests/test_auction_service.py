import asyncio
import pytest
from datetime import timedelta
from tortoise import fields

from app.enums.auction_status import AuctionStatus
from app.enums.bid_rejection import BidRejectionReason
from app.models import Auction, Bid, Order, Product, User
from app.services.auction import auction_service as auction_module
from app.services.auction.auction_service import AuctionService, AuctionNotFound


def during(auction: Auction):
    return auction.start_time + timedelta(hours=1)


@pytest.mark.asyncio
async def test_create_auction_defaults(product: Product):
    auction = await AuctionService.create_auction(product_id=product.id, starting_bid=2500)

    assert auction.status == AuctionStatus.open
    assert auction.current_bid is None
    assert auction.end_time - auction.start_time == timedelta(days=10)


@pytest.mark.asyncio
async def test_create_auction_rejects_bad_input(product: Product):
    with pytest.raises(ValueError):
        await AuctionService.create_auction(product_id=product.id, starting_bid=0)
    with pytest.raises(ValueError):
        await AuctionService.create_auction(product_id=product.id + 100, starting_bid=1000)


@pytest.mark.asyncio
async def test_accept_bid_updates_current_bid(auction: Auction, test_user: User):
    outcome = await AuctionService.accept_bid(auction.id, test_user.id, 1100, now=during(auction))

    assert outcome.accepted
    assert outcome.bid.amount == 1100

    refreshed = await Auction.get(id=auction.id)
    assert refreshed.current_bid == 1100
    assert refreshed.current_bid_user_id == test_user.id
    assert await Bid.filter(auction_id=auction.id).count() == 1


@pytest.mark.asyncio
async def test_rejected_bid_leaves_no_trace(auction: Auction, test_user: User):
    outcome = await AuctionService.accept_bid(auction.id, test_user.id, 1000, now=during(auction))

    assert not outcome.accepted
    assert outcome.reason == BidRejectionReason.below_minimum
    assert outcome.decision.minimum_next == 1100
    assert await Bid.filter(auction_id=auction.id).count() == 0
    assert (await Auction.get(id=auction.id)).current_bid is None


@pytest.mark.asyncio
async def test_outbid_sequence(auction: Auction, test_user: User, other_user: User):
    now = during(auction)
    assert (await AuctionService.accept_bid(auction.id, test_user.id, 1100, now=now)).accepted
    assert (await AuctionService.accept_bid(auction.id, other_user.id, 1200, now=now)).accepted

    outcome = await AuctionService.accept_bid(auction.id, test_user.id, 1200, now=now)
    assert outcome.reason == BidRejectionReason.below_minimum
    assert outcome.decision.minimum_next == 1300

    refreshed = await Auction.get(id=auction.id)
    assert refreshed.current_bid == 1200
    assert refreshed.current_bid_user_id == other_user.id

    bids = await AuctionService.get_bids(auction.id)
    assert [bid.amount for bid in bids] == [1200, 1100]


@pytest.mark.asyncio
async def test_bid_after_end_time_ends_auction(auction: Auction, test_user: User):
    outcome = await AuctionService.accept_bid(auction.id, test_user.id, 5000, now=auction.end_time)

    assert outcome.reason == BidRejectionReason.auction_ended
    assert (await Auction.get(id=auction.id)).status == AuctionStatus.ended

    outcome = await AuctionService.accept_bid(auction.id, test_user.id, 5000, now=auction.end_time)
    assert outcome.reason == BidRejectionReason.auction_not_open


@pytest.mark.asyncio
async def test_concurrent_bids_have_one_winner(auction: Auction, test_user: User, other_user: User):
    now = during(auction)
    outcomes = await asyncio.gather(
        AuctionService.accept_bid(auction.id, test_user.id, 1100, now=now),
        AuctionService.accept_bid(auction.id, other_user.id, 1100, now=now)
    )

    accepted = [outcome for outcome in outcomes if outcome.accepted]
    assert len(accepted) == 1
    rejected = next(outcome for outcome in outcomes if not outcome.accepted)
    assert rejected.reason in (BidRejectionReason.below_minimum, BidRejectionReason.conflict)

    refreshed = await Auction.get(id=auction.id)
    assert refreshed.current_bid == 1100
    assert refreshed.current_bid_user_id == accepted[0].bid.user_id
    assert await Bid.filter(auction_id=auction.id).count() == 1


@pytest.fixture
def stale_reads(monkeypatch):
    """Every validation sees a current bid the auction row never had."""
    calls = []
    real_validate = auction_module.validate_bid

    def validate_against_stale_row(auction, amount, now, increment):
        calls.append(amount)
        auction.current_bid = 1000
        return real_validate(auction, amount, now, increment)

    monkeypatch.setattr(auction_module, "validate_bid", validate_against_stale_row)
    return calls


@pytest.mark.asyncio
async def test_lost_update_is_retried_then_reported_as_conflict(auction: Auction, test_user: User, stale_reads):
    outcome = await AuctionService.accept_bid(auction.id, test_user.id, 1100, now=during(auction))

    assert len(stale_reads) == 2
    assert not outcome.accepted
    assert outcome.reason == BidRejectionReason.conflict
    assert outcome.bid is None
    assert await Bid.filter(auction_id=auction.id).count() == 0

    refreshed = await Auction.get(id=auction.id)
    assert refreshed.current_bid is None
    assert refreshed.current_bid_user_id is None


@pytest.mark.asyncio
async def test_conflict_without_retry(auction: Auction, test_user: User, stale_reads):
    outcome = await AuctionService.accept_bid(
        auction.id, test_user.id, 1100, now=during(auction), retry_on_conflict=False
    )

    assert len(stale_reads) == 1
    assert outcome.reason == BidRejectionReason.conflict
    assert await Bid.filter(auction_id=auction.id).count() == 0


@pytest.mark.asyncio
async def test_large_amounts_are_stored(auction: Auction, test_user: User):
    outcome = await AuctionService.accept_bid(auction.id, test_user.id, 3_000_000_000, now=during(auction))

    assert outcome.accepted
    assert (await Auction.get(id=auction.id)).current_bid == 3_000_000_000
    assert (await Bid.get(id=outcome.bid.id)).amount == 3_000_000_000


def test_amount_columns_are_64_bit():
    for model, field in ((Auction, "starting_bid"), (Auction, "current_bid"), (Bid, "amount"), (Order, "amount")):
        assert isinstance(model._meta.fields_map[field], fields.BigIntField), f"{model.__name__}.{field}"


@pytest.mark.asyncio
async def test_accept_bid_unknown_auction(test_user: User):
    with pytest.raises(AuctionNotFound):
        await AuctionService.accept_bid(999, test_user.id, 1100)


@pytest.mark.asyncio
async def test_get_auction_applies_lazy_end(auction: Auction):
    fetched = await AuctionService.get_auction(auction.id, now=auction.end_time + timedelta(seconds=1))
    assert fetched.status == AuctionStatus.ended

    with pytest.raises(AuctionNotFound):
        await AuctionService.get_auction(999)


@pytest.mark.asyncio
async def test_end_auction_is_idempotent(auction: Auction):
    ended = await AuctionService.end_auction(auction.id)
    assert ended.status == AuctionStatus.ended

    again = await AuctionService.end_auction(auction.id)
    assert again.status == AuctionStatus.ended


@pytest.mark.asyncio
async def test_determine_winner(auction: Auction, test_user: User, other_user: User):
    now = during(auction)
    await AuctionService.accept_bid(auction.id, test_user.id, 1100, now=now)
    await AuctionService.accept_bid(auction.id, other_user.id, 1500, now=now)

    with pytest.raises(ValueError):
        await AuctionService.determine_winner(auction.id, now=now)

    winner = await AuctionService.determine_winner(auction.id, now=auction.end_time)
    assert winner.user_id == other_user.id
    assert winner.amount == 1500
    assert winner.bid_id is not None


@pytest.mark.asyncio
async def test_determine_winner_without_bids(auction: Auction):
    await AuctionService.end_auction(auction.id)
    assert await AuctionService.determine_winner(auction.id) is None


@pytest.mark.asyncio
async def test_close_expired_auctions(auction: Auction, product: Product):
    later = await Auction.create(
        product=product,
        start_time=auction.start_time,
        end_time=auction.end_time + timedelta(days=5),
        starting_bid=1000
    )

    closed = await AuctionService.close_expired_auctions(now=auction.end_time)

    assert closed == 1
    assert (await Auction.get(id=auction.id)).status == AuctionStatus.ended
    assert (await Auction.get(id=later.id)).status == AuctionStatus.open
