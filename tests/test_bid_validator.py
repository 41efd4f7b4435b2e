import pytest
from datetime import datetime, timedelta, timezone
from hypothesis import given, strategies as st

from app.enums.auction_status import AuctionStatus
from app.enums.bid_rejection import BidRejectionReason
from app.services.auction.bid_validator import (
    AuctionSnapshot,
    is_auction_expired,
    minimum_next_bid,
    validate_bid
)
from app.utils.money import is_multiple_of

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
INCREMENT = 100


def snapshot(starting_bid=1000, current_bid=None, status=AuctionStatus.open, ends_in=timedelta(days=1)):
    return AuctionSnapshot(
        status=status,
        end_time=NOW + ends_in,
        starting_bid=starting_bid,
        current_bid=current_bid
    )


open_auctions = st.builds(
    snapshot,
    starting_bid=st.integers(min_value=1, max_value=10_000).map(lambda n: n * INCREMENT),
    current_bid=st.none() | st.integers(min_value=1, max_value=10_000).map(lambda n: n * INCREMENT),
    ends_in=st.integers(min_value=1, max_value=10 * 24 * 3600).map(lambda s: timedelta(seconds=s))
)


def test_first_bid_scenario():
    """Starting bid $10.00, no bids yet"""
    auction = snapshot(starting_bid=1000)

    decision = validate_bid(auction, 1000, NOW, INCREMENT)
    assert not decision.accepted
    assert decision.reason == BidRejectionReason.below_minimum
    assert decision.minimum_next == 1100
    assert decision.message == "Minimum next bid is $11.00"

    decision = validate_bid(auction, 1100, NOW, INCREMENT)
    assert decision.accepted
    assert decision.amount == 1100

    decision = validate_bid(snapshot(starting_bid=1000, current_bid=1100), 1150, NOW, INCREMENT)
    assert decision.reason == BidRejectionReason.bad_increment


def test_rejects_closed_auction_before_checking_amount():
    decision = validate_bid(snapshot(status=AuctionStatus.ended), "garbage", NOW, INCREMENT)
    assert decision.reason == BidRejectionReason.auction_not_open


def test_end_time_boundary_counts_as_ended():
    auction = snapshot(ends_in=timedelta(0))
    assert is_auction_expired(auction, NOW)
    assert validate_bid(auction, 5000, NOW, INCREMENT).reason == BidRejectionReason.auction_ended

    one_second_left = snapshot(ends_in=timedelta(seconds=1))
    assert not is_auction_expired(one_second_left, NOW)


@pytest.mark.parametrize("amount", [0, -100, 10.5, "12.5", "abc", None, True, float("nan"), float("inf")])
def test_invalid_amounts(amount):
    decision = validate_bid(snapshot(), amount, NOW, INCREMENT)
    assert decision.reason == BidRejectionReason.invalid_amount


@pytest.mark.parametrize("amount", [1200, 1200.0, "1200"])
def test_accepts_integral_amounts_in_any_form(amount):
    decision = validate_bid(snapshot(current_bid=1100), amount, NOW, INCREMENT)
    assert decision.accepted
    assert decision.amount == 1200


def test_minimum_uses_higher_of_starting_and_current_bid():
    # current bid below starting bid should never happen, but the max still holds
    assert minimum_next_bid(snapshot(starting_bid=5000, current_bid=1000), INCREMENT) == 5100
    assert minimum_next_bid(snapshot(starting_bid=1000, current_bid=5000), INCREMENT) == 5100


def test_increment_is_a_parameter():
    auction = snapshot(starting_bid=1000)
    assert validate_bid(auction, 1005, NOW, 5).accepted
    assert validate_bid(auction, 1005, NOW, INCREMENT).reason == BidRejectionReason.bad_increment


def test_non_positive_increment_is_a_programming_error():
    with pytest.raises(ValueError):
        validate_bid(snapshot(), 1100, NOW, 0)


def test_is_multiple_of():
    assert is_multiple_of(1200, 100)
    assert not is_multiple_of(1250, 100)
    with pytest.raises(ValueError):
        is_multiple_of(1200, 0)


@given(open_auctions)
def test_minimum_next_bid_is_always_accepted(auction):
    minimum = minimum_next_bid(auction, INCREMENT)
    assert validate_bid(auction, minimum, NOW, INCREMENT).accepted


@given(open_auctions)
def test_one_cent_below_minimum_is_always_rejected(auction):
    minimum = minimum_next_bid(auction, INCREMENT)
    decision = validate_bid(auction, minimum - 1, NOW, INCREMENT)
    assert decision.reason in (BidRejectionReason.bad_increment, BidRejectionReason.below_minimum)


@given(open_auctions, st.integers(min_value=0, max_value=10 * 24 * 3600), st.integers(min_value=-10**9, max_value=10**9))
def test_every_bid_after_end_time_is_rejected(auction, seconds_after, amount):
    now = auction.end_time + timedelta(seconds=seconds_after)
    assert validate_bid(auction, amount, now, INCREMENT).reason == BidRejectionReason.auction_ended


@given(open_auctions, st.integers(min_value=-10**9, max_value=10**9))
def test_validation_is_repeatable(auction, amount):
    assert validate_bid(auction, amount, NOW, INCREMENT) == validate_bid(auction, amount, NOW, INCREMENT)
