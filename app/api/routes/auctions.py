from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List

from app.models.user import User
from app.api.dependencies import get_current_active_user, admin_required
from app.enums.bid_rejection import BidRejectionReason
from app.schemas.auction import (
    AuctionCreate,
    AuctionResponse,
    BidCreate,
    BidResponse,
    BidRejectionResponse
)
from app.services.auction.auction_service import AuctionService, AuctionNotFound

router = APIRouter()


def _not_found(e: AuctionNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{auction_id}", response_model=AuctionResponse)
async def get_auction(auction_id: int):
    """Get auction with its current bid"""
    try:
        return await AuctionService.get_auction(auction_id)
    except AuctionNotFound as e:
        raise _not_found(e)


@router.get("/{auction_id}/bids", response_model=List[BidResponse])
async def get_auction_bids(
    auction_id: int,
    limit: int = Query(100, ge=1, le=500)
):
    """Bid history, newest first"""
    try:
        await AuctionService.get_auction(auction_id)
    except AuctionNotFound as e:
        raise _not_found(e)
    return await AuctionService.get_bids(auction_id, limit=limit)


@router.post(
    "/{auction_id}/bids",
    response_model=BidResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": BidRejectionResponse}, 409: {"model": BidRejectionResponse}}
)
async def place_bid(
    auction_id: int,
    bid_data: BidCreate,
    current_user: User = Depends(get_current_active_user)
):
    """Place a bid on an open auction"""
    try:
        outcome = await AuctionService.accept_bid(
            auction_id=auction_id,
            user_id=current_user.id,
            amount=bid_data.amount
        )
    except AuctionNotFound as e:
        raise _not_found(e)

    if not outcome.accepted:
        decision = outcome.decision
        raise HTTPException(
            status_code=(
                status.HTTP_409_CONFLICT
                if decision.reason == BidRejectionReason.conflict
                else status.HTTP_400_BAD_REQUEST
            ),
            detail=BidRejectionResponse(
                reason=decision.reason,
                message=decision.message,
                minimum_next=decision.minimum_next
            ).model_dump(mode="json")
        )

    return outcome.bid


# Admin routes
@router.post("/", response_model=AuctionResponse, status_code=status.HTTP_201_CREATED)
async def create_auction(
    auction_data: AuctionCreate,
    current_user: User = Depends(admin_required)
):
    """Open an auction for a product (admin only)"""
    try:
        return await AuctionService.create_auction(
            product_id=auction_data.product_id,
            starting_bid=auction_data.starting_bid,
            duration_days=auction_data.duration_days
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.post("/{auction_id}/end", response_model=AuctionResponse)
async def end_auction(
    auction_id: int,
    current_user: User = Depends(admin_required)
):
    """End an auction now (admin only)"""
    try:
        return await AuctionService.end_auction(auction_id)
    except AuctionNotFound as e:
        raise _not_found(e)
