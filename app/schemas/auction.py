from uuid import UUID
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_serializer

from app.enums.auction_status import AuctionStatus
from app.enums.bid_rejection import BidRejectionReason


class AuctionCreate(BaseModel):
    """Schema for creating an auction (admin only)"""
    product_id: int
    starting_bid: int = Field(..., gt=0, description="Integer cents")
    duration_days: Optional[int] = Field(None, gt=0, le=60)


class AuctionResponse(BaseModel):
    id: int
    product_id: int
    start_time: datetime
    end_time: datetime
    starting_bid: int
    current_bid: Optional[int]
    current_bid_user_id: Optional[UUID]
    status: AuctionStatus

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("current_bid_user_id")
    def serialize_uuid(self, v: Optional[UUID], _info):
        return str(v) if v else None


class BidCreate(BaseModel):
    # checked by the bid validator
    amount: int | float | str


class BidResponse(BaseModel):
    id: int
    auction_id: int
    user_id: UUID
    amount: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("user_id")
    def serialize_uuid(self, v: UUID, _info):
        return str(v)


class BidRejectionResponse(BaseModel):
    reason: BidRejectionReason
    message: str
    minimum_next: Optional[int] = None
