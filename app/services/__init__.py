from .auction.auction_service import AuctionService, AuctionNotFound, BidOutcome, WinningBid
from .auction.bid_validator import AuctionSnapshot, BidDecision, validate_bid, minimum_next_bid
from .shipping import (RateAggregator, ShipmentBuilder, ShippingOrchestrator, ShipmentService,
                       ShippingConfig, build_default_adapters)
