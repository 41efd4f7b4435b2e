from .auction import (AuctionCreate, AuctionResponse, BidCreate, BidResponse,
                      BidRejectionResponse)
from .shipping import (Address, Dimensions, ShipmentDetails, ShipmentOverrides,
                       CarrierRate, LabelResult, TrackingEvent, TrackingInfo,
                       ShippingPreferences, ServiceRecommendation, CarrierInfo,
                       PaymentConfirmation, RateQuoteRequest, CreateLabelRequest,
                       ShipmentResponse)
