from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from loguru import logger

from app.models.user import User
from app.api.dependencies import (
    get_current_active_user,
    admin_required,
    get_rate_aggregator,
    get_orchestrator,
    get_shipment_service
)
from app.schemas.shipping import (
    CarrierInfo,
    CarrierRate,
    CreateLabelRequest,
    PaymentConfirmation,
    RateQuoteRequest,
    ServiceRecommendation,
    ShipmentResponse,
    TrackingInfo
)
from app.services.shipping import (
    RateAggregator,
    ShipmentBuilder,
    ShippingOrchestrator,
    ShipmentService,
    OrderNotFound,
    ShipmentNotFound,
    PaymentMismatch,
    InvalidShipmentTransition
)
from app.services.shipping.errors import (
    CarrierError,
    CarrierNotConfigured,
    InvalidAddress,
    NoRatesAvailable
)

router = APIRouter()


def shipping_http_error(e: Exception) -> HTTPException:
    """Domain and carrier errors -> HTTP; raw carrier text stays in the log"""
    if isinstance(e, (OrderNotFound, ShipmentNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvalidAddress):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "missing_fields": e.missing_fields}
        )
    if isinstance(e, NoRatesAvailable):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (PaymentMismatch, InvalidShipmentTransition)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, CarrierNotConfigured):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, CarrierError):
        logger.error(f"Carrier error: {e}")
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{e.carrier} request failed, please try again later"
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


async def _quote(orchestrator: ShippingOrchestrator, quote: RateQuoteRequest) -> List[CarrierRate]:
    try:
        ShipmentBuilder.validate_address(quote.details.from_address, "from address")
        ShipmentBuilder.validate_address(quote.details.to_address, "to address")
    except InvalidAddress as e:
        raise shipping_http_error(e)
    return await orchestrator.aggregator.get_all_rates(quote.details)


@router.get("/carriers", response_model=List[CarrierInfo])
async def get_carriers(aggregator: RateAggregator = Depends(get_rate_aggregator)):
    """Carriers with credentials configured"""
    return aggregator.available_carriers()


@router.post("/rates", response_model=List[CarrierRate])
async def get_rates(
    quote: RateQuoteRequest,
    orchestrator: ShippingOrchestrator = Depends(get_orchestrator),
    current_user: User = Depends(get_current_active_user)
):
    """Rates from every configured carrier, cheapest first"""
    rates = await _quote(orchestrator, quote)
    return orchestrator.filter_rates(rates, quote.preferences)


@router.post("/recommendations", response_model=List[ServiceRecommendation])
async def get_recommendations(
    quote: RateQuoteRequest,
    orchestrator: ShippingOrchestrator = Depends(get_orchestrator),
    current_user: User = Depends(get_current_active_user)
):
    rates = await _quote(orchestrator, quote)
    return orchestrator.get_service_recommendations(orchestrator.filter_rates(rates, quote.preferences))


@router.get("/shipments/{shipment_id}/tracking", response_model=TrackingInfo)
async def track_shipment(
    shipment_id: int,
    service: ShipmentService = Depends(get_shipment_service),
    current_user: User = Depends(get_current_active_user)
):
    """Latest carrier tracking; also advances the shipment status"""
    try:
        return await service.refresh_tracking(shipment_id)
    except (ValueError, CarrierError, CarrierNotConfigured) as e:
        raise shipping_http_error(e)


# Admin routes
@router.post("/orders/{order_id}/label", response_model=ShipmentResponse)
async def create_label(
    order_id: int,
    label_request: Optional[CreateLabelRequest] = None,
    service: ShipmentService = Depends(get_shipment_service),
    current_user: User = Depends(admin_required)
):
    """Buy a label for a paid order with the best matching rate (admin only)"""
    label_request = label_request or CreateLabelRequest()
    try:
        return await service.create_label(order_id, label_request.preferences, label_request.overrides)
    except (ValueError, CarrierError, CarrierNotConfigured, NoRatesAvailable) as e:
        raise shipping_http_error(e)


@router.post("/payments/confirm")
async def confirm_payment(
    event: PaymentConfirmation,
    service: ShipmentService = Depends(get_shipment_service),
    current_user: User = Depends(admin_required)
):
    """Payment gateway callback relay: marks the order paid (admin only)"""
    try:
        order = await service.confirm_payment(event)
    except ValueError as e:
        raise shipping_http_error(e)

    return {"order_id": order.id, "status": order.status.value}
