from datetime import datetime
from typing import Dict, FrozenSet, Optional

from loguru import logger
from tortoise.transactions import in_transaction

from app.enums.order_status import OrderStatus
from app.enums.shipment_status import ShipmentStatus
from app.models.order import Order
from app.models.shipment import Shipment
from app.schemas.shipping import (
    Address,
    PaymentConfirmation,
    ShipmentOverrides,
    ShippingPreferences,
    TrackingInfo,
)
from app.services.shipping.builder import ShipmentBuilder
from app.services.shipping.orchestrator import ShippingOrchestrator
from app.utils.money import format_cents
from app.utils.timeutils import utcnow


class OrderNotFound(ValueError):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class ShipmentNotFound(ValueError):
    def __init__(self, message: str):
        super().__init__(message)


class PaymentMismatch(ValueError):
    def __init__(self, order_id: int, expected: int, paid: int):
        super().__init__(
            f"Payment for order {order_id} was {format_cents(paid)}, expected {format_cents(expected)}"
        )
        self.order_id = order_id
        self.expected = expected
        self.paid = paid


class InvalidShipmentTransition(ValueError):
    def __init__(self, current: ShipmentStatus, requested: ShipmentStatus):
        super().__init__(f"Cannot move shipment from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


ALLOWED_TRANSITIONS: Dict[ShipmentStatus, FrozenSet[ShipmentStatus]] = {
    ShipmentStatus.pending: frozenset({ShipmentStatus.created, ShipmentStatus.cancelled}),
    ShipmentStatus.created: frozenset({ShipmentStatus.in_transit, ShipmentStatus.delivered, ShipmentStatus.cancelled}),
    ShipmentStatus.in_transit: frozenset({ShipmentStatus.delivered}),
    ShipmentStatus.delivered: frozenset(),
    ShipmentStatus.cancelled: frozenset(),
}

# FedEx latestStatusDetail codes and UPS currentStatus type codes
DELIVERED_CODES = {"DL", "D"}
IN_TRANSIT_CODES = {"IT", "PU", "OD", "DP", "AR", "AF", "I", "P"}


def can_transition(current: ShipmentStatus, requested: ShipmentStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def map_tracking_status(info: TrackingInfo) -> Optional[ShipmentStatus]:
    """Carrier tracking status -> shipment status, None when it tells us nothing"""
    code = (info.status or "").upper()
    description = (info.status_description or "").lower()

    if code in DELIVERED_CODES or description.startswith("delivered"):
        return ShipmentStatus.delivered
    if code in IN_TRANSIT_CODES or "transit" in description or "out for delivery" in description:
        return ShipmentStatus.in_transit
    return None


class ShipmentService:
    def __init__(self, orchestrator: ShippingOrchestrator, builder: ShipmentBuilder):
        self.orchestrator = orchestrator
        self.builder = builder

    @staticmethod
    async def _get_order(order_id: int) -> Order:
        order = await Order.get_or_none(id=order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    @staticmethod
    async def get_shipment(shipment_id: int) -> Shipment:
        shipment = await Shipment.get_or_none(id=shipment_id)
        if not shipment:
            raise ShipmentNotFound(f"Shipment {shipment_id} not found")
        return shipment

    @staticmethod
    async def _create_pending_shipment(order: Order, address: Address) -> Shipment:
        return await Shipment.create(
            order=order,
            status=ShipmentStatus.pending,
            to_name=address.name,
            to_line1=address.line1,
            to_line2=address.line2,
            to_city=address.city,
            to_state=address.state,
            to_zip=address.zip,
            to_country=(address.country or "US").upper(),
            to_phone=address.phone,
        )

    async def confirm_payment(self, event: PaymentConfirmation, now: Optional[datetime] = None) -> Order:
        """Marks the order paid and records where it ships to.

        Repeated confirmations for an already paid order are ignored, apart
        from attaching a shipping address the order does not have yet.
        """
        if event.shipping_address is not None:
            ShipmentBuilder.validate_address(event.shipping_address, "shipping address")

        async with in_transaction():
            order = await Order.filter(id=event.order_id).select_for_update().first()
            if not order:
                raise OrderNotFound(event.order_id)

            if order.status == OrderStatus.cancelled:
                raise ValueError(f"Order {order.id} is cancelled")

            if order.amount != event.paid_amount:
                raise PaymentMismatch(order.id, order.amount, event.paid_amount)

            if order.status == OrderStatus.pending:
                order.status = OrderStatus.paid
                order.paid_at = now or utcnow()
                order.payment_reference = event.payment_reference
                await order.save(update_fields=["status", "paid_at", "payment_reference"])
                logger.info(f"Order {order.id} paid via {event.gateway} ({format_cents(order.amount)})")
            else:
                logger.info(f"Duplicate payment confirmation for order {order.id} ignored")

            if event.shipping_address is not None and not await Shipment.filter(order_id=order.id).exists():
                shipment = await self._create_pending_shipment(order, event.shipping_address)
                logger.info(f"Pending shipment {shipment.id} recorded for order {order.id}")

        return order

    async def create_label(
        self,
        order_id: int,
        preferences: Optional[ShippingPreferences] = None,
        overrides: Optional[ShipmentOverrides] = None,
    ) -> Shipment:
        order = await self._get_order(order_id)
        if order.status != OrderStatus.paid:
            raise ValueError(f"Order {order_id} must be paid before shipping, current status: {order.status.value}")

        shipment = await Shipment.get_or_none(order_id=order_id)
        if not shipment:
            raise ShipmentNotFound(f"Order {order_id} has no shipping address")
        if shipment.status != ShipmentStatus.pending:
            raise InvalidShipmentTransition(shipment.status, ShipmentStatus.created)

        await order.fetch_related("product")
        details = self.builder.build_shipment_details(
            order,
            order.product,
            None,
            self.builder.address_from_shipment(shipment),
            overrides,
        )

        label = await self.orchestrator.create_optimal_shipment(details, preferences)

        async with in_transaction():
            updated = await Shipment.filter(id=shipment.id, status=ShipmentStatus.pending).update(
                carrier=label.carrier.value,
                service_code=label.service_code,
                tracking_number=label.tracking_number,
                label_url=label.label_url,
                cost=label.cost,
                currency=label.currency,
                weight=details.weight,
                box_length=details.dimensions.length,
                box_width=details.dimensions.width,
                box_height=details.dimensions.height,
                status=ShipmentStatus.created,
            )
            if not updated:
                raise ValueError(f"Shipment {shipment.id} was changed while its label was being created")
            await Order.filter(id=order_id).update(status=OrderStatus.shipped)

        logger.info(f"Shipment {shipment.id} for order {order_id}: {label.carrier.value} {label.tracking_number}")
        await shipment.refresh_from_db()
        return shipment

    async def update_status(self, shipment_id: int, status: ShipmentStatus) -> Shipment:
        shipment = await self.get_shipment(shipment_id)
        if shipment.status == status:
            return shipment
        if not can_transition(shipment.status, status):
            raise InvalidShipmentTransition(shipment.status, status)

        shipment.status = status
        await shipment.save()
        logger.info(f"Shipment {shipment_id} is now {status.value}")
        return shipment

    async def cancel_shipment(self, shipment_id: int) -> Shipment:
        return await self.update_status(shipment_id, ShipmentStatus.cancelled)

    async def refresh_tracking(self, shipment_id: int) -> TrackingInfo:
        shipment = await self.get_shipment(shipment_id)
        if not shipment.carrier or not shipment.tracking_number:
            raise ShipmentNotFound(f"Shipment {shipment_id} has no tracking number yet")

        info = await self.orchestrator.aggregator.track_package(shipment.carrier, shipment.tracking_number)

        status = map_tracking_status(info)
        if status is not None and can_transition(shipment.status, status):
            await self.update_status(shipment_id, status)
        return info
