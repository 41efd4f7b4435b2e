from .aggregator import RateAggregator
from .builder import ShipmentBuilder
from .carriers import CarrierAdapter, FedExAdapter, UPSAdapter, build_default_adapters
from .config import ShippingConfig
from .orchestrator import ShippingOrchestrator
from .shipment_service import (ShipmentService, OrderNotFound, ShipmentNotFound, PaymentMismatch,
                               InvalidShipmentTransition)
