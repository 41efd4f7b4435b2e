import asyncio
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger

from app.enums.carrier import CarrierCode
from app.schemas.shipping import (
    CarrierInfo,
    CarrierRate,
    LabelResult,
    ShipmentDetails,
    TrackingInfo,
)
from app.services.shipping.carriers.base import CarrierAdapter
from app.services.shipping.errors import CarrierNotConfigured, NoCarriersConfigured


class RateAggregator:
    """
    Holds the registered carrier adapters and shops rates across them.

    New carriers plug in through ``register``; nothing here branches on a
    carrier name.
    """

    def __init__(self, adapters: Optional[Iterable[CarrierAdapter]] = None):
        self._adapters: Dict[CarrierCode, CarrierAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: CarrierAdapter) -> None:
        if adapter.code in self._adapters:
            logger.warning(f"Replacing registered {adapter.name} adapter")
        self._adapters[adapter.code] = adapter

    @property
    def adapters(self) -> List[CarrierAdapter]:
        return list(self._adapters.values())

    def configured_adapters(self) -> List[CarrierAdapter]:
        return [adapter for adapter in self._adapters.values() if adapter.is_configured()]

    def available_carriers(self) -> List[CarrierInfo]:
        return [
            CarrierInfo(code=adapter.code, name=adapter.name, configured=True)
            for adapter in self.configured_adapters()
        ]

    def get_adapter(self, carrier: Union[CarrierCode, str]) -> CarrierAdapter:
        try:
            code = CarrierCode(carrier.lower())
        except (ValueError, AttributeError):
            raise CarrierNotConfigured(str(carrier))

        adapter = self._adapters.get(code)
        if adapter is None or not adapter.is_configured():
            raise CarrierNotConfigured(code.value)
        return adapter

    def ensure_configured(self) -> None:
        """Startup check: at least one carrier must have credentials"""
        if not self.configured_adapters():
            raise NoCarriersConfigured()

    async def get_all_rates(self, details: ShipmentDetails) -> List[CarrierRate]:
        """Quotes from every configured carrier, cheapest first.

        Carriers are queried concurrently. A carrier that fails for any
        reason is logged and left out; if all of them fail the result is an
        empty list.
        """
        adapters = self.configured_adapters()
        if not adapters:
            logger.warning("Rate request with no configured carriers")
            return []

        results = await asyncio.gather(
            *(adapter.get_rates(details) for adapter in adapters),
            return_exceptions=True,
        )

        rates: List[CarrierRate] = []
        for adapter, result in zip(adapters, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning(f"Failed to get rates from {adapter.name}: {result}")
                continue
            rates.extend(result)

        # sorted() is stable, equal costs keep carrier registration order
        return sorted(rates, key=lambda rate: rate.cost)

    async def get_carrier_rates(self, carrier: Union[CarrierCode, str], details: ShipmentDetails) -> List[CarrierRate]:
        return await self.get_adapter(carrier).get_rates(details)

    async def create_shipping_label(self, carrier: Union[CarrierCode, str], details: ShipmentDetails) -> LabelResult:
        return await self.get_adapter(carrier).create_shipping_label(details)

    async def track_package(self, carrier: Union[CarrierCode, str], tracking_number: str) -> TrackingInfo:
        return await self.get_adapter(carrier).track_package(tracking_number)

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()
