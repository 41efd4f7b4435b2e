from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from app.enums.carrier import CarrierCode
from app.schemas.shipping import (
    Address,
    CarrierRate,
    LabelResult,
    ShipmentDetails,
    TrackingEvent,
    TrackingInfo,
)
from app.services.shipping.carriers.base import CarrierAdapter
from app.services.shipping.errors import LabelCreationFailed, RateRequestFailed, TrackingFailed

DEFAULT_SERVICE = "FEDEX_GROUND"
PLACEHOLDER_PHONE = "5551234567"

SERVICE_NAMES = {
    "FEDEX_GROUND": "FedEx Ground",
    "FEDEX_EXPRESS_SAVER": "FedEx Express Saver",
    "FEDEX_2_DAY": "FedEx 2Day",
    "STANDARD_OVERNIGHT": "FedEx Standard Overnight",
    "PRIORITY_OVERNIGHT": "FedEx Priority Overnight",
    "FIRST_OVERNIGHT": "FedEx First Overnight",
}

# operationalDetail.transitTime values
TRANSIT_DAYS = {
    "ONE_DAY": 1, "TWO_DAYS": 2, "THREE_DAYS": 3, "FOUR_DAYS": 4, "FIVE_DAYS": 5,
    "SIX_DAYS": 6, "SEVEN_DAYS": 7, "EIGHT_DAYS": 8, "NINE_DAYS": 9, "TEN_DAYS": 10,
}


class FedExAdapter(CarrierAdapter):
    code = CarrierCode.fedex
    name = "FedEx"

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        account_number: Optional[str],
        meter_number: Optional[str],
        base_url: str = "https://apis-sandbox.fedex.com",
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(base_url, timeout=timeout, client=client, **kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        self.account_number = account_number
        self.meter_number = meter_number

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "FedExAdapter":
        return cls(
            client_id=settings.FEDEX_CLIENT_ID,
            client_secret=settings.FEDEX_CLIENT_SECRET,
            account_number=settings.FEDEX_ACCOUNT_NUMBER,
            meter_number=settings.FEDEX_METER_NUMBER,
            base_url=settings.FEDEX_BASE_URL,
            timeout=settings.carrier_timeout_seconds,
            **kwargs,
        )

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.account_number and self.meter_number)

    def _token_request(self):
        return (
            "/oauth/token",
            {
                "grant_type": "client_credentials",
                "client_id": self.client_id or "",
                "client_secret": self.client_secret or "",
            },
            {"Content-Type": "application/x-www-form-urlencoded"},
        )

    def _default_headers(self) -> Dict[str, str]:
        return {"X-locale": "en_US"}

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    @staticmethod
    def _address(address: Address, full: bool = False) -> Dict[str, Any]:
        street_lines = [address.line1]
        if full and address.line2:
            street_lines.append(address.line2)
        return {
            "streetLines": street_lines,
            "city": address.city,
            "stateOrProvinceCode": address.state,
            "postalCode": address.zip,
            "countryCode": address.country or "US",
        }

    @staticmethod
    def _contact(address: Address) -> Dict[str, Any]:
        return {
            "personName": address.name,
            "phoneNumber": address.phone or PLACEHOLDER_PHONE,
        }

    @staticmethod
    def _package(details: ShipmentDetails) -> Dict[str, Any]:
        return {
            "weight": {"units": "LB", "value": details.weight},
            "dimensions": {
                "length": details.dimensions.length,
                "width": details.dimensions.width,
                "height": details.dimensions.height,
                "units": "IN",
            },
        }

    def build_rate_request(self, details: ShipmentDetails) -> Dict[str, Any]:
        requested_shipment = {
            "shipper": {"address": self._address(details.from_address)},
            "recipient": {"address": self._address(details.to_address)},
            "pickupType": "USE_SCHEDULED_PICKUP",
            "packagingType": "YOUR_PACKAGING",
            "rateRequestType": ["ACCOUNT"],
            "requestedPackageLineItems": [self._package(details)],
        }
        # Omitting serviceType asks FedEx to quote every available service
        if details.service_code:
            requested_shipment["serviceType"] = details.service_code
        return {
            "accountNumber": {"value": self.account_number},
            "requestedShipment": requested_shipment,
        }

    def build_ship_request(self, details: ShipmentDetails) -> Dict[str, Any]:
        requested_shipment: Dict[str, Any] = {
            "shipper": {
                "contact": self._contact(details.from_address),
                "address": self._address(details.from_address, full=True),
            },
            "recipients": [{
                "contact": self._contact(details.to_address),
                "address": self._address(details.to_address, full=True),
            }],
            "serviceType": details.service_code or DEFAULT_SERVICE,
            "packagingType": "YOUR_PACKAGING",
            "pickupType": "USE_SCHEDULED_PICKUP",
            "shipDatestamp": date.today().isoformat(),
            "shippingChargesPayment": {"paymentType": "SENDER"},
            "labelSpecification": {"imageType": "PDF", "labelStockType": "PAPER_85X11_TOP_HALF_LABEL"},
            "requestedPackageLineItems": [self._package(details)],
        }
        if details.international:
            requested_shipment["customsClearanceDetail"] = {
                "dutiesPayment": {"paymentType": "SENDER"},
                "commodities": [{
                    "description": details.item_description or "Sneakers",
                    "quantity": 1,
                    "quantityUnits": "PCS",
                    "weight": {"units": "LB", "value": details.weight},
                    "customsValue": {"amount": float(details.declared_value), "currency": "USD"},
                }],
            }
        return {
            "labelResponseOptions": "URL_ONLY",
            "requestedShipment": requested_shipment,
            "accountNumber": {"value": self.account_number},
        }

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def get_rates(self, details: ShipmentDetails) -> List[CarrierRate]:
        data = await self._api_request(
            "POST", "/rate/v1/rates/quotes", RateRequestFailed, json=self.build_rate_request(details)
        )
        return self._parse(RateRequestFailed, self.parse_rate_response, data)

    async def create_shipping_label(self, details: ShipmentDetails) -> LabelResult:
        data = await self._api_request(
            "POST", "/ship/v1/shipments", LabelCreationFailed, json=self.build_ship_request(details)
        )
        label = self._parse(LabelCreationFailed, self.parse_shipment_response, data)
        label.service_code = details.service_code or DEFAULT_SERVICE
        return label

    async def track_package(self, tracking_number: str) -> TrackingInfo:
        payload = {
            "includeDetailedScans": True,
            "trackingInfo": [{"trackingNumberInfo": {"trackingNumber": tracking_number}}],
        }
        data = await self._api_request("POST", "/track/v1/trackingnumbers", TrackingFailed, json=payload)
        return self._parse(TrackingFailed, self.parse_tracking_response, data)

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def service_name(service_type: str) -> str:
        return SERVICE_NAMES.get(service_type, service_type)

    @staticmethod
    def _transit_time(rate: Dict[str, Any]) -> str:
        transit = (rate.get("operationalDetail") or {}).get("transitTime")
        if transit in TRANSIT_DAYS:
            return str(TRANSIT_DAYS[transit])
        day_of_week = ((rate.get("commit") or {}).get("dateDetail") or {}).get("dayOfWeek")
        return day_of_week or "Unknown"

    def parse_rate_response(self, data: Dict[str, Any]) -> List[CarrierRate]:
        rates = []
        for rate in (data.get("output") or {}).get("rateReplyDetails") or []:
            rated = (rate.get("ratedShipmentDetails") or [{}])[0]
            commit = rate.get("commit") or {}
            rates.append(CarrierRate(
                carrier=CarrierCode.fedex,
                service_code=rate["serviceType"],
                service_name=self.service_name(rate["serviceType"]),
                cost=Decimal(str(rated.get("totalNetCharge", 0))),
                currency=rated.get("currency", "USD"),
                transit_time=self._transit_time(rate),
                delivery_date=(commit.get("dateDetail") or {}).get("dayFormat"),
            ))
        return rates

    def parse_shipment_response(self, data: Dict[str, Any]) -> LabelResult:
        shipments = (data.get("output") or {}).get("transactionShipments") or []
        if not shipments:
            raise LabelCreationFailed(self.code.value, "invalid FedEx shipment response")
        output = shipments[0]

        documents = ((output.get("pieceResponses") or [{}])[0]).get("packageDocuments") or [{}]
        rating = output.get("shipmentRating") or {}
        return LabelResult(
            carrier=CarrierCode.fedex,
            tracking_number=output.get("masterTrackingNumber"),
            label_url=documents[0].get("url"),
            cost=Decimal(str(rating.get("totalNetCharge", 0))),
            currency=rating.get("currency", "USD"),
        )

    def parse_tracking_response(self, data: Dict[str, Any]) -> TrackingInfo:
        results = ((data.get("output") or {}).get("completeTrackResults") or [{}])[0].get("trackResults") or []
        if not results:
            return TrackingInfo(
                carrier=CarrierCode.fedex,
                status="Not Found",
                status_description="Tracking information not available",
            )
        info = results[0]

        events = []
        for scan in info.get("scanEvents") or []:
            location = scan.get("scanLocation") or {}
            events.append(TrackingEvent(
                date=scan.get("date"),
                time=scan.get("time"),
                description=scan.get("eventDescription") or "Package activity",
                location=f"{location.get('city', '')}, {location.get('stateOrProvinceCode', '')}".strip(" ,"),
            ))

        latest = info.get("latestStatusDetail") or {}
        estimated = next(
            (dt.get("dateTime") for dt in info.get("dateAndTimes") or [] if dt.get("type") == "ESTIMATED_DELIVERY"),
            None,
        )
        return TrackingInfo(
            carrier=CarrierCode.fedex,
            tracking_number=(info.get("trackingNumberInfo") or {}).get("trackingNumber"),
            status=latest.get("code") or "Unknown",
            status_description=latest.get("description") or "No status available",
            estimated_delivery=estimated,
            events=events,
        )
