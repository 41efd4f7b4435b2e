import uuid
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

DEFAULT_SERVICE = "03"  # Ground
PLACEHOLDER_PHONE = "5551234567"
CUSTOMER_SUPPLIED_PACKAGE = "02"

SERVICE_NAMES = {
    "01": "UPS Next Day Air",
    "02": "UPS 2nd Day Air",
    "03": "UPS Ground",
    "07": "UPS Worldwide Express",
    "08": "UPS Worldwide Expedited",
    "11": "UPS Standard",
    "12": "UPS 3 Day Select",
    "13": "UPS Next Day Air Saver",
    "14": "UPS Next Day Air Early A.M.",
    "54": "UPS Worldwide Express Plus",
}


class UPSAdapter(CarrierAdapter):
    code = CarrierCode.ups
    name = "UPS"

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        account_number: Optional[str],
        access_license_number: Optional[str],
        base_url: str = "https://wwwcie.ups.com",
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(base_url, timeout=timeout, client=client, **kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        self.account_number = account_number
        self.access_license_number = access_license_number

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "UPSAdapter":
        return cls(
            client_id=settings.UPS_CLIENT_ID,
            client_secret=settings.UPS_CLIENT_SECRET,
            account_number=settings.UPS_ACCOUNT_NUMBER,
            access_license_number=settings.UPS_ACCESS_LICENSE_NUMBER,
            base_url=settings.UPS_BASE_URL,
            timeout=settings.carrier_timeout_seconds,
            **kwargs,
        )

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.account_number and self.access_license_number)

    def _token_request(self):
        return (
            "/security/v1/oauth/token",
            {
                "grant_type": "client_credentials",
                "client_id": self.client_id or "",
                "client_secret": self.client_secret or "",
            },
            {
                "Content-Type": "application/x-www-form-urlencoded",
                "x-merchant-id": self.client_id or "",
            },
        )

    def _default_headers(self) -> Dict[str, str]:
        return {
            "transId": uuid.uuid4().hex[:32],
            "transactionSrc": "sneaker-auction",
        }

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    @staticmethod
    def _address(address: Address, full: bool = False) -> Dict[str, Any]:
        lines = [address.line1]
        if full and address.line2:
            lines.append(address.line2)
        return {
            "AddressLine": lines,
            "City": address.city,
            "StateProvinceCode": address.state,
            "PostalCode": address.zip,
            "CountryCode": address.country or "US",
        }

    def _party(self, address: Address, with_contact: bool = False, shipper: bool = False) -> Dict[str, Any]:
        party: Dict[str, Any] = {
            "Name": address.name or "Shipper",
            "Address": self._address(address, full=with_contact),
        }
        if shipper:
            party["ShipperNumber"] = self.account_number
        if with_contact:
            party["AttentionName"] = address.name or "Shipper"
            party["Phone"] = {"Number": address.phone or PLACEHOLDER_PHONE}
        return party

    @staticmethod
    def _package(details: ShipmentDetails, packaging_key: str) -> Dict[str, Any]:
        return {
            packaging_key: {"Code": CUSTOMER_SUPPLIED_PACKAGE, "Description": "Package"},
            "Dimensions": {
                "UnitOfMeasurement": {"Code": "IN"},
                "Length": str(details.dimensions.length),
                "Width": str(details.dimensions.width),
                "Height": str(details.dimensions.height),
            },
            "PackageWeight": {
                "UnitOfMeasurement": {"Code": "LBS"},
                "Weight": str(details.weight),
            },
        }

    def build_rate_request(self, details: ShipmentDetails) -> Dict[str, Any]:
        return {
            "RateRequest": {
                "Request": {
                    "SubVersion": "1801",
                    "RequestOption": "Shop",
                    "TransactionReference": {"CustomerContext": "Rate Shopping"},
                },
                "Shipment": {
                    "Shipper": self._party(details.from_address, shipper=True),
                    "ShipTo": self._party(details.to_address),
                    "ShipFrom": self._party(details.from_address),
                    "Package": [self._package(details, "PackagingType")],
                },
            }
        }

    def build_ship_request(self, details: ShipmentDetails) -> Dict[str, Any]:
        service_code = details.service_code or DEFAULT_SERVICE
        package = self._package(details, "Packaging")
        package["Description"] = details.item_description or "Sneakers"
        return {
            "ShipmentRequest": {
                "Request": {
                    "SubVersion": "1801",
                    "RequestOption": "nonvalidate",
                    "TransactionReference": {"CustomerContext": "Ship Request"},
                },
                "Shipment": {
                    "Description": "Sneaker Shipment",
                    "Shipper": self._party(details.from_address, with_contact=True, shipper=True),
                    "ShipTo": self._party(details.to_address, with_contact=True),
                    "ShipFrom": self._party(details.from_address, with_contact=True),
                    "PaymentInformation": {
                        "ShipmentCharge": {
                            "Type": "01",
                            "BillShipper": {"AccountNumber": self.account_number},
                        }
                    },
                    "Service": {"Code": service_code, "Description": self.service_name(service_code)},
                    "Package": [package],
                },
                "LabelSpecification": {
                    "LabelImageFormat": {"Code": "PDF"},
                    "HTTPUserAgent": "Mozilla/4.0",
                },
            }
        }

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def get_rates(self, details: ShipmentDetails) -> List[CarrierRate]:
        data = await self._api_request(
            "POST", "/api/rating/v1/Rate", RateRequestFailed, json=self.build_rate_request(details)
        )
        return self._parse(RateRequestFailed, self.parse_rate_response, data)

    async def create_shipping_label(self, details: ShipmentDetails) -> LabelResult:
        data = await self._api_request(
            "POST", "/api/shipments/v1/ship", LabelCreationFailed, json=self.build_ship_request(details)
        )
        label = self._parse(LabelCreationFailed, self.parse_shipment_response, data)
        label.service_code = details.service_code or DEFAULT_SERVICE
        return label

    async def track_package(self, tracking_number: str) -> TrackingInfo:
        data = await self._api_request("GET", f"/api/track/v1/details/{tracking_number}", TrackingFailed)
        return self._parse(TrackingFailed, self.parse_tracking_response, data)

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def service_name(service_code: str) -> str:
        return SERVICE_NAMES.get(service_code, f"UPS Service {service_code}")

    def parse_rate_response(self, data: Dict[str, Any]) -> List[CarrierRate]:
        rated = (data.get("RateResponse") or {}).get("RatedShipment") or []
        if isinstance(rated, dict):
            rated = [rated]

        rates = []
        for rate in rated:
            code = rate["Service"]["Code"]
            charges = rate.get("TotalCharges") or {}
            guaranteed = rate.get("GuaranteedDelivery") or {}
            rates.append(CarrierRate(
                carrier=CarrierCode.ups,
                service_code=code,
                service_name=self.service_name(code),
                cost=Decimal(str(charges.get("MonetaryValue", "0"))),
                currency=charges.get("CurrencyCode", "USD"),
                transit_time=str(guaranteed.get("BusinessDaysInTransit") or "Unknown"),
                delivery_date=guaranteed.get("DeliveryByTime"),
            ))
        return rates

    def parse_shipment_response(self, data: Dict[str, Any]) -> LabelResult:
        results = (data.get("ShipmentResponse") or {}).get("ShipmentResults")
        if not results:
            raise LabelCreationFailed(self.code.value, "invalid UPS shipment response")

        package = results.get("PackageResults") or {}
        if isinstance(package, list):
            package = package[0] if package else {}

        image = (package.get("ShippingLabel") or {}).get("GraphicImage")
        charges = (results.get("ShipmentCharges") or {}).get("TotalCharges") or {}
        return LabelResult(
            carrier=CarrierCode.ups,
            tracking_number=package.get("TrackingNumber"),
            # UPS returns the label inline as base64
            label_url=f"data:application/pdf;base64,{image}" if image else None,
            cost=Decimal(str(charges.get("MonetaryValue", "0"))),
            currency=charges.get("CurrencyCode", "USD"),
        )

    def parse_tracking_response(self, data: Dict[str, Any]) -> TrackingInfo:
        shipments = (data.get("trackResponse") or {}).get("shipment") or []
        if not shipments:
            return TrackingInfo(
                carrier=CarrierCode.ups,
                status="Not Found",
                status_description="Tracking information not available",
            )

        package = (shipments[0].get("package") or [{}])[0]
        events = []
        for activity in package.get("activity") or []:
            address = (activity.get("location") or {}).get("address") or {}
            events.append(TrackingEvent(
                date=activity.get("date"),
                time=activity.get("time"),
                description=(activity.get("status") or {}).get("description") or "Package activity",
                location=f"{address.get('city', '')}, {address.get('stateProvinceCode', '')}".strip(" ,"),
            ))

        current = package.get("currentStatus") or {}
        delivery_dates = package.get("deliveryDate") or [{}]
        return TrackingInfo(
            carrier=CarrierCode.ups,
            tracking_number=package.get("trackingNumber"),
            status=current.get("code") or "Unknown",
            status_description=current.get("description") or "No status available",
            estimated_delivery=delivery_dates[0].get("date"),
            events=events,
        )
