import re
from typing import Any, Optional

from app.schemas.shipping import Address, Dimensions, ShipmentDetails, ShipmentOverrides
from app.services.shipping.config import ShippingConfig
from app.services.shipping.errors import InvalidAddress
from app.utils.money import cents_to_decimal

REQUIRED_ADDRESS_FIELDS = ("name", "line1", "city", "state", "zip")

US_ZIP = re.compile(r"^\d{5}(-\d{4})?$")
CA_POSTAL_CODE = re.compile(r"^[A-Za-z]\d[A-Za-z][ -]?\d[A-Za-z]\d$")

# Default sneaker box
DEFAULT_WEIGHT_LB = 2.0
DEFAULT_DIMENSIONS = Dimensions(length=14, width=10, height=5)
WEIGHT_ADJUSTMENT_LB = 0.5

HEAVY_HINTS = re.compile(r"\bboots?\b|\bhigh[- ]?tops?\b|\bhi[- ]?tops?\b|\bhigh\b")
LIGHT_HINTS = re.compile(r"\brunning\b|\blightweight\b")

MAX_DESCRIPTION_LENGTH = 50


class ShipmentBuilder:
    def __init__(self, config: Optional[ShippingConfig] = None):
        self.config = config or ShippingConfig()

    @staticmethod
    def validate_address(address: Optional[Address], label: str = "address") -> Address:
        if address is None:
            raise InvalidAddress(f"Missing {label}", missing_fields=list(REQUIRED_ADDRESS_FIELDS))

        missing = [field for field in REQUIRED_ADDRESS_FIELDS if not (getattr(address, field) or "").strip()]
        if missing:
            raise InvalidAddress(
                f"Missing required {label} fields: {', '.join(missing)}",
                missing_fields=missing,
            )

        country = (address.country or "US").upper()
        zip_code = address.zip.strip()
        if country == "US" and not US_ZIP.match(zip_code):
            raise InvalidAddress(f"Invalid US zip code format in {label}: {address.zip}")
        if country == "CA" and not CA_POSTAL_CODE.match(zip_code):
            raise InvalidAddress(f"Invalid Canadian postal code format in {label}: {address.zip}")
        return address

    @staticmethod
    def estimate_weight(product: Any) -> float:
        name = (getattr(product, "name", None) or "").lower()
        if HEAVY_HINTS.search(name):
            return DEFAULT_WEIGHT_LB + WEIGHT_ADJUSTMENT_LB
        if LIGHT_HINTS.search(name):
            return DEFAULT_WEIGHT_LB - WEIGHT_ADJUSTMENT_LB
        return DEFAULT_WEIGHT_LB

    @staticmethod
    def estimate_dimensions(product: Any) -> Dimensions:
        return DEFAULT_DIMENSIONS.model_copy()

    @staticmethod
    def describe(product: Any) -> str:
        text = " ".join(part for part in (getattr(product, "brand", None), getattr(product, "name", None)) if part)
        return (text or "Sneakers")[:MAX_DESCRIPTION_LENGTH]

    def build_shipment_details(
        self,
        order: Any,
        product: Any,
        from_address: Optional[Address],
        to_address: Optional[Address],
        overrides: Optional[ShipmentOverrides] = None,
    ) -> ShipmentDetails:
        """Package and address payload for one order.

        ``from_address`` falls back to the configured ship-from address.
        Weight, dimensions, service and description are estimated unless
        ``overrides`` supplies them. ``international`` is always derived.
        """
        sender = self.validate_address(from_address or self.config.ship_from, "from address")
        recipient = self.validate_address(to_address, "to address")
        overrides = overrides or ShipmentOverrides()

        return ShipmentDetails(
            from_address=sender,
            to_address=recipient,
            weight=overrides.weight or self.estimate_weight(product),
            dimensions=overrides.dimensions or self.estimate_dimensions(product),
            declared_value=cents_to_decimal(order.amount),
            item_description=overrides.item_description or self.describe(product),
            service_code=overrides.service_code,
        )

    @staticmethod
    def address_from_shipment(shipment: Any) -> Address:
        return Address(
            name=shipment.to_name,
            line1=shipment.to_line1,
            line2=shipment.to_line2,
            city=shipment.to_city,
            state=shipment.to_state,
            zip=shipment.to_zip,
            country=shipment.to_country or "US",
            phone=shipment.to_phone,
        )
