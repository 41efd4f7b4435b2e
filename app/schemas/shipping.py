from decimal import Decimal
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from app.enums.carrier import CarrierCode
from app.enums.recommendation_type import RecommendationType
from app.enums.shipment_status import ShipmentStatus


class Address(BaseModel):
    """Postal address; required fields are checked by the shipment builder."""
    name: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: str = Field("US", pattern=r"^[A-Z]{2}$", description="ISO 3166-1 alpha-2")
    phone: Optional[str] = None

    @field_validator("country", mode="before")
    def normalize_country(cls, v):
        if v is None:
            return "US"
        return v.strip().upper() if isinstance(v, str) else v


class Dimensions(BaseModel):
    length: int = Field(..., gt=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class ShipmentDetails(BaseModel):
    """Everything a carrier needs to rate or ship one package."""
    from_address: Address
    to_address: Address
    weight: float = Field(..., gt=0, description="Pounds")
    dimensions: Dimensions
    declared_value: Decimal = Decimal("0.00")
    item_description: str = "Sneakers"
    service_code: Optional[str] = None

    @computed_field
    @property
    def international(self) -> bool:
        return self.from_address.country != self.to_address.country


class ShipmentOverrides(BaseModel):
    weight: Optional[float] = Field(None, gt=0)
    dimensions: Optional[Dimensions] = None
    service_code: Optional[str] = None
    item_description: Optional[str] = None


class CarrierRate(BaseModel):
    carrier: CarrierCode
    service_code: str
    service_name: str
    cost: Decimal
    currency: str = "USD"
    transit_time: str = "Unknown"
    delivery_date: Optional[str] = None

    @property
    def transit_days(self) -> Optional[int]:
        """Leading integer of ``transit_time``, None when it is not numeric."""
        digits = ""
        for char in self.transit_time.strip():
            if not char.isdigit():
                break
            digits += char
        return int(digits) if digits else None


class LabelResult(BaseModel):
    carrier: CarrierCode
    tracking_number: Optional[str] = None
    label_url: Optional[str] = None
    cost: Decimal = Decimal("0")
    currency: str = "USD"
    service_code: Optional[str] = None


class TrackingEvent(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    description: str
    location: str = ""


class TrackingInfo(BaseModel):
    carrier: CarrierCode
    tracking_number: Optional[str] = None
    status: str = "Unknown"
    status_description: str = "No status available"
    estimated_delivery: Optional[str] = None
    events: List[TrackingEvent] = []


class ShippingPreferences(BaseModel):
    max_cost: Optional[Decimal] = Field(None, gt=0)
    max_transit_days: Optional[int] = Field(None, gt=0)
    preferred_carrier: Optional[CarrierCode] = None


class ServiceRecommendation(BaseModel):
    type: RecommendationType
    rate: CarrierRate
    reason: str


class CarrierInfo(BaseModel):
    code: CarrierCode
    name: str
    configured: bool


class PaymentConfirmation(BaseModel):
    """Payload a payment webhook hands over once an order is paid."""
    order_id: int
    paid_amount: int = Field(..., gt=0, description="Integer cents")
    payment_reference: Optional[str] = None
    gateway: Literal["stripe", "razorpay", "manual"] = "stripe"
    shipping_address: Optional[Address] = None


class RateQuoteRequest(BaseModel):
    details: ShipmentDetails
    preferences: Optional[ShippingPreferences] = None


class CreateLabelRequest(BaseModel):
    preferences: Optional[ShippingPreferences] = None
    overrides: Optional[ShipmentOverrides] = None


class ShipmentResponse(BaseModel):
    id: int
    order_id: int
    carrier: Optional[str]
    service_code: Optional[str]
    tracking_number: Optional[str]
    label_url: Optional[str]
    cost: Optional[Decimal]
    currency: str
    weight: Optional[float]
    status: ShipmentStatus

    model_config = ConfigDict(from_attributes=True)
