from dataclasses import dataclass
from typing import Optional

from app.schemas.shipping import Address


@dataclass(frozen=True)
class ShippingConfig:
    """Shipping settings handed to the builder and orchestrator at construction."""
    ship_from: Optional[Address] = None
    fallback_on_label_failure: bool = False

    @classmethod
    def from_settings(cls, settings) -> "ShippingConfig":
        ship_from = None
        if settings.ship_from_configured:
            ship_from = Address(
                name=settings.SHIP_FROM_NAME,
                line1=settings.SHIP_FROM_ADDRESS1,
                line2=settings.SHIP_FROM_ADDRESS2,
                city=settings.SHIP_FROM_CITY,
                state=settings.SHIP_FROM_STATE,
                zip=settings.SHIP_FROM_ZIP,
                country=settings.SHIP_FROM_COUNTRY,
                phone=settings.SHIP_FROM_PHONE,
            )

        return cls(
            ship_from=ship_from,
            fallback_on_label_failure=settings.shipping_fallback_on_label_failure,
        )
