from typing import Optional, Sequence


class ShippingError(Exception):
    """Base class for everything the shipping layer raises"""


class CarrierError(ShippingError):
    """A single carrier integration failed"""

    def __init__(self, carrier: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{carrier}: {message}")
        self.carrier = carrier
        self.message = message
        self.status_code = status_code


class AuthenticationFailed(CarrierError):
    pass


class CarrierUnavailable(CarrierError):
    """Timeout or network failure talking to the carrier"""


class RateRequestFailed(CarrierError):
    pass


class LabelCreationFailed(CarrierError):
    pass


class TrackingFailed(CarrierError):
    pass


class NoRatesAvailable(ShippingError):
    def __init__(self, message: str = "No shipping rates available"):
        super().__init__(message)


class InvalidAddress(ShippingError, ValueError):
    def __init__(self, message: str, missing_fields: Sequence[str] = ()):
        super().__init__(message)
        self.missing_fields = list(missing_fields)


class CarrierNotConfigured(ShippingError):
    def __init__(self, carrier: str):
        super().__init__(f"Carrier {carrier} is not configured")
        self.carrier = carrier


class NoCarriersConfigured(ShippingError):
    def __init__(self):
        super().__init__("No shipping carriers are configured")
