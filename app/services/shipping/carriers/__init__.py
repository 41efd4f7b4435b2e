from typing import List

from .base import CarrierAdapter
from .fedex import FedExAdapter
from .ups import UPSAdapter


def build_default_adapters(settings) -> List[CarrierAdapter]:
    """Every adapter the app knows about, configured or not"""
    return [
        FedExAdapter.from_settings(settings),
        UPSAdapter.from_settings(settings),
    ]
