from enum import Enum


class CarrierCode(str, Enum):
    fedex = "fedex"
    ups = "ups"
