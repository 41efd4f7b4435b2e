from enum import Enum


class RecommendationType(str, Enum):
    cheapest = "cheapest"
    fastest = "fastest"
    best_value = "best_value"
