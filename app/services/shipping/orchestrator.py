from decimal import Decimal
from typing import List, Optional

from loguru import logger

from app.enums.recommendation_type import RecommendationType
from app.schemas.shipping import (
    CarrierRate,
    LabelResult,
    ServiceRecommendation,
    ShipmentDetails,
    ShippingPreferences,
)
from app.services.shipping.aggregator import RateAggregator
from app.services.shipping.config import ShippingConfig
from app.services.shipping.errors import CarrierError, LabelCreationFailed, NoRatesAvailable


class ShippingOrchestrator:
    """Rate shopping, policy filtering and label creation in one call."""

    def __init__(self, aggregator: RateAggregator, config: Optional[ShippingConfig] = None):
        self.aggregator = aggregator
        self.config = config or ShippingConfig()

    @staticmethod
    def filter_rates(rates: List[CarrierRate], preferences: Optional[ShippingPreferences] = None) -> List[CarrierRate]:
        if preferences is None:
            return list(rates)

        filtered = list(rates)
        if preferences.max_cost is not None:
            filtered = [rate for rate in filtered if rate.cost <= preferences.max_cost]

        if preferences.max_transit_days is not None:
            # Rates without a numeric transit time are kept
            filtered = [
                rate for rate in filtered
                if rate.transit_days is None or rate.transit_days <= preferences.max_transit_days
            ]

        if preferences.preferred_carrier is not None:
            pinned = [rate for rate in filtered if rate.carrier == preferences.preferred_carrier]
            if pinned:
                filtered = pinned

        return filtered

    async def get_candidate_rates(
        self,
        details: ShipmentDetails,
        preferences: Optional[ShippingPreferences] = None,
    ) -> List[CarrierRate]:
        rates = await self.aggregator.get_all_rates(details)
        candidates = self.filter_rates(rates, preferences)
        if not candidates:
            raise NoRatesAvailable("No shipping rates match the requested preferences" if rates else "No shipping rates available")
        return candidates

    async def get_best_rate(
        self,
        details: ShipmentDetails,
        preferences: Optional[ShippingPreferences] = None,
    ) -> CarrierRate:
        candidates = await self.get_candidate_rates(details, preferences)
        return candidates[0]

    async def create_optimal_shipment(
        self,
        details: ShipmentDetails,
        preferences: Optional[ShippingPreferences] = None,
    ) -> LabelResult:
        """Creates a label with the cheapest rate left after filtering.

        Without ``fallback_on_label_failure`` a failed label is final. With it,
        the remaining candidates are tried in ascending cost order and the last
        failure is raised when none succeeds.
        """
        candidates = await self.get_candidate_rates(details, preferences)
        if not self.config.fallback_on_label_failure:
            candidates = candidates[:1]

        last_error: Optional[LabelCreationFailed] = None
        for rate in candidates:
            logger.info(f"Selected shipping rate: {rate.carrier.value} {rate.service_name} {rate.cost} {rate.currency}")
            try:
                label = await self.aggregator.create_shipping_label(
                    rate.carrier,
                    details.model_copy(update={"service_code": rate.service_code}),
                )
            except CarrierError as e:
                logger.error(f"Label creation failed with {rate.carrier.value}: {e}")
                last_error = e if isinstance(e, LabelCreationFailed) else LabelCreationFailed(e.carrier, e.message, e.status_code)
                continue

            if label.service_code is None:
                label = label.model_copy(update={"service_code": rate.service_code})
            logger.info(f"Label created: {label.carrier.value} tracking {label.tracking_number}")
            return label

        raise last_error

    @staticmethod
    def get_service_recommendations(rates: List[CarrierRate]) -> List[ServiceRecommendation]:
        """Up to three picks: cheapest, fastest and best value.

        ``min`` keeps the first of equal candidates, so ties go to input order.
        """
        if not rates:
            return []

        cheapest = min(rates, key=lambda rate: rate.cost)
        recommendations = [
            ServiceRecommendation(type=RecommendationType.cheapest, rate=cheapest, reason="Lowest cost option")
        ]

        timed = [rate for rate in rates if rate.transit_days is not None]
        if not timed:
            return recommendations

        fastest = min(timed, key=lambda rate: rate.transit_days)
        if fastest is not cheapest:
            recommendations.append(
                ServiceRecommendation(type=RecommendationType.fastest, rate=fastest, reason="Fastest delivery time")
            )
        else:
            fastest = None

        # Same-day services report 0 days
        best_value = min(timed, key=lambda rate: rate.cost / Decimal(max(rate.transit_days, 1)))
        if best_value is not cheapest and best_value is not fastest:
            recommendations.append(
                ServiceRecommendation(
                    type=RecommendationType.best_value,
                    rate=best_value,
                    reason="Best balance of cost and speed",
                )
            )

        return recommendations
