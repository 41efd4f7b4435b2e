import pytest
from decimal import Decimal

from app.enums.carrier import CarrierCode
from app.enums.recommendation_type import RecommendationType
from app.schemas.shipping import ShippingPreferences
from app.services.shipping import RateAggregator, ShippingConfig, ShippingOrchestrator
from app.services.shipping.errors import CarrierUnavailable, LabelCreationFailed, NoRatesAvailable
from tests.fakes import FakeCarrier, make_details, make_rate


@pytest.fixture
def orchestrator(aggregator: RateAggregator) -> ShippingOrchestrator:
    return ShippingOrchestrator(aggregator)


@pytest.mark.asyncio
async def test_cheapest_rate_wins_without_preferences(orchestrator: ShippingOrchestrator, ups: FakeCarrier):
    label = await orchestrator.create_optimal_shipment(make_details())

    assert label.carrier == CarrierCode.ups
    assert label.cost == Decimal("9.75")
    assert label.service_code == "03"
    assert ups.labels_requested[0].service_code == "03"


@pytest.mark.asyncio
async def test_preferred_carrier_is_pinned_even_if_more_expensive(orchestrator: ShippingOrchestrator):
    preferences = ShippingPreferences(preferred_carrier=CarrierCode.fedex)

    best = await orchestrator.get_best_rate(make_details(), preferences)
    assert best.carrier == CarrierCode.fedex
    assert best.cost == Decimal("12.50")

    label = await orchestrator.create_optimal_shipment(make_details(), preferences)
    assert label.carrier == CarrierCode.fedex


def test_preferred_carrier_is_advisory():
    rates = [make_rate(CarrierCode.ups, "9.75", "03", "5")]
    filtered = ShippingOrchestrator.filter_rates(rates, ShippingPreferences(preferred_carrier=CarrierCode.fedex))
    assert filtered == rates


def test_filters_apply_in_order():
    rates = [
        make_rate(CarrierCode.ups, "9.75", "03", "5"),
        make_rate(CarrierCode.fedex, "12.50", "FEDEX_GROUND", "3"),
        make_rate(CarrierCode.fedex, "48.10", "PRIORITY_OVERNIGHT", "1"),
        make_rate(CarrierCode.ups, "15.00", "12", "Unknown"),
    ]

    by_cost = ShippingOrchestrator.filter_rates(rates, ShippingPreferences(max_cost=Decimal("20")))
    assert [rate.cost for rate in by_cost] == [Decimal("9.75"), Decimal("12.50"), Decimal("15.00")]

    by_days = ShippingOrchestrator.filter_rates(rates, ShippingPreferences(max_transit_days=3))
    assert [rate.service_code for rate in by_days] == ["FEDEX_GROUND", "PRIORITY_OVERNIGHT", "12"]

    # fedex overnight is dropped by the cost ceiling before the carrier pin
    pinned = ShippingOrchestrator.filter_rates(
        rates,
        ShippingPreferences(max_cost=Decimal("20"), max_transit_days=3, preferred_carrier=CarrierCode.fedex)
    )
    assert [rate.service_code for rate in pinned] == ["FEDEX_GROUND"]


@pytest.mark.asyncio
async def test_no_rates_left_after_filtering(orchestrator: ShippingOrchestrator):
    with pytest.raises(NoRatesAvailable):
        await orchestrator.create_optimal_shipment(make_details(), ShippingPreferences(max_cost=Decimal("5")))


@pytest.mark.asyncio
async def test_no_rates_at_all(fedex: FakeCarrier, ups: FakeCarrier):
    fedex.rate_error = CarrierUnavailable("fedex", "timed out")
    ups.rate_error = CarrierUnavailable("ups", "timed out")

    with pytest.raises(NoRatesAvailable):
        await ShippingOrchestrator(RateAggregator([fedex, ups])).create_optimal_shipment(make_details())


@pytest.mark.asyncio
async def test_label_failure_is_final_by_default(orchestrator: ShippingOrchestrator, fedex: FakeCarrier, ups: FakeCarrier):
    ups.label_error = LabelCreationFailed("ups", "address not serviceable", 400)

    with pytest.raises(LabelCreationFailed):
        await orchestrator.create_optimal_shipment(make_details())
    assert fedex.labels_requested == []


@pytest.mark.asyncio
async def test_label_fallback_to_next_cheapest(aggregator: RateAggregator, fedex: FakeCarrier, ups: FakeCarrier):
    ups.label_error = CarrierUnavailable("ups", "timed out")
    orchestrator = ShippingOrchestrator(aggregator, ShippingConfig(fallback_on_label_failure=True))

    label = await orchestrator.create_optimal_shipment(make_details())

    assert label.carrier == CarrierCode.fedex
    assert len(ups.labels_requested) == 1


@pytest.mark.asyncio
async def test_label_fallback_exhausted(aggregator: RateAggregator, fedex: FakeCarrier, ups: FakeCarrier):
    ups.label_error = LabelCreationFailed("ups", "rejected")
    fedex.label_error = CarrierUnavailable("fedex", "timed out")
    orchestrator = ShippingOrchestrator(aggregator, ShippingConfig(fallback_on_label_failure=True))

    with pytest.raises(LabelCreationFailed) as exc:
        await orchestrator.create_optimal_shipment(make_details())
    assert exc.value.carrier == "fedex"


def test_recommendations():
    cheapest = make_rate(CarrierCode.ups, "9.75", "03", "5")
    fastest = make_rate(CarrierCode.fedex, "48.10", "PRIORITY_OVERNIGHT", "1")
    value = make_rate(CarrierCode.fedex, "12.50", "FEDEX_GROUND", "3")

    recommendations = ShippingOrchestrator.get_service_recommendations([cheapest, fastest, value])

    assert [(r.type, r.rate.service_code) for r in recommendations] == [
        (RecommendationType.cheapest, "03"),
        (RecommendationType.fastest, "PRIORITY_OVERNIGHT"),
    ]


def test_best_value_is_listed_when_distinct():
    cheapest = make_rate(CarrierCode.ups, "9.75", "03", "Unknown")
    fastest = make_rate(CarrierCode.fedex, "48.10", "PRIORITY_OVERNIGHT", "1")
    value = make_rate(CarrierCode.fedex, "12.50", "FEDEX_GROUND", "5")

    recommendations = ShippingOrchestrator.get_service_recommendations([cheapest, fastest, value])

    assert [r.type for r in recommendations] == [
        RecommendationType.cheapest,
        RecommendationType.fastest,
        RecommendationType.best_value
    ]
    assert recommendations[2].rate.service_code == "FEDEX_GROUND"


def test_recommendations_edge_cases():
    assert ShippingOrchestrator.get_service_recommendations([]) == []

    only = make_rate(CarrierCode.ups, "9.75", "03", "2")
    assert [r.type for r in ShippingOrchestrator.get_service_recommendations([only])] == [RecommendationType.cheapest]

    first = make_rate(CarrierCode.fedex, "10.00", "A", "Unknown")
    second = make_rate(CarrierCode.ups, "10.00", "B", "Unknown")
    recommendations = ShippingOrchestrator.get_service_recommendations([first, second])
    assert len(recommendations) == 1
    assert recommendations[0].rate.service_code == "A"
