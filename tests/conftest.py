import pytest
from datetime import timedelta
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport

from app.main import app, init_shipping
from app.core.database import DatabaseManager
from app.core.security.auth import create_access_token
from app.enums.auction_status import AuctionStatus
from app.enums.carrier import CarrierCode
from app.models import User, Product, Auction
from app.services.shipping import RateAggregator
from app.utils.timeutils import utcnow
from tests.fakes import FakeCarrier, make_rate



@pytest.fixture
async def db():
    """Fresh in-memory database for each test"""
    await DatabaseManager.init(db_url="sqlite://:memory:")
    yield
    await DatabaseManager.close()


@pytest.fixture
def fedex() -> FakeCarrier:
    return FakeCarrier(CarrierCode.fedex, rates=[make_rate(CarrierCode.fedex, "12.50", "FEDEX_GROUND", "3")])


@pytest.fixture
def ups() -> FakeCarrier:
    return FakeCarrier(CarrierCode.ups, rates=[make_rate(CarrierCode.ups, "9.75", "03", "5")])


@pytest.fixture
def aggregator(fedex: FakeCarrier, ups: FakeCarrier) -> RateAggregator:
    return RateAggregator([fedex, ups])


@pytest.fixture
async def client(db, aggregator: RateAggregator) -> AsyncGenerator:
    """Create async HTTP client for testing"""
    init_shipping(app, aggregator)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def test_user(db) -> User:
    return await User.create(email="buyer@example.com")


@pytest.fixture
async def other_user(db) -> User:
    return await User.create(email="rival@example.com")


@pytest.fixture
async def test_admin(db) -> User:
    return await User.create(email="admin@example.com", is_admin=True)


@pytest.fixture
def user_token(test_user: User) -> str:
    return create_access_token(user_id=test_user.id, email=test_user.email)


@pytest.fixture
def admin_token(test_admin: User) -> str:
    return create_access_token(user_id=test_admin.id, email=test_admin.email)


@pytest.fixture
async def product(db) -> Product:
    return await Product.create(brand="Nike", name="Air Jordan 1 High OG", sku="555088-101", size="10")


@pytest.fixture
async def auction(product: Product) -> Auction:
    """Open auction, starting bid $10.00, started a day ago, nine days left"""
    now = utcnow()
    return await Auction.create(
        product=product,
        start_time=now - timedelta(days=1),
        end_time=now + timedelta(days=9),
        starting_bid=1000,
        status=AuctionStatus.open
    )
