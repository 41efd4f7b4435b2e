import asyncio
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from loguru import logger
from app.core.config import settings
from app.api.routes import auctions_router, shipping_router
from app.core.database import DatabaseManager
from app.services.shipping import (
    RateAggregator,
    ShipmentBuilder,
    ShipmentService,
    ShippingConfig,
    ShippingOrchestrator,
    build_default_adapters
)
from app.services.shipping.errors import NoCarriersConfigured


def init_shipping(app: FastAPI, aggregator: RateAggregator = None) -> None:
    """Build the shipping services once and keep them on app.state"""
    config = ShippingConfig.from_settings(settings)
    aggregator = aggregator or RateAggregator(build_default_adapters(settings))

    try:
        aggregator.ensure_configured()
    except NoCarriersConfigured as e:
        logger.error(f"{e}: set FEDEX_* or UPS_* credentials to enable shipping")

    if config.ship_from is None:
        logger.warning("SHIP_FROM_* address is not configured, labels need an explicit from address")

    orchestrator = ShippingOrchestrator(aggregator, config)
    app.state.rate_aggregator = aggregator
    app.state.shipping_orchestrator = orchestrator
    app.state.shipment_service = ShipmentService(orchestrator, ShipmentBuilder(config))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting up {settings.app_name} v{settings.version}...")

    db = DatabaseManager()
    await db.init()

    if not hasattr(app.state, "rate_aggregator"):
        init_shipping(app)

    try:
        yield
    finally:
        logger.info("Shutting down...")
        await app.state.rate_aggregator.aclose()
        await db.close()

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan,
    debug=settings.debug
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"]
)

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

app.include_router(
    auctions_router,
    prefix="/auctions",
    tags=["Auctions"]
)

app.include_router(
    shipping_router,
    prefix="/shipping",
    tags=["Shipping"]
)

async def main():
    """ Main function to run FastAPI with multiple workers. """
    config = uvicorn.Config(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.debug
    )
    server = uvicorn.Server(config)
    await server.serve()

if __name__ == "__main__":
    asyncio.run(main())
