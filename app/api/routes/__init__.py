from .auctions import router as auctions_router
from .shipping import router as shipping_router
