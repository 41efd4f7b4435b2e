from .config import settings, Settings
