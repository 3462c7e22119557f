from ratiomix.core.config import settings
from ratiomix.core.db import get_db

__all__ = ["settings", "get_db"]
