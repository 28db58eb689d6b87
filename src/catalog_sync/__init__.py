"""
Catalog Sync.

Keeps a locally persisted game catalog consistent with an external
metadata provider and an external pricing provider, both in batch
form and through eager sync on live search.
"""

from catalog_sync.config import Settings, get_settings
from catalog_sync.logger import get_logger, setup_logging

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
