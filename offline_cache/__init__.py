from .service import ASSETS, CACHE_NAME, OfflineAssetCache
from .storage import Cache, CachedResponse, CacheStorage, InstallError

__all__ = [
    "ASSETS",
    "CACHE_NAME",
    "Cache",
    "CacheStorage",
    "CachedResponse",
    "InstallError",
    "OfflineAssetCache",
]
