from .redis_cache import CacheLayer

__all__ = ["CacheLayer"]
