"""Whitelist cache."""

from .whitelist_cache import CacheEntry, WhitelistCache

__all__ = ["CacheEntry", "WhitelistCache"]
