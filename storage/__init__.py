"""
Storage Package

In-memory holding of the latest quote snapshots.

Current implementation:
- QuoteCache: one most-recent QuoteSet per pair group, refreshed at most once
  per TTL window with concurrent demand coalesced into a single refresh

Quotes are never persisted; a restart begins with an empty cache.
"""

from storage.quote_cache import QuoteCache

__all__ = ["QuoteCache"]
