"""
Grant Tracker - nonprofit grant discovery and tracking service.

Architecture:
- core/: Stable foundation (models, HTTP client, normalizers, dedup/ranking)
- adapters/: One source adapter per grant API or feed type
- storage/: TTL key-value stores (in-memory, Apify)
- config/: YAML-driven settings
- web/: aiohttp HTTP surface
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
