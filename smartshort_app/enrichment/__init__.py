"""
Best-effort URL metadata enrichment.
"""

from .analyzer import MetadataAnalyzer, UrlMetadata, basic_metadata, enrich_or_default

__all__ = [
    "MetadataAnalyzer",
    "UrlMetadata",
    "basic_metadata",
    "enrich_or_default",
]
