"""Audio catalog and user directory (read-only)."""

from .models import CATALOG_TABLES_CQL, AudioTrack, Member
from .service import CatalogService


__all__ = [
    "CATALOG_TABLES_CQL",
    "AudioTrack",
    "CatalogService",
    "Member",
]
