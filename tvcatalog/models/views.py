"""
Grouped view, stats and cache models returned by the catalog service.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from tvcatalog.errors import UnsupportedViewType
from tvcatalog.models.channel import EnrichedChannel
from tvcatalog.models.metadata import Category, Country


class ViewType(str, Enum):
    COUNTRY = "country"
    CATEGORY = "category"
    STATS = "stats"

    @classmethod
    def parse(cls, value: Any) -> "ViewType":
        """Coerce a raw view type, raising UnsupportedViewType when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedViewType(value) from None


class ViewOptions(BaseModel):
    """Per-request overrides for a view lookup."""
    ttl_seconds: Optional[int] = Field(default=None, gt=0)
    unlimited: Optional[bool] = None


class CatalogStats(BaseModel):
    """Aggregate counts over one full computation."""
    total_channels: int = 0
    channels_with_streams: int = 0
    total_countries: int = 0
    total_categories: int = 0
    total_logos: int = 0
    total_streams: int = 0
    linked_streams: int = 0
    orphan_streams: int = 0
    channels_with_logos: int = 0
    skipped_records: int = 0


class GroupedView(BaseModel):
    """Channels bucketed by group label, with reference lists and stats."""
    view_type: ViewType
    groups: dict[str, list[EnrichedChannel]] = Field(default_factory=dict)
    countries: list[Country] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    stats: Optional[CatalogStats] = None

    @property
    def channel_count(self) -> int:
        return sum(len(channels) for channels in self.groups.values())

    def limited(self, max_groups: int, max_per_group: int) -> "GroupedView":
        """Copy of the view keeping the first groups and channels only."""
        groups = {
            label: channels[:max_per_group]
            for label, channels in list(self.groups.items())[:max_groups]
        }
        return self.model_copy(update={"groups": groups})


class CacheEntry(BaseModel):
    """A cached value with its insertion time and absolute expiry (epoch seconds)."""
    value: Any
    inserted_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at
